"""
Apply enriched change events to the document store
"""

from contextlib import aclosing
from typing import AsyncIterable, AsyncIterator, Optional, Tuple

from pymongo.errors import PyMongoError

from core.config import get_settings
from core.exceptions import DocumentStoreError, MissingObjectSnapshotError
from ingestion.batching import chunks_timeout
from models.base import StepStatus
from models.change_event import ChangeEvent
from schemas.sui import ChangeType
import logging

logger = logging.getLogger(__name__)


class MongoLoader:
    """
    Mirror object changes into a collection keyed by (object id, version).

    Operations:
    - deleted -> delete_one
    - created / mutated -> update_one with upsert (insert or replace)
    - anything else -> nothing, and nothing is emitted
    """

    def __init__(
        self,
        collection,
        batch_size: Optional[int] = None,
        batch_timeout: Optional[float] = None
    ):
        self.collection = collection
        self.batch_size = batch_size or get_settings().LOAD_BATCH_SIZE
        self.batch_timeout = batch_timeout or get_settings().LOAD_BATCH_TIMEOUT

    async def delete(self, item: ChangeEvent):
        key = item.store_key()
        logger.info(f"deleting object {key['_id']} version {key['version']}")
        try:
            await self.collection.delete_one(key)
        except PyMongoError as e:
            raise DocumentStoreError(
                "failed to delete",
                context={"operation": "delete", "object_id": key["_id"], "version": key["version"]},
                original_exception=e
            )

    async def upsert(self, item: ChangeEvent):
        key = item.store_key()
        if item.object is None:
            raise MissingObjectSnapshotError(
                f"{item.change.type.value} change reached the loader without an object snapshot",
                context={"object_id": key["_id"], "version": key["version"], "digest": item.digest}
            )

        logger.info(f"inserting object {key['_id']} version {key['version']}")
        try:
            await self.collection.update_one(
                key,
                {"$set": {**key, "object": item.object.to_document()}},
                upsert=True
            )
        except PyMongoError as e:
            raise DocumentStoreError(
                "failed to upsert",
                context={"operation": "upsert", "object_id": key["_id"], "version": key["version"]},
                original_exception=e
            )

    async def apply(self, item: ChangeEvent) -> Optional[StepStatus]:
        """
        Run the store operation for one event.

        Returns:
            OK / ERR for attempted operations, None when the change type has
            no store operation
        """
        if item.change.type == ChangeType.DELETED:
            operation = self.delete
        elif item.change.type in (ChangeType.CREATED, ChangeType.MUTATED):
            operation = self.upsert
        else:
            return None

        try:
            await operation(item)
        except DocumentStoreError as e:
            logger.error(
                f"{e.message} object {e.context['object_id']} version {e.context['version']}: "
                f"{e.original_exception}",
                extra={"error_context": e.to_dict()}
            )
            return StepStatus.ERR
        return StepStatus.OK

    async def load(self, events: AsyncIterable[ChangeEvent]) -> AsyncIterator[Tuple[StepStatus, ChangeEvent]]:
        """Stream (status, event) pairs, one per attempted store operation"""
        async with aclosing(chunks_timeout(events, self.batch_size, self.batch_timeout)) as chunks:
            async for chunk in chunks:
                # TODO group each chunk into one bulk_write call instead of one round trip per item
                for item in chunk:
                    status = await self.apply(item)
                    if status is not None:
                        yield status, item
