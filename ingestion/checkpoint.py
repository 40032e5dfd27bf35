"""
Checkpoint management for resumable extraction
"""

from abc import ABC, abstractmethod
from typing import Optional

from pymongo.errors import PyMongoError
from pydantic import ValidationError

from core.exceptions import CheckpointError
from models.base import ETLStatus
from models.checkpoint import ETLCheckpoint, utcnow
import logging

logger = logging.getLogger(__name__)


class CheckpointStore(ABC):
    """Where the extractor's page cursor is persisted between runs"""

    @abstractmethod
    async def load(self, source_name: str) -> Optional[ETLCheckpoint]:
        """Return the checkpoint for a source, or None if there is none yet"""

    @abstractmethod
    async def save(self, source_name: str, previous_cursor: Optional[str], next_cursor: str) -> None:
        """Record that the page after ``previous_cursor`` is complete"""

    @abstractmethod
    async def mark_status(
        self,
        source_name: str,
        status: ETLStatus,
        error_message: Optional[str] = None
    ) -> None:
        """Record the outcome of a run without moving the cursor"""


class MongoCheckpointStore(CheckpointStore):
    """
    Checkpoints stored as one document per source.

    Document shape: see models.checkpoint.ETLCheckpoint (``_id`` is the
    source name).
    """

    def __init__(self, collection):
        self.collection = collection

    async def load(self, source_name: str) -> Optional[ETLCheckpoint]:
        try:
            doc = await self.collection.find_one({"_id": source_name})
        except PyMongoError as e:
            raise CheckpointError(
                "Failed to read checkpoint",
                context={"source_name": source_name, "operation": "read"},
                original_exception=e
            )
        if doc is None:
            return None
        try:
            return ETLCheckpoint.model_validate(doc)
        except ValidationError as e:
            raise CheckpointError(
                "Stored checkpoint is malformed",
                context={"source_name": source_name, "operation": "read"},
                original_exception=e
            )

    async def save(self, source_name: str, previous_cursor: Optional[str], next_cursor: str) -> None:
        now = utcnow()
        try:
            await self.collection.update_one(
                {"_id": source_name},
                {
                    "$set": {
                        "cursor": next_cursor,
                        "previous_cursor": previous_cursor,
                        "status": ETLStatus.RUNNING.value,
                        "error_message": None,
                        "last_run_at": now,
                        "updated_at": now,
                    },
                    "$inc": {"pages_completed": 1},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True
            )
        except PyMongoError as e:
            raise CheckpointError(
                "Failed to write checkpoint",
                context={"source_name": source_name, "cursor": next_cursor, "operation": "write"},
                original_exception=e
            )
        logger.debug(f"Checkpoint for {source_name} advanced to {next_cursor}")

    async def mark_status(
        self,
        source_name: str,
        status: ETLStatus,
        error_message: Optional[str] = None
    ) -> None:
        now = utcnow()
        try:
            await self.collection.update_one(
                {"_id": source_name},
                {
                    "$set": {
                        "status": status.value,
                        "error_message": error_message,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now, "pages_completed": 0},
                },
                upsert=True
            )
        except PyMongoError as e:
            raise CheckpointError(
                "Failed to update checkpoint status",
                context={"source_name": source_name, "status": status.value, "operation": "write"},
                original_exception=e
            )
