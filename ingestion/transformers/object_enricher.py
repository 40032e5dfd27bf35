"""
Attach historical object state to change events.

Events are batched so one multi-get can serve up to 50 lookups. Results are
then sent on one by one, so downstream stages can apply their own batching.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterable, AsyncIterator, List, Optional, Tuple

from core.config import SUI_QUERY_MAX_RESULT_LIMIT, get_settings
from core.exceptions import APIExtractionError, BulkResponseMismatchError
from core.sui_client import SuiReadApi
from ingestion.batching import chunks_timeout
from models.base import StepStatus
from models.change_event import ChangeEvent
from schemas.sui import ObjectData, ObjectDataOptions, PastObjectResponse, PastObjectStatus

logger = logging.getLogger(__name__)

# Fields requested for every historical object
QUERY_OPTIONS = ObjectDataOptions(
    show_type=True,
    show_owner=True,
    show_previous_transaction=True,
    show_display=False,
    show_content=True,
    show_bcs=True,
    show_storage_rebate=True,
)


class ObjectEnricher:
    """
    Resolve the object snapshot each change refers to.

    Handles:
    - Partitioning: transferred/deleted/wrapped changes pass through untouched
    - One multi-get per batch for published/created/mutated changes
    - Per-item fallback when the multi-get fails as a whole
    - Dropping (with a log line) changes whose object version cannot be found

    Attributes:
        dropped: Number of events absorbed because no snapshot was found
    """

    def __init__(
        self,
        sui: SuiReadApi,
        batch_size: Optional[int] = None,
        batch_timeout: Optional[float] = None
    ):
        self.sui = sui
        self.batch_size = min(batch_size or get_settings().TRANSFORM_BATCH_SIZE, SUI_QUERY_MAX_RESULT_LIMIT)
        self.batch_timeout = batch_timeout or get_settings().TRANSFORM_BATCH_TIMEOUT
        self.dropped = 0

    @staticmethod
    def parse_past_object_response(event: ChangeEvent, res: PastObjectResponse) -> Optional[ObjectData]:
        """Snapshot for a found version; log and return None for anything else"""
        obj = res.object_data()
        if obj is not None:
            return obj

        if res.status == PastObjectStatus.OBJECT_DELETED:
            logger.info(
                f"object {event.object_id} was deleted at the requested version {event.version} "
                f"(digest {event.digest}), skipping for now"
            )
        elif res.status == PastObjectStatus.OBJECT_NOT_EXISTS:
            logger.info(f"object {event.object_id} doesn't exist (digest {event.digest})")
        elif res.status == PastObjectStatus.VERSION_NOT_FOUND:
            logger.info(f"object {event.object_id} version {event.version} not found (digest {event.digest})")
        elif res.status == PastObjectStatus.VERSION_TOO_HIGH:
            details = res.details if isinstance(res.details, dict) else {}
            logger.info(
                f"object {event.object_id} version too high: asked {event.version}, "
                f"latest {details.get('latest_version')} (digest {event.digest})"
            )
        return None

    def _resolve(self, event: ChangeEvent, res: PastObjectResponse) -> Optional[ChangeEvent]:
        obj = self.parse_past_object_response(event, res)
        if obj is None:
            # TODO decide whether these changes should be stored as tombstones instead of dropped
            self.dropped += 1
            return None
        event.object = obj
        return event

    async def fetch_individually(self, chunk: List[ChangeEvent]) -> AsyncIterator[Tuple[StepStatus, ChangeEvent]]:
        """Look up each event on its own, sequentially"""
        for event in chunk:
            try:
                res = await self.sui.try_get_past_object(event.object_id, event.version, QUERY_OPTIONS)
            except APIExtractionError as e:
                logger.error(
                    f"individual fetch also failed for object {event.object_id} "
                    f"version {event.version} (digest {event.digest}): {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                yield StepStatus.ERR, event
                continue

            if self._resolve(event, res) is not None:
                yield StepStatus.OK, event

    async def enrich_batch(self, chunk: List[ChangeEvent]) -> AsyncIterator[Tuple[StepStatus, ChangeEvent]]:
        """
        Enrich one batch.

        Pass-through events come first, then the resolved ones in input order.

        Raises:
            BulkResponseMismatchError: If the multi-get result count differs
                from the request count
        """
        to_fetch = []
        for event in chunk:
            if event.skips_object_fetch():
                yield StepStatus.OK, event
            else:
                to_fetch.append(event)

        if not to_fetch:
            return

        try:
            responses = await self.sui.try_multi_get_past_objects(
                [event.past_object_request() for event in to_fetch],
                QUERY_OPTIONS
            )
        except APIExtractionError as e:
            logger.warning(
                f"cannot fetch object data for one or more of {len(to_fetch)} objects, "
                f"retrying them individually: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            async for result in self.fetch_individually(to_fetch):
                yield result
            return

        # Results are matched to requests by position; the node returns them in request order
        if len(responses) != len(to_fetch):
            raise BulkResponseMismatchError(
                "sui_tryMultiGetPastObjects returned a different number of results than requested",
                context={"requested": len(to_fetch), "received": len(responses)}
            )

        for event, res in zip(to_fetch, responses):
            if self._resolve(event, res) is not None:
                yield StepStatus.OK, event

    async def transform(self, events: AsyncIterable[ChangeEvent]) -> AsyncIterator[Tuple[StepStatus, ChangeEvent]]:
        """Stream (status, event) pairs for a stream of change events"""
        async with aclosing(chunks_timeout(events, self.batch_size, self.batch_timeout)) as chunks:
            async for chunk in chunks:
                logger.debug(f"Enriching batch of {len(chunk)} changes")
                async for result in self.enrich_batch(chunk):
                    yield result
