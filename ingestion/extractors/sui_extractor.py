"""
Sui object-change extractor with unbounded retry, caught-up polling and
cooperative cancellation.

This module turns the paginated ``suix_queryTransactionBlocks`` API into one
flat, ordered stream of ChangeEvents:
- Every change record of every transaction block becomes one event
- Transient RPC errors are retried forever with a fixed short delay
- A page without a next cursor means we are caught up; the same cursor is
  polled again after a longer delay, without re-emitting that page
- A stop event is raced against every request
"""

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Dict, Optional

from core.config import SUI_QUERY_MAX_RESULT_LIMIT, get_settings
from core.exceptions import APIExtractionError
from core.sui_client import SuiReadApi
from ingestion.base import DataSource, PageCallback
from ingestion.checkpoint import CheckpointStore
from models.change_event import ChangeEvent
from schemas.sui import TransactionBlockPage

logger = logging.getLogger(__name__)


class SuiExtractor(DataSource):
    """
    Extract object changes from Sui transaction history.

    Attributes:
        retry_delay: Seconds to wait after a failed request (default: 0.5)
        stall_delay: Seconds to wait when no next page exists yet (default: 10)
        page_size: Transaction blocks per request (max 50)
        descending: Walk history newest first
    """

    def __init__(
        self,
        sui: SuiReadApi,
        source_name: Optional[str] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        retry_delay: Optional[float] = None,
        stall_delay: Optional[float] = None,
        page_size: int = SUI_QUERY_MAX_RESULT_LIMIT,
        descending: Optional[bool] = None
    ):
        super().__init__(
            source_name=source_name or get_settings().SOURCE_NAME,
            checkpoint_store=checkpoint_store
        )
        self.sui = sui
        self.retry_delay = get_settings().EXTRACT_RETRY_DELAY if retry_delay is None else retry_delay
        self.stall_delay = get_settings().EXTRACT_STALL_DELAY if stall_delay is None else stall_delay
        self.page_size = min(page_size, SUI_QUERY_MAX_RESULT_LIMIT)
        self.descending = get_settings().SUI_QUERY_DESCENDING if descending is None else descending

    @staticmethod
    def build_query() -> Dict[str, Any]:
        """All transaction blocks, with their object changes"""
        return {"filter": None, "options": {"showObjectChanges": True}}

    async def _fetch_page(
        self,
        stop_event: asyncio.Event,
        cursor: Optional[str]
    ) -> Optional[TransactionBlockPage]:
        """
        Request one page, racing the request against ``stop_event``.

        Returns:
            The page, or None if the stop event fired first (the in-flight
            request is abandoned)

        Raises:
            APIExtractionError: If the request itself failed
        """
        request = asyncio.ensure_future(
            self.sui.query_transaction_blocks(
                self.build_query(),
                cursor=cursor,
                limit=self.page_size,
                descending=self.descending
            )
        )
        stopper = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({request, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in (request, stopper):
                if not future.done():
                    future.cancel()

        if request.done() and not request.cancelled():
            # A finished request wins over a simultaneous stop
            return request.result()
        return None

    async def _pause(self, stop_event: asyncio.Event, delay: float):
        """Sleep for ``delay`` seconds, returning early once stop is requested"""
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(stop_event.wait(), delay)
        except asyncio.TimeoutError:
            pass

    async def extract(
        self,
        stop_event: asyncio.Event,
        start_from: Optional[str] = None,
        on_next_page: Optional[PageCallback] = None
    ) -> AsyncIterator[ChangeEvent]:
        """
        Stream change events until ``stop_event`` is set.

        The stream never ends on its own: once caught up it keeps polling for
        new transactions.
        """
        cursor = start_from
        skip_page = False
        retry_count = 0

        logger.info(
            f"Starting extraction for {self.source_name} "
            f"(cursor: {cursor or '(initial)'}, descending: {self.descending})"
        )

        while not stop_event.is_set():
            try:
                page = await self._fetch_page(stop_event, cursor)
            except APIExtractionError as e:
                retry_count += 1
                logger.warning(
                    f"There was an error reading object changes... retrying (retry #{retry_count}) "
                    f"after {self.retry_delay}s: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                await self._pause(stop_event, self.retry_delay)
                continue

            if page is None:
                break

            retry_count = 0

            if not skip_page:
                for tx_block in page.data:
                    for change in tx_block.object_changes or []:
                        yield ChangeEvent.from_change(tx_block.digest, change)

            if page.next_cursor is None:
                logger.info(
                    f"no next page info from sui, will sleep for {self.stall_delay}s, "
                    f"then try to find the next page..."
                )
                # The data of this position has been emitted; the re-poll must not repeat it
                skip_page = True
                await self._pause(stop_event, self.stall_delay)
                continue

            skip_page = False
            if on_next_page is not None:
                result = on_next_page(cursor, page.next_cursor)
                if inspect.isawaitable(result):
                    await result
            cursor = page.next_cursor

        logger.info(f"Extraction for {self.source_name} stopped at cursor {cursor or '(initial)'}")
