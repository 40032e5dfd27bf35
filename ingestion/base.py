"""
Abstract base class for data sources with checkpoint management
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Optional, Union
import asyncio
import logging

from core.exceptions import CheckpointError
from ingestion.checkpoint import CheckpointStore
from models.change_event import ChangeEvent
from models.checkpoint import ETLCheckpoint

logger = logging.getLogger(__name__)

# Called as on_next_page(previous_cursor, next_cursor) at each page boundary.
# May be a plain function or a coroutine function.
PageCallback = Callable[[Optional[str], str], Union[None, Awaitable[None]]]


class DataSource(ABC):
    """
    Abstract base class for all change sources.

    Responsibilities:
    - Produce the ordered stream of change events
    - Checkpoint management (resume from the last completed page)
    """

    def __init__(
        self,
        source_name: str,
        checkpoint_store: Optional[CheckpointStore] = None
    ):
        self.source_name = source_name
        self.checkpoint_store = checkpoint_store

    @abstractmethod
    def extract(
        self,
        stop_event: asyncio.Event,
        start_from: Optional[str] = None,
        on_next_page: Optional[PageCallback] = None
    ) -> AsyncIterator[ChangeEvent]:
        """
        Stream change events until ``stop_event`` is set.

        Args:
            stop_event: Cooperative termination signal
            start_from: Cursor to continue after (None = start of history)
            on_next_page: Invoked with (previous_cursor, next_cursor) each
                time a page completes
        """

    async def get_checkpoint(self) -> Optional[ETLCheckpoint]:
        """Retrieve checkpoint for this source"""
        if self.checkpoint_store is None:
            return None
        return await self.checkpoint_store.load(self.source_name)

    async def resume_point(self) -> Optional[str]:
        """Cursor to resume from, or None to start at the beginning"""
        checkpoint = await self.get_checkpoint()
        if checkpoint is None or not checkpoint.cursor:
            logger.info(f"No checkpoint for {self.source_name}, starting from the beginning")
            return None
        logger.info(
            f"Resuming {self.source_name} after {checkpoint.cursor} "
            f"({checkpoint.pages_completed} pages completed so far)"
        )
        return checkpoint.cursor

    async def record_page(self, previous_cursor: Optional[str], next_cursor: str):
        """
        Log a completed page and persist the new cursor.

        Checkpoint failures are logged only; losing a checkpoint write must
        not stop ingestion.
        """
        logger.info(f"page done: {previous_cursor or '(initial)'}, next page: {next_cursor}")
        if self.checkpoint_store is None:
            return
        try:
            await self.checkpoint_store.save(self.source_name, previous_cursor, next_cursor)
        except CheckpointError as e:
            logger.warning(
                f"Could not persist checkpoint for {self.source_name}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
