# ============================================================================
# File: ingestion/runner.py
# Description: Streaming ETL driver for Sui object changes
# ============================================================================
"""
ETL Runner - Composes Extract, Transform, Load into one continuous flow.

This module provides:
- Extract -> Transform -> Load streaming with per-item status
- Fail-fast halt when an item fails enrichment
- Per-item accounting of drops and store failures
- Checkpoint bookkeeping through the page-boundary callback
"""

from contextlib import aclosing
from typing import Any, AsyncIterable, AsyncIterator, Dict, Optional, Tuple
import asyncio
import logging

from core.exceptions import CheckpointError, ETLException
from ingestion.base import DataSource
from ingestion.loaders.mongo_loader import MongoLoader
from ingestion.transformers.object_enricher import ObjectEnricher
from models.base import ETLStatus, StepStatus
from models.change_event import ChangeEvent
from models.etl_run import ETLRunStats

logger = logging.getLogger(__name__)

MODES = ("extract", "transform", "all")


class ETLRunner:
    """
    Streaming ETL orchestrator.

    Responsibilities:
    - Wire extractor -> enricher -> loader
    - Stop the whole flow on the first enrichment failure
    - Track checkpoint advancement and run metrics
    """

    def __init__(
        self,
        extractor: DataSource,
        enricher: Optional[ObjectEnricher] = None,
        loader: Optional[MongoLoader] = None
    ):
        self.extractor = extractor
        self.enricher = enricher
        self.loader = loader
        self.stats: Optional[ETLRunStats] = None
        self.halted_on: Optional[ChangeEvent] = None

    async def _on_next_page(self, previous_cursor: Optional[str], next_cursor: str):
        self.stats.pages_completed += 1
        self.stats.last_cursor = next_cursor
        await self.extractor.record_page(previous_cursor, next_cursor)

    async def _count_extracted(self, events: AsyncIterable[ChangeEvent]) -> AsyncIterator[ChangeEvent]:
        async with aclosing(events) as events:
            async for event in events:
                self.stats.records_extracted += 1
                yield event

    async def halt_on_failure(
        self,
        results: AsyncIterable[Tuple[StepStatus, ChangeEvent]]
    ) -> AsyncIterator[ChangeEvent]:
        """
        Pass OK items on; stop at the first ERR.

        A failed item halts the stream instead of being skipped, so an
        operator can investigate before any data is silently lost.
        """
        async with aclosing(results) as results:
            async for status, item in results:
                if status == StepStatus.OK:
                    if item.object is not None:
                        self.stats.records_enriched += 1
                    yield item
                    continue

                self.stats.records_transform_failed += 1
                self.halted_on = item
                logger.error(
                    f"failed to fetch item! stopping stream, please investigate if there's a bug "
                    f"that needs fixing! digest={item.digest} object={item.object_id} version={item.version}",
                    extra={"error_context": {"item": item.model_dump(mode="json")}}
                )
                return

    async def _drain_extract(self, events: AsyncIterable[ChangeEvent]):
        async with aclosing(events) as events:
            async for event in events:
                logger.debug(f"extracted {event.change.type.value} {event.object_id}@{event.version} ({event.digest})")

    async def _drain_transform(self, items: AsyncIterable[ChangeEvent]):
        async with aclosing(items) as items:
            async for item in items:
                logger.debug(f"enriched {item.change.type.value} {item.object_id}@{item.version} ({item.digest})")

    async def _drain_load(self, items: AsyncIterable[ChangeEvent]):
        async with aclosing(self.loader.load(items)) as results:
            async for status, item in results:
                if status == StepStatus.OK:
                    self.stats.records_loaded += 1
                else:
                    self.stats.records_load_failed += 1

    def _final_status(self) -> ETLStatus:
        if self.halted_on is not None:
            return ETLStatus.HALTED
        if self.stats.records_load_failed:
            return ETLStatus.PARTIAL
        return ETLStatus.SUCCESS

    async def _mark_checkpoint(self, status: ETLStatus, error_message: Optional[str] = None):
        store = self.extractor.checkpoint_store
        if store is None:
            return
        try:
            await store.mark_status(self.extractor.source_name, status, error_message)
        except CheckpointError as e:
            logger.warning(
                f"Could not record final status for {self.extractor.source_name}: {e.message}",
                extra={"error_context": e.to_dict()}
            )

    async def run(
        self,
        stop_event: asyncio.Event,
        start_from: Optional[str] = None,
        mode: str = "all"
    ) -> Dict[str, Any]:
        """
        Run the pipeline until ``stop_event`` is set or an item fails enrichment.

        Pipeline phases:
        1. Extract - Page through transaction blocks (extract, transform, all)
        2. Transform - Attach historical objects, halt on failure (transform, all)
        3. Load - Delete / upsert into the document store (all)

        Args:
            stop_event: Cooperative termination signal for the extractor
            start_from: Cursor to continue after (None = beginning of history)
            mode: "extract", "transform" or "all"

        Returns:
            Dictionary with run statistics (see ETLRunStats.to_result)

        Raises:
            BulkResponseMismatchError: If the node breaks the multi-get contract
            ETLException: For any other unexpected error
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r}, expected one of {', '.join(MODES)}")
        if mode in ("transform", "all") and self.enricher is None:
            raise ValueError(f"Mode {mode!r} needs an enricher")
        if mode == "all" and self.loader is None:
            raise ValueError("Mode 'all' needs a loader")

        self.stats = ETLRunStats(source_name=self.extractor.source_name, mode=mode, start_cursor=start_from)
        self.halted_on = None
        dropped_before = self.enricher.dropped if self.enricher is not None else 0

        logger.info(f"Starting {mode} pipeline for {self.extractor.source_name}")

        try:
            events = self._count_extracted(
                self.extractor.extract(stop_event, start_from, self._on_next_page)
            )

            if mode == "extract":
                await self._drain_extract(events)
            else:
                items = self.halt_on_failure(self.enricher.transform(events))
                if mode == "transform":
                    await self._drain_transform(items)
                else:
                    await self._drain_load(items)

        except ETLException as e:
            logger.error(
                f"ETL pipeline failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            self.stats.complete(ETLStatus.FAILED, error_message=e.message)
            await self._mark_checkpoint(ETLStatus.FAILED, e.message)
            raise

        except Exception as e:
            logger.exception("Unexpected error in ETL pipeline")
            self.stats.complete(ETLStatus.FAILED, error_message=str(e))
            await self._mark_checkpoint(ETLStatus.FAILED, str(e))
            raise ETLException(
                "Unexpected error in ETL pipeline",
                context={
                    "source_name": self.extractor.source_name,
                    "mode": mode,
                    "records_extracted": self.stats.records_extracted,
                    "records_loaded": self.stats.records_loaded,
                    "last_cursor": self.stats.last_cursor
                },
                original_exception=e
            )

        finally:
            if self.enricher is not None:
                self.stats.records_dropped = self.enricher.dropped - dropped_before

        status = self._final_status()
        error_message = None
        if self.halted_on is not None:
            error_message = f"enrichment failed for {self.halted_on.object_id}@{self.halted_on.version}"
        elif self.stats.records_load_failed:
            error_message = f"{self.stats.records_load_failed} store operations failed"

        self.stats.complete(status, error_message=error_message)
        await self._mark_checkpoint(status, error_message)

        result = self.stats.to_result()
        logger.info(
            f"ETL run completed: {result['status']} - "
            f"Extracted: {result['records_extracted']}, Enriched: {result['records_enriched']}, "
            f"Dropped: {result['records_dropped']}, Loaded: {result['records_loaded']}, "
            f"Load failed: {result['records_load_failed']}, Pages: {result['pages_completed']}"
        )
        return result
