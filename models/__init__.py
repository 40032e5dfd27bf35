"""
Pipeline data models.

Models:
    base: Shared enums (StepStatus, ETLStatus)
    change_event: The unit of work flowing through the pipeline
    checkpoint: Persisted extraction cursor per source
    etl_run: Metrics of one pipeline run

Usage:
    from models.change_event import ChangeEvent
    from models.base import StepStatus, ETLStatus

Example:
    event = ChangeEvent.from_change(tx_block.digest, change)
    event.store_key()  # {"_id": "0x...", "version": "12"}
"""

__all__ = [
    "StepStatus",
    "ETLStatus",
    "ChangeEvent",
    "ETLCheckpoint",
    "ETLRunStats",
]
