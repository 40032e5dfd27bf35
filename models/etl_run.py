from datetime import datetime, timezone
from typing import Any, Dict, Optional
import uuid

from pydantic import BaseModel, Field

from models.base import ETLStatus


class ETLRunStats(BaseModel):
    """
    Metrics for one pipeline execution.

    Purpose:
    - Summary logged when the pipeline stops
    - Result returned to the caller of ETLRunner.run
    """

    run_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    source_name: str
    mode: str = "all"
    status: ETLStatus = ETLStatus.RUNNING

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    records_extracted: int = 0
    records_enriched: int = 0
    records_dropped: int = 0
    records_transform_failed: int = 0
    records_loaded: int = 0
    records_load_failed: int = 0
    pages_completed: int = 0

    start_cursor: Optional[str] = None
    last_cursor: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def complete(self, status: ETLStatus, error_message: Optional[str] = None):
        self.status = status
        self.error_message = error_message
        self.completed_at = datetime.now(timezone.utc)

    def to_result(self) -> Dict[str, Any]:
        result = {
            "run_id": str(self.run_id),
            "status": self.status.value,
            "mode": self.mode,
            "records_extracted": self.records_extracted,
            "records_enriched": self.records_enriched,
            "records_dropped": self.records_dropped,
            "records_transform_failed": self.records_transform_failed,
            "records_loaded": self.records_loaded,
            "records_load_failed": self.records_load_failed,
            "pages_completed": self.pages_completed,
            "start_cursor": self.start_cursor,
            "last_cursor": self.last_cursor,
            "duration_seconds": self.duration_seconds,
        }
        if self.error_message:
            result["error_message"] = self.error_message
        return result
