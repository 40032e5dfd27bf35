from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.base import ETLStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ETLCheckpoint(BaseModel):
    """
    Tracks the extraction cursor per source.

    Purpose:
    - Resume extraction from the last completed page
    - Expose progress and last failure to operators

    Design:
    - One document per source, keyed by source name
    - ``cursor`` is the Sui transaction digest to continue after
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    source_name: str = Field(..., alias="_id")
    cursor: Optional[str] = None
    previous_cursor: Optional[str] = None
    pages_completed: int = 0

    status: ETLStatus = ETLStatus.PENDING
    error_message: Optional[str] = None

    last_run_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
