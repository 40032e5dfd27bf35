"""
Shared enums for pipeline models
"""

import enum


class StepStatus(str, enum.Enum):
    """Per-item outcome of a pipeline stage"""
    OK = "Ok"
    ERR = "Err"

    def __str__(self) -> str:
        return self.value


class ETLStatus(str, enum.Enum):
    """ETL run / checkpoint status"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    HALTED = "halted"
    FAILED = "failed"
