"""Structured log event schemas.

Every event the logging service emits is a LogEntry serialized to JSON and
appended to a human-readable prefix, e.g.:

    [user-summary] Completed in 12ms - {"execution_id": "3f9a1c2b", ...}
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class LogLevel(str, Enum):
    """Severity of a flow's log events."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def numeric(self) -> int:
        return _NUMERIC_LEVELS[self]


_NUMERIC_LEVELS = {
    LogLevel.TRACE: TRACE,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class LogPhase(str, Enum):
    START = "START"
    END = "END"
    ERROR = "ERROR"
    COMPLETE = "COMPLETE"
    CUSTOM = "CUSTOM"


class ErrorInfo(BaseModel):
    """Description of a failure, for the log only. Never returned to callers."""

    type: str
    message: Optional[str] = None
    stack_trace: Optional[str] = Field(
        default=None,
        description="Innermost traceback frames, truncated",
    )
    cause_chain: list[str] = Field(
        default_factory=list,
        description="'Type: message' for each chained cause, outermost first",
    )
    root_cause: Optional[str] = None


class PerformanceMetrics(BaseModel):
    execution_time_ms: int
    memory_used_mb: int = Field(description="Resident set size of this process")
    memory_max_mb: int = Field(description="Total physical memory")
    thread_name: str
    timestamp: datetime = Field(default_factory=datetime.now)


class LogEntry(BaseModel):
    """One structured event of a flow execution."""

    timestamp: datetime = Field(default_factory=datetime.now)
    execution_id: Optional[str] = None
    service_code: str
    service_description: Optional[str] = None
    step_name: Optional[str] = None
    phase: LogPhase
    message: str
    execution_time_ms: Optional[int] = None
    request: Any = None
    response: Any = None
    step_data: Any = None
    error: Optional[ErrorInfo] = None
    performance_metrics: Optional[PerformanceMetrics] = None
    tags: list[str] = Field(default_factory=list)
