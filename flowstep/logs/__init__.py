"""Structured logging and payload sanitization for flow executions."""

from flowstep.logs.sanitizer import MASK_VALUE, Sanitizer
from flowstep.logs.schemas import ErrorInfo, LogEntry, LogLevel, LogPhase, PerformanceMetrics
from flowstep.logs.service import (
    ExecutionContextFilter,
    FlowLoggingService,
    current_execution_id,
    get_flow_logger,
)

__all__ = [
    "MASK_VALUE",
    "ErrorInfo",
    "ExecutionContextFilter",
    "FlowLoggingService",
    "LogEntry",
    "LogLevel",
    "LogPhase",
    "PerformanceMetrics",
    "Sanitizer",
    "current_execution_id",
    "get_flow_logger",
]
