"""FlowStep - step-execution pipelines for query and command services.

A pipeline validates its input, creates a fresh context, runs an ordered
list of steps against it, and builds a response:
- QueryTemplate: read-only pipelines
- CommandTemplate: write pipelines with audit info and post-execution events
- FlowStepError: the only error leaving a pipeline, classified by ErrorType
- with_flow_logging(): structured, sanitized logging around any template
"""

from flowstep.context import BaseContext, CommandContext, QueryContext
from flowstep.errors import ErrorResponse, ErrorType, FlowStepError, http_status_for
from flowstep.executor import CommandTemplate, QueryContextAdapter, QueryTemplate
from flowstep.interceptor import FlowInterceptor, FlowOptions, InterceptedFlow, with_flow_logging
from flowstep.logs import FlowLoggingService, LogLevel, Sanitizer
from flowstep.steps import (
    CommandStep,
    QueryStep,
    StepEntry,
    StepKind,
    StepResult,
    command_step,
    query_step,
)

__version__ = "0.1.0"

__all__ = [
    "BaseContext",
    "CommandContext",
    "CommandStep",
    "CommandTemplate",
    "ErrorResponse",
    "ErrorType",
    "FlowInterceptor",
    "FlowLoggingService",
    "FlowOptions",
    "FlowStepError",
    "InterceptedFlow",
    "LogLevel",
    "QueryContext",
    "QueryContextAdapter",
    "QueryStep",
    "QueryTemplate",
    "Sanitizer",
    "StepEntry",
    "StepKind",
    "StepResult",
    "command_step",
    "http_status_for",
    "query_step",
    "with_flow_logging",
]
