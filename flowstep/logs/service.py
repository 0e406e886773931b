"""Structured, sanitizing logging for flow executions.

The service is driven by the interceptor, never by the templates. For each
execution it:
- assigns a short random execution id and keeps it, with the service code
  and tags, in a ContextVar for the duration of the call (isolated per
  thread and per asyncio task)
- emits START / END / ERROR events, step events and custom messages as
  JSON LogEntry records, with request/response payloads sanitized
- emits only when the chosen level is enabled on the flow's logger, and
  checks that before sanitizing anything

Loggers are named "flowstep.service.<code>" and cached process-wide. Each
carries an ExecutionContextFilter, so records expose execution_id,
service_code and tags to formatters, e.g.
"%(asctime)s [%(execution_id)s] %(name)s - %(message)s". Add the filter to
a handler to get the same attributes on records from other loggers.
"""

import logging
import threading
import traceback
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import psutil
from pydantic_core import PydanticSerializationError

from flowstep.config import FlowStepSettings, get_settings
from flowstep.logs.sanitizer import Sanitizer
from flowstep.logs.schemas import (
    ErrorInfo,
    LogEntry,
    LogLevel,
    LogPhase,
    PerformanceMetrics,
)

logger = logging.getLogger(__name__)

LOGGER_PREFIX = "flowstep.service."
MAX_CAUSE_CHAIN = 10
_MB = 1024 * 1024


@dataclass(frozen=True)
class ExecutionScope:
    """Ambient data of the flow execution running in the current context."""

    execution_id: str
    service_code: str
    service_description: Optional[str] = None
    tags: tuple[str, ...] = field(default_factory=tuple)


_current_scope: ContextVar[Optional[ExecutionScope]] = ContextVar(
    "flowstep_execution_scope", default=None
)


def current_scope() -> Optional[ExecutionScope]:
    return _current_scope.get()


def current_execution_id() -> Optional[str]:
    scope = _current_scope.get()
    return scope.execution_id if scope else None


def generate_execution_id() -> str:
    return uuid.uuid4().hex[:8]


class ExecutionContextFilter(logging.Filter):
    """Copies the current ExecutionScope onto log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        scope = _current_scope.get()
        record.execution_id = scope.execution_id if scope else "-"
        record.service_code = scope.service_code if scope else "-"
        record.tags = ",".join(scope.tags) if scope else ""
        return True


# Per-service logger cache: created once, read many
_logger_cache: dict[str, logging.Logger] = {}
_logger_cache_lock = threading.Lock()


def get_flow_logger(service_code: str) -> logging.Logger:
    """Get (or create on first use) the logger for a service code."""
    cached = _logger_cache.get(service_code)
    if cached is not None:
        return cached
    with _logger_cache_lock:
        cached = _logger_cache.get(service_code)
        if cached is None:
            cached = logging.getLogger(LOGGER_PREFIX + service_code)
            cached.addFilter(ExecutionContextFilter())
            _logger_cache[service_code] = cached
        return cached


def build_error_info(
    error: BaseException,
    include_stack_trace: bool = False,
    stack_depth: int = 10,
) -> ErrorInfo:
    """Describe an exception for the log: type, message, causes, root cause."""
    chain = []
    seen = {id(error)}
    current = _next_cause(error)
    while current is not None and id(current) not in seen and len(chain) < MAX_CAUSE_CHAIN:
        seen.add(id(current))
        chain.append(f"{type(current).__name__}: {current}")
        current = _next_cause(current)

    stack_trace = None
    if include_stack_trace and stack_depth > 0 and error.__traceback__ is not None:
        frames = traceback.format_tb(error.__traceback__)[-stack_depth:]
        stack_trace = "".join(frames)

    return ErrorInfo(
        type=type(error).__name__,
        message=str(error) or None,
        stack_trace=stack_trace,
        cause_chain=chain,
        root_cause=chain[-1] if chain else None,
    )


def _next_cause(error: BaseException) -> Optional[BaseException]:
    if error.__cause__ is not None:
        return error.__cause__
    if error.__suppress_context__:
        return None
    return error.__context__


def collect_performance_metrics(execution_time_ms: int) -> PerformanceMetrics:
    process = psutil.Process()
    return PerformanceMetrics(
        execution_time_ms=execution_time_ms,
        memory_used_mb=process.memory_info().rss // _MB,
        memory_max_mb=psutil.virtual_memory().total // _MB,
        thread_name=threading.current_thread().name,
    )


class FlowLoggingService:
    """Emits the structured events of flow executions."""

    def __init__(
        self,
        settings: Optional[FlowStepSettings] = None,
        sanitizer: Optional[Sanitizer] = None,
    ):
        self.settings = settings or get_settings()
        self.sanitizer = sanitizer or Sanitizer.from_settings(self.settings.logging)

    def log_service_start(
        self,
        service_code: str,
        service_desc: str,
        request: Any,
        log_level: LogLevel,
        tags: Sequence[str] = (),
    ) -> Token:
        """Open an execution scope and log the START event.

        Returns:
            Token to pass to log_service_end / log_service_error, which
            restore the previous scope.
        """
        scope = ExecutionScope(
            execution_id=generate_execution_id(),
            service_code=service_code,
            service_description=service_desc,
            tags=tuple(tags),
        )
        token = _current_scope.set(scope)
        if not self._enabled(service_code, log_level):
            return token

        entry = LogEntry(
            execution_id=scope.execution_id,
            service_code=service_code,
            service_description=service_desc,
            phase=LogPhase.START,
            message="Service execution started",
            request=self.sanitizer.sanitize(request),
            tags=list(scope.tags),
        )
        self._emit(service_code, log_level, f"[{service_code}] {service_desc}", entry)
        return token

    def log_service_end(
        self,
        service_code: str,
        response: Any,
        execution_time_ms: int,
        log_level: LogLevel,
        include_response: bool = True,
        include_metrics: bool = True,
        token: Optional[Token] = None,
    ) -> None:
        try:
            if not self._enabled(service_code, log_level):
                return
            entry = self._entry(
                service_code,
                phase=LogPhase.END,
                message="Service execution completed successfully",
                execution_time_ms=execution_time_ms,
            )
            if include_response and response is not None:
                entry.response = self.sanitizer.sanitize(response)
            if include_metrics:
                entry.performance_metrics = collect_performance_metrics(execution_time_ms)
            self._emit(
                service_code,
                log_level,
                f"[{service_code}] Completed in {execution_time_ms}ms",
                entry,
            )
        finally:
            self._close_scope(token)

    def log_service_error(
        self,
        service_code: str,
        error: BaseException,
        execution_time_ms: int,
        log_level: LogLevel,
        request: Any = None,
        token: Optional[Token] = None,
    ) -> None:
        try:
            if not self._enabled(service_code, log_level):
                return
            entry = self._entry(
                service_code,
                phase=LogPhase.ERROR,
                message="Service execution failed",
                execution_time_ms=execution_time_ms,
            )
            entry.error = build_error_info(
                error,
                include_stack_trace=self.settings.logging.include_stack_traces,
                stack_depth=self.settings.logging.stack_trace_depth,
            )
            entry.request = self.sanitizer.sanitize(request)
            self._emit(
                service_code,
                log_level,
                f"[{service_code}] Failed after {execution_time_ms}ms",
                entry,
            )
        finally:
            self._close_scope(token)

    def log_step_execution(
        self,
        service_code: str,
        step_name: str,
        phase: LogPhase,
        step_time_ms: int,
        step_data: Any,
        log_level: LogLevel,
    ) -> None:
        if not self._enabled(service_code, log_level):
            return
        entry = self._entry(
            service_code,
            phase=phase,
            message=f"Step {step_name}: {phase.value}",
            execution_time_ms=step_time_ms,
        )
        entry.step_name = step_name
        entry.step_data = self.sanitizer.sanitize(step_data)
        self._emit(service_code, log_level, f"[{service_code}] Step {step_name}", entry)

    def log_custom_message(
        self,
        service_code: str,
        message: str,
        data: Any,
        log_level: LogLevel,
    ) -> None:
        if not self._enabled(service_code, log_level):
            return
        entry = self._entry(service_code, phase=LogPhase.CUSTOM, message=message)
        entry.step_data = self.sanitizer.sanitize(data)
        self._emit(service_code, log_level, f"[{service_code}] {message}", entry)

    def log_slow_execution(self, service_code: str, execution_time_ms: int) -> None:
        threshold = self.settings.performance.slow_query_threshold_ms
        entry = self._entry(
            service_code,
            phase=LogPhase.CUSTOM,
            message=f"Slow execution: {execution_time_ms}ms exceeds {threshold}ms",
            execution_time_ms=execution_time_ms,
        )
        self._emit(service_code, LogLevel.WARN, f"[{service_code}] Slow execution", entry)

    # Helpers

    @staticmethod
    def _enabled(service_code: str, log_level: LogLevel) -> bool:
        return get_flow_logger(service_code).isEnabledFor(log_level.numeric)

    @staticmethod
    def _entry(service_code: str, **fields) -> LogEntry:
        scope = _current_scope.get()
        return LogEntry(
            execution_id=scope.execution_id if scope else None,
            service_code=service_code,
            tags=list(scope.tags) if scope else [],
            **fields,
        )

    @staticmethod
    def _close_scope(token: Optional[Token]) -> None:
        if token is not None:
            _current_scope.reset(token)
        else:
            _current_scope.set(None)

    @staticmethod
    def _emit(service_code: str, log_level: LogLevel, prefix: str, entry: LogEntry) -> None:
        flow_logger = get_flow_logger(service_code)
        level = log_level.numeric
        if not flow_logger.isEnabledFor(level):
            return
        try:
            payload = entry.model_dump_json(exclude_none=True)
        except PydanticSerializationError as e:
            logger.warning(f"Failed to serialize log entry to JSON: {e}")
            payload = repr(entry)
        flow_logger.log(level, f"{prefix} - {payload}")
