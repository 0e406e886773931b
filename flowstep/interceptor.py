"""Logging interceptor around template execution.

Wraps a QueryTemplate or CommandTemplate so every `execute()` call is
logged by FlowLoggingService, without the template knowing:

    summary_flow = with_flow_logging(
        UserSummaryQuery(),
        FlowOptions(code="user-summary", desc="User order summary", enable_logging=True),
    )
    response = summary_flow.execute(request)

Behavior per call:
- logging off (globally, or for this flow without force): plain delegation
- START event with the sanitized request, then the template runs
- END event with elapsed time, sanitized response and performance metrics
- on any exception: ERROR event, then the same exception object is re-raised
- log_steps: START / COMPLETE / ERROR events around every step
- command flows with include_audit_info: step events plus transaction and
  post-execution messages

Step and post-execution events come from running the template's own
execute() against a per-call proxy that decorates its step entries and
post-execution hook. The template instance is never modified, so wrapped
and unwrapped uses can run concurrently.
"""

import logging
import time
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, Field

from flowstep.config import FlowStepSettings, get_settings
from flowstep.context.store import CommandContext, QueryContext
from flowstep.executor.command_template import CommandTemplate
from flowstep.executor.lifecycle import build_step_list
from flowstep.executor.query_template import QueryTemplate
from flowstep.logs.schemas import LogLevel, LogPhase
from flowstep.logs.service import FlowLoggingService
from flowstep.steps.base import CommandStep, QueryStep, StepEntry, StepKind
from flowstep.steps.schemas import StepResult

logger = logging.getLogger(__name__)

Template = Union[QueryTemplate, CommandTemplate]


class FlowOptions(BaseModel):
    """Logging options of one flow (one service code)."""

    code: str = Field(description="Service code; selects the logger")
    desc: str = Field(default="", description="Human-readable description")
    enable_logging: bool = False
    log_level: Optional[LogLevel] = Field(
        default=None,
        description="Level of all events; settings default when unset",
    )
    include_request_response: bool = True
    include_performance_metrics: bool = True
    include_audit_info: bool = False
    log_steps: bool = False
    tags: list[str] = Field(default_factory=list)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class InterceptedFlow:
    """A template plus the logging wrapped around each of its executions."""

    def __init__(
        self,
        template: Template,
        options: FlowOptions,
        service: FlowLoggingService,
        settings: FlowStepSettings,
    ):
        if not isinstance(template, (QueryTemplate, CommandTemplate)):
            raise TypeError(
                f"Expected a QueryTemplate or CommandTemplate, got {type(template).__name__}"
            )
        self.template = template
        self.options = options
        self.service = service
        self.settings = settings

    @property
    def is_command(self) -> bool:
        return isinstance(self.template, CommandTemplate)

    @property
    def log_level(self) -> LogLevel:
        return self.options.log_level or LogLevel(self.settings.logging.default_log_level)

    @property
    def logging_active(self) -> bool:
        if not self.settings.enabled or not self.settings.logging.enabled:
            return False
        return self.options.enable_logging or self.settings.logging.force_logging_enabled

    @property
    def audited(self) -> bool:
        return self.is_command and self.options.include_audit_info

    def execute(self, request: Any) -> Any:
        if not self.logging_active:
            return self.template.execute(request)

        opts = self.options
        level = self.log_level
        started = time.monotonic()
        token = self.service.log_service_start(opts.code, opts.desc, request, level, opts.tags)

        try:
            if self.audited:
                self.service.log_custom_message(
                    opts.code,
                    "Transaction started",
                    "Command execution within transactional boundary",
                    level,
                )
            result = self._run(request)
        except Exception as error:
            elapsed = _elapsed_ms(started)
            if self.audited:
                self.service.log_custom_message(
                    opts.code,
                    "Transaction rolled back",
                    f"Command execution failed, transaction rolled back after {elapsed}ms",
                    level,
                )
            self.service.log_service_error(
                opts.code, error, elapsed, level, request=request, token=token
            )
            raise

        elapsed = _elapsed_ms(started)
        if self.audited:
            self.service.log_custom_message(
                opts.code,
                "Transaction completed successfully",
                f"Command execution completed, duration: {elapsed}ms",
                level,
            )
        perf = self.settings.performance
        if perf.enabled and perf.log_slow_queries and elapsed > perf.slow_query_threshold_ms:
            self.service.log_slow_execution(opts.code, elapsed)
        self.service.log_service_end(
            opts.code,
            result,
            elapsed,
            level,
            include_response=opts.include_request_response,
            include_metrics=opts.include_performance_metrics and perf.enabled,
            token=token,
        )
        return result

    def _run(self, request: Any) -> Any:
        if not (self.options.log_steps or self.audited):
            return self.template.execute(request)
        engine = CommandTemplate.execute if self.is_command else QueryTemplate.execute
        return engine(_InstrumentedRun(self), request)

    # Step and post-execution events

    def log_step(self, entry: StepEntry, run: Callable[[], StepResult]) -> StepResult:
        code, level = self.options.code, self.log_level
        started = time.monotonic()
        self.service.log_step_execution(code, entry.name, LogPhase.START, 0, None, level)
        try:
            result = run()
        except Exception as error:
            elapsed = _elapsed_ms(started)
            detail = (
                f"Step failed after {elapsed}ms, error: {error}" if self.audited else str(error)
            )
            self.service.log_step_execution(code, entry.name, LogPhase.ERROR, elapsed, detail, level)
            raise

        elapsed = _elapsed_ms(started)
        if isinstance(result, StepResult) and result.is_failure:
            self.service.log_step_execution(
                code,
                entry.name,
                LogPhase.ERROR,
                elapsed,
                f"Step failed after {elapsed}ms: [{result.error_code}] {result.message}",
                level,
            )
        elif self.audited:
            self.service.log_step_execution(
                code,
                entry.name,
                LogPhase.COMPLETE,
                elapsed,
                f"Step completed successfully in {elapsed}ms",
                level,
            )
        else:
            data = result.data if isinstance(result, StepResult) else result
            self.service.log_step_execution(code, entry.name, LogPhase.COMPLETE, elapsed, data, level)
        return result

    def log_post_execution(self, context: CommandContext) -> None:
        code, level = self.options.code, self.log_level
        self.service.log_custom_message(
            code,
            "Post-execution handling started",
            f"Processing {len(context.events)} events and audit information",
            level,
        )
        try:
            self.template.handle_post_execution(context)
        except Exception as error:
            self.service.log_custom_message(
                code,
                "Post-execution handling failed",
                f"Error in event publishing or audit recording: {error}",
                level,
            )
            raise
        self.service.log_custom_message(
            code,
            "Post-execution handling completed",
            "Events published and audit information recorded",
            level,
        )


class _LoggedQueryStep(QueryStep):
    def __init__(self, flow: InterceptedFlow, entry: StepEntry):
        self._flow = flow
        self._entry = entry

    def execute(self, context: QueryContext) -> StepResult:
        return self._flow.log_step(self._entry, lambda: self._entry.step.execute(context))

    @property
    def step_name(self) -> str:
        return self._entry.name


class _LoggedCommandStep(CommandStep):
    def __init__(self, flow: InterceptedFlow, entry: StepEntry):
        self._flow = flow
        self._entry = entry

    def execute(self, context: CommandContext) -> StepResult:
        return self._flow.log_step(self._entry, lambda: self._entry.step.execute(context))

    @property
    def step_name(self) -> str:
        return self._entry.name


class _InstrumentedRun:
    """Per-call stand-in for a template: same hooks, logged steps."""

    def __init__(self, flow: InterceptedFlow):
        self._flow = flow
        self._template = flow.template

    def __getattr__(self, name: str) -> Any:
        return getattr(self._template, name)

    def steps(self, request: Any, context: Any) -> list[StepEntry]:
        allowed = (StepKind.COMMAND, StepKind.QUERY) if self._flow.is_command else (StepKind.QUERY,)
        entries = build_step_list(self._template.steps(request, context), allowed)
        return [self._wrap(entry) for entry in entries]

    def handle_post_execution(self, context: CommandContext) -> None:
        if self._flow.audited:
            self._flow.log_post_execution(context)
        else:
            self._template.handle_post_execution(context)

    def _wrap(self, entry: StepEntry) -> StepEntry:
        if entry.kind == StepKind.COMMAND:
            return StepEntry(StepKind.COMMAND, _LoggedCommandStep(self._flow, entry))
        return StepEntry(StepKind.QUERY, _LoggedQueryStep(self._flow, entry))


class FlowInterceptor:
    """Factory of InterceptedFlows sharing one logging service and settings."""

    def __init__(
        self,
        service: Optional[FlowLoggingService] = None,
        settings: Optional[FlowStepSettings] = None,
    ):
        self.settings = settings or (service.settings if service else get_settings())
        self.service = service or FlowLoggingService(self.settings)

    def wrap(self, template: Template, options: FlowOptions) -> InterceptedFlow:
        logger.debug(f"Wrapping {type(template).__name__} as flow '{options.code}'")
        return InterceptedFlow(template, options, self.service, self.settings)


def with_flow_logging(
    template: Template,
    options: FlowOptions,
    service: Optional[FlowLoggingService] = None,
    settings: Optional[FlowStepSettings] = None,
) -> InterceptedFlow:
    """Wrap a template with logging. See module docstring."""
    return FlowInterceptor(service, settings).wrap(template, options)
