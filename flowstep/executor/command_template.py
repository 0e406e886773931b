"""Side-effecting pipeline with audit metadata and post-execution events.

Flow of `execute()`:
1. validate(command)
2. fresh CommandContext with command, audit timestamp and start time,
   then initialize_context(context, command)
3. steps(command, context), run in order; query steps run through a
   QueryContextAdapter over the same context
4. build_response(context)
5. handle_post_execution(context), after the response exists

Transactions are not managed here. Wrap the whole `execute()` call in
whatever unit of work the caller uses.

A failure in handle_post_execution propagates like any other failure:
FlowStepError unchanged, anything else as the generic SYSTEM error. The
already-built response is discarded.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

from flowstep.context.store import CommandContext
from flowstep.errors import FlowStepError
from flowstep.executor.adapter import dispatch_step
from flowstep.executor.lifecycle import build_step_list, ensure_success
from flowstep.steps.base import StepKind
from flowstep.steps.schemas import StepResult

logger = logging.getLogger(__name__)


class CommandTemplate(ABC):
    """Skeleton of a write pipeline."""

    def execute(self, command: Any) -> Any:
        """Run the pipeline for one command.

        Raises:
            FlowStepError: The failing step's (or validate's) error unchanged,
                or a generic SYSTEM error for any unexpected exception.
        """
        logger.debug(f"Starting command execution for: {type(command).__name__}")

        try:
            ensure_success(self.validate(command), "Command validation")

            context = CommandContext()
            context.command = command
            context.timestamp = datetime.now()
            context.mark_start_time()
            self.initialize_context(context, command)

            entries = build_step_list(
                self.steps(command, context),
                (StepKind.COMMAND, StepKind.QUERY),
            )
            logger.debug(f"Executing {len(entries)} command steps")

            for i, entry in enumerate(entries, start=1):
                logger.debug(f"Executing command step {i}: {entry.name}")
                ensure_success(dispatch_step(entry, context), f"Command step {i} ({entry.name})")
                logger.debug(f"Command step {i} completed successfully")

            response = self.build_response(context)
            self.handle_post_execution(context)

            logger.debug(
                f"Command execution completed successfully in "
                f"{context.execution_duration()}ms"
            )
            return response

        except FlowStepError as e:
            logger.error(f"Business exception in command execution: {e.message}")
            raise
        except Exception:
            logger.exception("Unexpected error in command execution")

        # Raised outside the except block so the original fault is not
        # attached as __context__.
        raise FlowStepError.system("command")

    def validate(self, command: Any) -> StepResult:
        """Check the command before anything else runs. Default: always valid."""
        return StepResult.ok()

    def initialize_context(self, context: CommandContext, command: Any) -> None:
        """Attach audit info (user, source, ...) to a fresh context. Default: no-op."""

    @abstractmethod
    def steps(self, command: Any, context: CommandContext) -> Sequence[Any]:
        """Ordered command and query steps for this command.

        Called once, before the first step runs, so the selection can only
        depend on the command itself.
        """

    @abstractmethod
    def build_response(self, context: CommandContext) -> Any:
        """Build the response once every step has succeeded."""

    def handle_post_execution(self, context: CommandContext) -> None:
        """Dispatch context.events. Default: log them without publishing."""
        events = context.events
        if events:
            logger.debug(f"Command generated {len(events)} events for publishing")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Command audit info: {context.audit_info()}")
