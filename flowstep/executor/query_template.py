"""Read-only pipeline: validate -> init context -> run steps -> build response.

Subclasses provide `steps()` and `build_response()`, and may override
`validate()`. The flow itself lives in `execute()` and is not meant to be
overridden.

Usage:
    class UserSummaryQuery(QueryTemplate):
        def validate(self, request):
            if request.user_id <= 0:
                return StepResult.failure("ID must be positive", "VAL_001", ErrorType.VALIDATION)
            return StepResult.ok()

        def steps(self, request, context):
            return [FetchUserStep(), FetchOrdersStep()]

        def build_response(self, context):
            return UserSummary(user=context.get("user"), orders=context.get("orders"))
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from flowstep.context.store import QueryContext
from flowstep.errors import FlowStepError
from flowstep.executor.lifecycle import build_step_list, ensure_success
from flowstep.steps.base import StepKind
from flowstep.steps.schemas import StepResult

logger = logging.getLogger(__name__)


class QueryTemplate(ABC):
    """Skeleton of a read-only pipeline."""

    def execute(self, request: Any) -> Any:
        """Run the pipeline for one request.

        Raises:
            FlowStepError: The failing step's (or validate's) error unchanged,
                or a generic SYSTEM error for any unexpected exception.
        """
        logger.debug(f"Starting query execution for request: {type(request).__name__}")

        try:
            ensure_success(self.validate(request), "Query validation")

            context = QueryContext()
            context.request = request
            context.mark_start_time()

            entries = build_step_list(self.steps(request, context), (StepKind.QUERY,))
            logger.debug(f"Executing {len(entries)} query steps")

            for i, entry in enumerate(entries, start=1):
                logger.debug(f"Executing query step {i}: {entry.name}")
                ensure_success(entry.step.execute(context), f"Query step {i} ({entry.name})")
                logger.debug(f"Query step {i} completed successfully")

            response = self.build_response(context)
            logger.debug(
                f"Query execution completed successfully in "
                f"{context.execution_duration()}ms"
            )
            return response

        except FlowStepError as e:
            logger.error(f"Business exception in query execution: {e.message}")
            raise
        except Exception:
            logger.exception("Unexpected error in query execution")

        # Raised outside the except block so the original fault is not
        # attached as __context__.
        raise FlowStepError.system("query")

    def validate(self, request: Any) -> StepResult:
        """Check the request before anything else runs. Default: always valid."""
        return StepResult.ok()

    @abstractmethod
    def steps(self, request: Any, context: QueryContext) -> Sequence[Any]:
        """Ordered steps for this request.

        Called once, before the first step runs, so the selection can only
        depend on the request itself.
        """

    @abstractmethod
    def build_response(self, context: QueryContext) -> Any:
        """Build the response once every step has succeeded."""
