"""Helpers shared by the query and command templates."""

import logging
from typing import Any, Iterable

from flowstep.errors import FlowStepError
from flowstep.steps.base import StepEntry, StepKind
from flowstep.steps.schemas import StepResult

logger = logging.getLogger(__name__)


def build_step_list(steps: Iterable[Any], allowed: tuple[StepKind, ...]) -> list[StepEntry]:
    """Normalize a template's step list into entries of the allowed kinds.

    Raises:
        TypeError: On an entry that is not a step, or of a kind the
            pipeline cannot run.
    """
    if steps is None:
        raise TypeError("steps() returned None; return an empty list for no steps")
    entries = []
    for obj in steps:
        entry = StepEntry.of(obj)
        if entry.kind not in allowed:
            raise TypeError(
                f"{entry.kind.value} step {entry.name} cannot run in this pipeline"
            )
        entries.append(entry)
    return entries


def ensure_success(result: Any, label: str) -> None:
    """Raise the FlowStepError matching a failed result.

    Raises:
        FlowStepError: If the result is a failure.
        TypeError: If the hook returned something other than a StepResult.
    """
    if not isinstance(result, StepResult):
        raise TypeError(f"{label} returned {type(result).__name__}, expected StepResult")
    if result.success:
        return
    logger.warning(f"{label} failed: {result.message}")
    raise FlowStepError.from_result(result)
