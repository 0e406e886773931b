"""Step contracts, step-list entries and the StepResult outcome."""

from flowstep.steps.base import (
    CommandStep,
    QueryStep,
    StepEntry,
    StepKind,
    command_step,
    query_step,
)
from flowstep.steps.schemas import StepResult

__all__ = [
    "CommandStep",
    "QueryStep",
    "StepEntry",
    "StepKind",
    "StepResult",
    "command_step",
    "query_step",
]
