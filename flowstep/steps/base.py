"""Step contracts and the step-list entry type.

Two capability kinds:
- QueryStep: reads from a QueryContext, no side effects by convention
- CommandStep: may write, receives the live CommandContext

Step lists are built from StepEntry values, which record the capability
kind explicitly so the engine can dispatch without guessing. Subclass
instances can go into a list as-is (they are converted with StepEntry.of);
plain functions must be wrapped with query_step() or command_step().

Steps must be stateless: the same instance may run in many concurrent
pipeline invocations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from flowstep.context.store import CommandContext, QueryContext
from flowstep.steps.schemas import StepResult


class StepKind(str, Enum):
    QUERY = "query"
    COMMAND = "command"


class QueryStep(ABC):
    """Read-only unit of pipeline logic."""

    @abstractmethod
    def execute(self, context: QueryContext) -> StepResult:
        ...

    @property
    def step_name(self) -> str:
        return type(self).__name__


class CommandStep(ABC):
    """Side-effecting unit of pipeline logic."""

    @abstractmethod
    def execute(self, context: CommandContext) -> StepResult:
        ...

    @property
    def step_name(self) -> str:
        return type(self).__name__


class _FunctionQueryStep(QueryStep):
    def __init__(self, fn: Callable[[QueryContext], StepResult]):
        self._fn = fn

    def execute(self, context: QueryContext) -> StepResult:
        return self._fn(context)

    @property
    def step_name(self) -> str:
        return getattr(self._fn, "__name__", type(self._fn).__name__)


class _FunctionCommandStep(CommandStep):
    def __init__(self, fn: Callable[[CommandContext], StepResult]):
        self._fn = fn

    def execute(self, context: CommandContext) -> StepResult:
        return self._fn(context)

    @property
    def step_name(self) -> str:
        return getattr(self._fn, "__name__", type(self._fn).__name__)


AnyStep = Union[QueryStep, CommandStep]


@dataclass(frozen=True)
class StepEntry:
    """One element of a step list: a step tagged with its capability kind."""

    kind: StepKind
    step: AnyStep

    def __post_init__(self):
        expected = QueryStep if self.kind == StepKind.QUERY else CommandStep
        if not isinstance(self.step, expected):
            raise TypeError(
                f"{self.kind.value} entry needs a {expected.__name__}, "
                f"got {type(self.step).__name__}"
            )

    @property
    def name(self) -> str:
        return self.step.step_name

    @classmethod
    def of(cls, obj: Any) -> "StepEntry":
        """Tag a raw step instance with its kind.

        Raises:
            TypeError: If obj is neither a StepEntry, QueryStep nor CommandStep.
        """
        if isinstance(obj, StepEntry):
            return obj
        if isinstance(obj, CommandStep):
            return cls(StepKind.COMMAND, obj)
        if isinstance(obj, QueryStep):
            return cls(StepKind.QUERY, obj)
        raise TypeError(
            f"Step must be either CommandStep or QueryStep: {type(obj).__name__}"
        )


def query_step(step: Union[QueryStep, Callable[[QueryContext], StepResult]]) -> StepEntry:
    """Build a query entry from a QueryStep or a plain function."""
    if not isinstance(step, QueryStep):
        if not callable(step):
            raise TypeError(f"Not a query step: {step!r}")
        step = _FunctionQueryStep(step)
    return StepEntry(StepKind.QUERY, step)


def command_step(step: Union[CommandStep, Callable[[CommandContext], StepResult]]) -> StepEntry:
    """Build a command entry from a CommandStep or a plain function."""
    if not isinstance(step, CommandStep):
        if not callable(step):
            raise TypeError(f"Not a command step: {step!r}")
        step = _FunctionCommandStep(step)
    return StepEntry(StepKind.COMMAND, step)
