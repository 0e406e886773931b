"""Runs query steps inside command pipelines.

A command pipeline's step list may mix command and query entries so that
read-only logic can be reused. Query entries see a QueryContextAdapter: a
QueryContext facade over the live CommandContext. Every storage operation
goes straight to the command context, so both step kinds share one
scratchpad and see each other's writes immediately.
"""

from typing import Any

from flowstep.context.store import CommandContext, QueryContext
from flowstep.steps.base import StepEntry, StepKind
from flowstep.steps.schemas import StepResult


class QueryContextAdapter(QueryContext):
    """QueryContext view of a CommandContext. Holds no storage of its own."""

    def __init__(self, command_context: CommandContext):
        # Storage lives on the command context.
        self._target = command_context

    @property
    def target(self) -> CommandContext:
        return self._target

    def put(self, key: str, value: Any) -> None:
        self._target.put(key, value)

    def get(self, key: str) -> Any:
        return self._target.get(key)

    def has(self, key: str) -> bool:
        return self._target.has(key)

    def get_or_default(self, key: str, default: Any) -> Any:
        return self._target.get_or_default(key, default)

    def remove(self, key: str) -> Any:
        return self._target.remove(key)

    def clear(self) -> None:
        self._target.clear()

    def size(self) -> int:
        return self._target.size()

    def keys(self) -> list[str]:
        return self._target.keys()

    def mark_start_time(self) -> None:
        self._target.mark_start_time()

    def execution_duration(self) -> int:
        return self._target.execution_duration()

    @property
    def request(self) -> Any:
        return self._target.command

    @request.setter
    def request(self, value: Any) -> None:
        raise TypeError("Cannot set request in command context adapter")


def dispatch_step(entry: StepEntry, context: CommandContext) -> StepResult:
    """Run one entry of a command pipeline against the live context."""
    if entry.kind == StepKind.COMMAND:
        return entry.step.execute(context)
    if entry.kind == StepKind.QUERY:
        return entry.step.execute(QueryContextAdapter(context))
    raise TypeError(f"Unknown step kind: {entry.kind!r}")
