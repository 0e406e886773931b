"""Per-invocation contexts for query and command pipelines."""

from flowstep.context.store import AUDIT_PREFIX, BaseContext, CommandContext, QueryContext

__all__ = [
    "AUDIT_PREFIX",
    "BaseContext",
    "CommandContext",
    "QueryContext",
]
