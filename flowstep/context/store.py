"""Per-invocation key-value contexts shared by the steps of one pipeline run.

A context is created fresh by the template at the start of `execute()` and
dropped when it returns or raises. It is not synchronized: exactly one
pipeline run touches it, serially.

Well-known keys:
- "request" / "command": the original input
- "startTime": epoch milliseconds, set by mark_start_time()
- "events": pending events on a command context
- "audit.*": audit information on a command context
"""

import time
from datetime import datetime
from typing import Any, Optional, TypeVar

T = TypeVar("T")

AUDIT_PREFIX = "audit."


class BaseContext:
    """Untyped scratchpad: string keys, arbitrary values."""

    def __init__(self):
        self._store: dict[str, Any] = {}

    def put(self, key: str, value: Any) -> None:
        self._store[key] = value

    def get(self, key: str) -> Any:
        """Value for key, or None when absent. Use has() to tell the two apart."""
        return self._store.get(key)

    def has(self, key: str) -> bool:
        return key in self._store

    def get_or_default(self, key: str, default: Any) -> Any:
        """Stored value, or default when the key is absent or holds None."""
        value = self.get(key)
        return default if value is None else value

    def get_as(self, key: str, expected_type: type[T]) -> Optional[T]:
        """Typed accessor. Raises TypeError if the stored value has another type."""
        value = self.get(key)
        if value is not None and not isinstance(value, expected_type):
            raise TypeError(
                f"Context key '{key}' holds {type(value).__name__}, "
                f"expected {expected_type.__name__}"
            )
        return value

    def remove(self, key: str) -> Any:
        return self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def size(self) -> int:
        return len(self._store)

    def is_empty(self) -> bool:
        return self.size() == 0

    def keys(self) -> list[str]:
        return list(self._store.keys())

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def mark_start_time(self) -> None:
        self.put("startTime", int(time.time() * 1000))

    def execution_duration(self) -> int:
        """Milliseconds since mark_start_time(), or -1 if it was never called."""
        start = self.get("startTime")
        if start is None:
            return -1
        return int(time.time() * 1000) - start

    def __repr__(self) -> str:
        return f"{type(self).__name__}(keys={sorted(self.keys())})"


class QueryContext(BaseContext):
    """Context of a read-only pipeline run."""

    @property
    def request(self) -> Any:
        return self.get("request")

    @request.setter
    def request(self, value: Any) -> None:
        self.put("request", value)

    @property
    def trace_id(self) -> Optional[str]:
        return self.get("traceId")

    @trace_id.setter
    def trace_id(self, value: str) -> None:
        self.put("traceId", value)


class CommandContext(BaseContext):
    """Context of a side-effecting pipeline run.

    Besides the scratchpad it carries audit information (stored under the
    "audit." prefix) and an ordered list of events that the post-execution
    hook is expected to drain and dispatch.
    """

    @property
    def command(self) -> Any:
        return self.get("command")

    @command.setter
    def command(self, value: Any) -> None:
        self.put("command", value)

    # Audit information

    @property
    def user_id(self) -> Optional[str]:
        return self.get(AUDIT_PREFIX + "userId")

    @user_id.setter
    def user_id(self, value: str) -> None:
        self.put(AUDIT_PREFIX + "userId", value)

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.get(AUDIT_PREFIX + "timestamp")

    @timestamp.setter
    def timestamp(self, value: datetime) -> None:
        self.put(AUDIT_PREFIX + "timestamp", value)

    @property
    def source(self) -> Optional[str]:
        return self.get(AUDIT_PREFIX + "source")

    @source.setter
    def source(self, value: str) -> None:
        self.put(AUDIT_PREFIX + "source", value)

    def add_audit_info(self, info: dict[str, Any]) -> None:
        for key, value in info.items():
            self.put(AUDIT_PREFIX + key, value)

    def audit_info(self) -> dict[str, Any]:
        """All audit entries with the prefix stripped."""
        return {
            key[len(AUDIT_PREFIX):]: self.get(key)
            for key in self.keys()
            if key.startswith(AUDIT_PREFIX)
        }

    @property
    def transaction_id(self) -> Optional[str]:
        return self.get("transactionId")

    @transaction_id.setter
    def transaction_id(self, value: str) -> None:
        self.put("transactionId", value)

    # Events

    def add_event(self, event: Any) -> None:
        self.events.append(event)

    @property
    def events(self) -> list[Any]:
        """Pending events in insertion order. The returned list is live."""
        events = self.get("events")
        if events is None:
            events = []
            self.put("events", events)
        return events
