"""Recursive masking of sensitive fields before a payload is logged.

Any value is first viewed as a generic tree:
- mappings, pydantic models, dataclasses and plain objects become
  field-name -> value dicts (private "_" attributes are skipped on objects)
- lists, tuples and sets become lists
- iterators and generators are never consumed; they are logged as their str()
- everything else is a leaf (JSON-compatible scalars stay as they are,
  datetimes/UUIDs/enums go through pydantic's JSON conversion, anything
  left over becomes its str())

Every field whose name matches a sensitive pattern (case-insensitive,
anywhere in the name) has its value replaced by MASK_VALUE, whatever its
type. Unmasked siblings are walked further.

Bounds:
- containers nested deeper than max_depth become "[max depth exceeded]"
- a container that contains itself becomes "[circular reference]"
- a tree whose JSON is larger than max_size bytes is replaced by a
  {"_truncated": true, "original_size": n, "preview": "..."} marker
  (max_size 0 disables the size bound)

Sanitizing an already sanitized tree returns an equal tree.
"""

import dataclasses
import json
import logging
import re
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

logger = logging.getLogger(__name__)

MASK_VALUE = "***MASKED***"
DEPTH_MARKER = "[max depth exceeded]"
CYCLE_MARKER = "[circular reference]"
TRUNCATED_KEY = "_truncated"
_MARKER_KEYS = {TRUNCATED_KEY, "original_size", "preview"}

DEFAULT_SENSITIVE_PATTERNS = (
    r"password",
    r"token",
    r"secret",
    r"key",
    r"auth",
    r"credential",
    r"ssn",
    r"social.*security",
    r"credit.*card",
    r"cvv",
    r"pin",
)

_SCALARS = (str, int, float, bool, type(None))


class Sanitizer:
    """Masks sensitive fields and bounds the size of logged payloads."""

    def __init__(
        self,
        extra_patterns: Iterable[str] = (),
        max_depth: int = 32,
        max_size: int = 10_000,
        mask: str = MASK_VALUE,
    ):
        patterns = list(DEFAULT_SENSITIVE_PATTERNS) + list(extra_patterns)
        self._patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        self.max_depth = max_depth
        self.max_size = max_size
        self.mask = mask

    @classmethod
    def from_settings(cls, logging_settings) -> "Sanitizer":
        return cls(
            extra_patterns=logging_settings.sensitive_field_patterns,
            max_depth=logging_settings.max_depth,
            max_size=logging_settings.max_request_response_size,
        )

    def is_sensitive(self, field_name: str) -> bool:
        return any(p.search(field_name) for p in self._patterns)

    def sanitize(self, value: Any) -> Any:
        """Return a masked, bounded, JSON-compatible copy of value."""
        if value is None:
            return None
        try:
            tree = self._walk(value, depth=0, seen=set())
        except Exception as e:
            logger.warning(f"Failed to sanitize {type(value).__name__}: {e}")
            return f"{type(value).__name__} (sanitization failed)"
        return self._bound_size(tree)

    # Internal walk

    def _walk(self, value: Any, depth: int, seen: set[int]) -> Any:
        if isinstance(value, _SCALARS):
            return value
        if isinstance(value, Enum):
            return self._leaf(value)
        if isinstance(value, Iterator):
            # Single-pass: reading it here would empty it for the caller
            return str(value)

        fields = self._as_fields(value)
        items = None if fields is not None else self._as_items(value)
        if fields is None and items is None:
            return self._leaf(value)

        if depth >= self.max_depth:
            return DEPTH_MARKER
        marker = id(value)
        if marker in seen:
            return CYCLE_MARKER
        seen.add(marker)
        try:
            if fields is not None:
                return {
                    name: self.mask if self.is_sensitive(name)
                    else self._walk(child, depth + 1, seen)
                    for name, child in fields
                }
            return [self._walk(child, depth + 1, seen) for child in items]
        finally:
            seen.discard(marker)

    @staticmethod
    def _as_fields(value: Any) -> Optional[list[tuple[str, Any]]]:
        if isinstance(value, Mapping):
            return [(str(k), v) for k, v in value.items()]
        if isinstance(value, BaseModel):
            return [(name, getattr(value, name)) for name in type(value).model_fields]
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
        if hasattr(value, "__dict__") and not isinstance(value, type) and not callable(value):
            return [(k, v) for k, v in vars(value).items() if not k.startswith("_")]
        return None

    @staticmethod
    def _as_items(value: Any) -> Optional[list[Any]]:
        if isinstance(value, (list, tuple)):
            return list(value)
        if isinstance(value, (set, frozenset)):
            return sorted(value, key=repr)
        return None

    @staticmethod
    def _leaf(value: Any) -> Any:
        try:
            converted = to_jsonable_python(value)
        except Exception:
            return str(value)
        return converted if isinstance(converted, _SCALARS) else str(value)

    def _bound_size(self, tree: Any) -> Any:
        if self.max_size <= 0 or self._is_truncation_marker(tree):
            return tree
        encoded = json.dumps(tree, default=str, ensure_ascii=False)
        size = len(encoded.encode("utf-8"))
        if size <= self.max_size:
            return tree
        preview = encoded.encode("utf-8")[: self.max_size].decode("utf-8", errors="ignore")
        return {TRUNCATED_KEY: True, "original_size": size, "preview": preview}

    def _is_truncation_marker(self, tree: Any) -> bool:
        """True only for a marker this sanitizer could have produced."""
        if not isinstance(tree, dict) or set(tree) != _MARKER_KEYS:
            return False
        original_size, preview = tree["original_size"], tree["preview"]
        return (
            tree[TRUNCATED_KEY] is True
            and isinstance(original_size, int)
            and not isinstance(original_size, bool)
            and isinstance(preview, str)
            and len(preview.encode("utf-8")) <= self.max_size
        )
