from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

import pytest
from pydantic import BaseModel

from flowstep.logs.sanitizer import (
    CYCLE_MARKER,
    DEPTH_MARKER,
    MASK_VALUE,
    TRUNCATED_KEY,
    Sanitizer,
)


@pytest.fixture
def sanitizer() -> Sanitizer:
    return Sanitizer()


def _leaves(tree, path=()):
    if isinstance(tree, dict):
        for key, value in tree.items():
            yield from _leaves(value, path + (key,))
    elif isinstance(tree, list):
        for value in tree:
            yield from _leaves(value, path)
    else:
        yield path, tree


@pytest.mark.parametrize(
    "field_name",
    ["password", "userPassword", "API_KEY", "accessToken", "clientSecret", "Authorization",
     "credentials", "ssn", "social_security_number", "creditCardNumber", "cvv", "pinCode"],
)
def test_builtin_patterns_match_anywhere_in_the_name(sanitizer: Sanitizer, field_name: str) -> None:
    assert sanitizer.is_sensitive(field_name)


@pytest.mark.parametrize("field_name", ["userId", "email", "amount", "name"])
def test_ordinary_names_are_not_sensitive(sanitizer: Sanitizer, field_name: str) -> None:
    assert not sanitizer.is_sensitive(field_name)


def test_masks_nested_fields_and_list_elements(sanitizer: Sanitizer) -> None:
    payload = {
        "userId": "123",
        "password": "secret123",
        "profile": {"email": "a@b.c", "apiToken": {"value": "t", "expires": 3}},
        "cards": [{"creditCard": "4111", "label": "main"}, {"creditCard": "5500", "label": "spare"}],
    }

    result = sanitizer.sanitize(payload)

    assert result == {
        "userId": "123",
        "password": MASK_VALUE,
        "profile": {"email": "a@b.c", "apiToken": MASK_VALUE},
        "cards": [
            {"creditCard": MASK_VALUE, "label": "main"},
            {"creditCard": MASK_VALUE, "label": "spare"},
        ],
    }
    assert payload["password"] == "secret123"


def test_no_sensitive_value_survives_at_any_depth(sanitizer: Sanitizer) -> None:
    payload = {"a": [{"b": {"c": [{"secretKey": "x1"}, {"token": "x2"}]}}], "d": {"pin": "x3"}}

    result = sanitizer.sanitize(payload)

    for path, value in _leaves(result):
        assert value not in ("x1", "x2", "x3"), path


def test_sanitizing_twice_changes_nothing(sanitizer: Sanitizer) -> None:
    payload = {"userId": "1", "password": "p", "items": [1, "two", {"authHeader": "h"}]}

    once = sanitizer.sanitize(payload)

    assert sanitizer.sanitize(once) == once


def test_scalars_and_none_pass_through(sanitizer: Sanitizer) -> None:
    assert sanitizer.sanitize(None) is None
    assert sanitizer.sanitize("plain") == "plain"
    assert sanitizer.sanitize(42) == 42
    assert sanitizer.sanitize(True) is True


def test_dataclasses_models_and_objects_become_dicts(sanitizer: Sanitizer) -> None:
    @dataclass
    class Login:
        username: str
        password: str

    class Login2(BaseModel):
        username: str
        password: str

    class Plain:
        def __init__(self):
            self.username = "carol"
            self.password = "pw"
            self._internal = "hidden"

    expected = {"username": "carol", "password": MASK_VALUE}
    assert sanitizer.sanitize(Login("carol", "pw")) == expected
    assert sanitizer.sanitize(Login2(username="carol", password="pw")) == expected
    assert sanitizer.sanitize(Plain()) == expected


def test_leaves_become_json_values(sanitizer: Sanitizer) -> None:
    class Color(Enum):
        RED = "red"

    when = datetime(2024, 1, 2, 3, 4, 5)
    uid = UUID("12345678-1234-5678-1234-567812345678")

    result = sanitizer.sanitize({"when": when, "color": Color.RED, "id": uid, "tags": {"b", "a"}})

    assert result == {
        "when": "2024-01-02T03:04:05",
        "color": "red",
        "id": "12345678-1234-5678-1234-567812345678",
        "tags": ["a", "b"],
    }
    json.dumps(result)


def test_deep_nesting_is_cut_with_a_marker() -> None:
    sanitizer = Sanitizer(max_depth=3)
    payload = {"l1": {"l2": {"l3": {"l4": "deep"}}}}

    assert sanitizer.sanitize(payload) == {"l1": {"l2": {"l3": DEPTH_MARKER}}}


def test_cycles_are_replaced(sanitizer: Sanitizer) -> None:
    node: dict = {"name": "root"}
    node["self"] = node
    shared = {"v": 1}

    result = sanitizer.sanitize({"node": node, "a": shared, "b": shared})

    assert result["node"] == {"name": "root", "self": CYCLE_MARKER}
    assert result["a"] == result["b"] == {"v": 1}


def test_large_payloads_are_truncated_once() -> None:
    sanitizer = Sanitizer(max_size=100)
    payload = {"items": ["x" * 50 for _ in range(10)]}

    result = sanitizer.sanitize(payload)

    assert result[TRUNCATED_KEY] is True
    assert result["original_size"] > 100
    assert len(result["preview"].encode("utf-8")) <= 100
    assert sanitizer.sanitize(result) == result


def test_zero_max_size_disables_truncation() -> None:
    sanitizer = Sanitizer(max_size=0)
    payload = {"items": ["x" * 50 for _ in range(100)]}

    assert sanitizer.sanitize(payload) == payload


def test_extra_patterns_extend_the_builtin_set() -> None:
    sanitizer = Sanitizer(extra_patterns=[r"^email$", r"iban"])

    result = sanitizer.sanitize({"email": "a@b.c", "bankIBAN": "DE00", "password": "p", "name": "n"})

    assert result == {"email": MASK_VALUE, "bankIBAN": MASK_VALUE, "password": MASK_VALUE, "name": "n"}


def test_failure_returns_a_placeholder(sanitizer: Sanitizer, caplog) -> None:
    class Exploding(Mapping):
        def __getitem__(self, key):
            raise RuntimeError("cannot read")

        def __iter__(self):
            return iter(["field"])

        def __len__(self):
            return 1

    assert sanitizer.sanitize(Exploding()) == "Exploding (sanitization failed)"
    assert "Failed to sanitize Exploding" in caplog.text


def test_iterators_are_logged_without_being_consumed(sanitizer: Sanitizer) -> None:
    rows = (i for i in range(3))
    cursor = iter([{"password": "pw"}])

    result = sanitizer.sanitize({"rows": rows, "cursor": cursor})

    assert result["rows"].startswith("<generator object")
    assert isinstance(result["cursor"], str)
    assert list(rows) == [0, 1, 2]
    assert list(cursor) == [{"password": "pw"}]


def test_payload_shaped_like_a_marker_is_still_truncated() -> None:
    sanitizer = Sanitizer(max_size=100)

    lookalike = sanitizer.sanitize({TRUNCATED_KEY: True, "blob": "x" * 100_000})
    forged = sanitizer.sanitize({TRUNCATED_KEY: True, "original_size": 1, "preview": "x" * 100_000})

    for result in (lookalike, forged):
        assert set(result) == {TRUNCATED_KEY, "original_size", "preview"}
        assert result["original_size"] > 100_000
        assert len(result["preview"].encode("utf-8")) <= 100
