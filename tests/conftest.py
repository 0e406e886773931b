"""Shared fixtures for the FlowStep test suite.

Also makes the project root importable so ``import flowstep`` works when
tests run from a checkout without an editable install.
"""

import json
import logging
import os
import sys
from typing import Callable

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from flowstep.config import FlowStepSettings, LoggingSettings, PerformanceSettings, reset_settings  # noqa: E402
from flowstep.logs.service import FlowLoggingService, LOGGER_PREFIX  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def logging_settings() -> FlowStepSettings:
    """Settings with flow logging switched on and slow warnings off."""
    return FlowStepSettings(
        logging=LoggingSettings(enabled=True),
        performance=PerformanceSettings(log_slow_queries=False),
    )


@pytest.fixture
def logging_service(logging_settings) -> FlowLoggingService:
    return FlowLoggingService(logging_settings)


@pytest.fixture
def flow_events(caplog) -> Callable[[str], list[dict]]:
    """Return a function giving the JSON events logged for a service code."""
    caplog.set_level(logging.DEBUG)

    def _events(service_code: str) -> list[dict]:
        events = []
        for record in caplog.records:
            if record.name != LOGGER_PREFIX + service_code:
                continue
            message = record.getMessage()
            events.append(json.loads(message[message.index(" - {") + 3:]))
        return events

    return _events
