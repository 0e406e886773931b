"""FlowStep settings.

Settings are read once from FLOWSTEP_* environment variables and are
read-only afterwards. Use get_settings() for the process-wide instance;
tests can call reset_settings() or build a FlowStepSettings directly.

Environment variables:
- FLOWSTEP_ENABLED (default true)
- FLOWSTEP_LOGGING_ENABLED (default false)
- FLOWSTEP_LOGGING_FORCE: log every flow, even without enable_logging
- FLOWSTEP_LOGGING_INCLUDE_STACK_TRACES (default false)
- FLOWSTEP_LOGGING_MAX_PAYLOAD_SIZE: bytes of JSON per logged payload (10000)
- FLOWSTEP_LOGGING_MAX_DEPTH: nesting depth walked by the sanitizer (32)
- FLOWSTEP_LOGGING_SENSITIVE_PATTERNS: extra comma-separated field patterns
- FLOWSTEP_LOGGING_STACK_DEPTH: traceback frames kept in error events (10)
- FLOWSTEP_LOGGING_DEFAULT_LEVEL: level for flows that set none (INFO)
- FLOWSTEP_PERFORMANCE_ENABLED (default true)
- FLOWSTEP_PERFORMANCE_LOG_SLOW (default true)
- FLOWSTEP_PERFORMANCE_SLOW_MS (default 1000)
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")
_LEVEL_NAMES = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR")


class PerformanceSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    log_slow_queries: bool = True
    slow_query_threshold_ms: int = Field(default=1000, ge=0)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    force_logging_enabled: bool = False
    include_stack_traces: bool = Field(
        default=False,
        description="Attach truncated tracebacks to error events",
    )
    max_request_response_size: int = Field(
        default=10_000,
        ge=0,
        description="Max bytes of JSON per logged payload before truncation",
    )
    max_depth: int = Field(default=32, ge=1, description="Max nesting walked when sanitizing")
    stack_trace_depth: int = Field(default=10, ge=0)
    sensitive_field_patterns: list[str] = Field(
        default_factory=list,
        description="Extra regex patterns, added to the built-in sensitive field set",
    )
    default_log_level: str = Field(
        default="INFO",
        description="Level for flows that do not set one",
    )

    @field_validator("default_log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in _LEVEL_NAMES:
            raise ValueError(f"default_log_level must be one of {_LEVEL_NAMES}")
        return value


class FlowStepSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="When false, flows run without logging")
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false, yes/no, on/off, 1/0), got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


def load_settings() -> FlowStepSettings:
    """Build settings from the environment.

    Raises:
        ValueError: On malformed or out-of-range values.
    """
    settings = FlowStepSettings(
        enabled=_env_bool("FLOWSTEP_ENABLED", True),
        performance=PerformanceSettings(
            enabled=_env_bool("FLOWSTEP_PERFORMANCE_ENABLED", True),
            log_slow_queries=_env_bool("FLOWSTEP_PERFORMANCE_LOG_SLOW", True),
            slow_query_threshold_ms=_env_int("FLOWSTEP_PERFORMANCE_SLOW_MS", 1000),
        ),
        logging=LoggingSettings(
            enabled=_env_bool("FLOWSTEP_LOGGING_ENABLED", False),
            force_logging_enabled=_env_bool("FLOWSTEP_LOGGING_FORCE", False),
            include_stack_traces=_env_bool("FLOWSTEP_LOGGING_INCLUDE_STACK_TRACES", False),
            max_request_response_size=_env_int("FLOWSTEP_LOGGING_MAX_PAYLOAD_SIZE", 10_000),
            max_depth=_env_int("FLOWSTEP_LOGGING_MAX_DEPTH", 32),
            stack_trace_depth=_env_int("FLOWSTEP_LOGGING_STACK_DEPTH", 10),
            sensitive_field_patterns=_env_list("FLOWSTEP_LOGGING_SENSITIVE_PATTERNS"),
            default_log_level=os.environ.get("FLOWSTEP_LOGGING_DEFAULT_LEVEL") or "INFO",
        ),
    )
    logger.debug(
        f"Loaded FlowStep settings: logging={settings.logging.enabled}, "
        f"force={settings.logging.force_logging_enabled}"
    )
    return settings


_settings: Optional[FlowStepSettings] = None


def get_settings() -> FlowStepSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next get_settings() re-reads the env."""
    global _settings
    _settings = None
