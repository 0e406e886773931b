"""Step outcome schema.

A StepResult is either a success (optionally carrying data) or a failure
carrying a message, error code and error type. Nothing in between.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flowstep.errors import ErrorType

GENERIC_ERROR_CODE = "GENERIC_ERROR"
VALIDATION_ERROR_CODE = "VALIDATION_ERROR"
SYSTEM_FAILURE_CODE = "SYSTEM_ERROR"


class StepResult(BaseModel):
    """Outcome of a single step (or of a pipeline's validate hook)."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    data: Any = None
    message: Optional[str] = None
    error_code: Optional[str] = None
    error_type: Optional[ErrorType] = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "StepResult":
        error_fields = (self.message, self.error_code, self.error_type)
        if self.success and any(f is not None for f in error_fields):
            raise ValueError("A successful StepResult cannot carry error details")
        if not self.success:
            if any(f is None for f in error_fields):
                raise ValueError(
                    "A failed StepResult needs message, error_code and error_type"
                )
            if self.data is not None:
                raise ValueError("A failed StepResult cannot carry data")
        return self

    @classmethod
    def ok(cls, data: Any = None) -> "StepResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        message: str,
        error_code: str = GENERIC_ERROR_CODE,
        error_type: ErrorType = ErrorType.BUSINESS,
    ) -> "StepResult":
        """Failed result. With only a message, defaults to a generic business error."""
        return cls(
            success=False,
            message=message,
            error_code=error_code,
            error_type=error_type,
        )

    @classmethod
    def validation_failure(cls, message: str) -> "StepResult":
        return cls.failure(message, VALIDATION_ERROR_CODE, ErrorType.VALIDATION)

    @classmethod
    def system_failure(cls, message: str) -> "StepResult":
        return cls.failure(message, SYSTEM_FAILURE_CODE, ErrorType.SYSTEM)

    @property
    def is_failure(self) -> bool:
        return not self.success

    def __str__(self) -> str:
        if self.success:
            return f"StepResult(success=True, data={self.data!r})"
        return (
            f"StepResult(success=False, message={self.message!r}, "
            f"error_code={self.error_code!r}, error_type={self.error_type.name})"
        )
