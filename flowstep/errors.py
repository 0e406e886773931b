"""Error model for FlowStep pipelines.

Every failure that leaves a pipeline is a `FlowStepError` carrying a
(error_code, message, error_type) triple. The error type is the only thing
a transport adapter needs to pick a status code:

- VALIDATION: caller should change the request (HTTP 400)
- BUSINESS: a domain rule blocked the operation (HTTP 409)
- SYSTEM: unexpected or infrastructure fault (HTTP 500)
"""

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from flowstep.steps.schemas import StepResult


class ErrorType(str, Enum):
    """Classification of a pipeline failure."""
    VALIDATION = "validation"
    BUSINESS = "business"
    SYSTEM = "system"


# Generic code used when an unexpected exception escapes a pipeline
SYSTEM_ERROR_CODE = "SYS_001"

_HTTP_STATUS = {
    ErrorType.VALIDATION: 400,
    ErrorType.BUSINESS: 409,
    ErrorType.SYSTEM: 500,
}


class FlowStepError(Exception):
    """The single error type raised across a pipeline's public boundary."""

    def __init__(
        self,
        error_code: str,
        message: str,
        error_type: ErrorType = ErrorType.BUSINESS,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.error_type = error_type

    @classmethod
    def from_result(cls, result: "StepResult") -> "FlowStepError":
        """Convert a failed StepResult into the matching error, field for field."""
        if result.success:
            raise ValueError("Cannot build an error from a successful StepResult")
        return cls(result.error_code, result.message, result.error_type)

    @classmethod
    def system(cls, operation: str) -> "FlowStepError":
        return cls(
            SYSTEM_ERROR_CODE,
            f"System error during {operation}",
            ErrorType.SYSTEM,
        )

    def __repr__(self) -> str:
        return (
            f"FlowStepError(error_code={self.error_code!r}, "
            f"error_type={self.error_type.name}, message={self.message!r})"
        )


class ErrorResponse(BaseModel):
    """Transport-neutral error body built from a FlowStepError."""

    error_code: str = Field(description="Stable machine-readable code")
    error_message: str = Field(description="Human-readable message")

    @field_validator("error_code", "error_message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value

    @classmethod
    def from_error(cls, error: FlowStepError) -> "ErrorResponse":
        return cls(error_code=error.error_code, error_message=error.message)


def http_status_for(error_type: ErrorType) -> int:
    """Map an error type to the HTTP status a web adapter should return."""
    return _HTTP_STATUS[ErrorType(error_type)]
