"""
Result and AppError primitives.

Every service operation returns a ``Result``: either a success carrying
``data`` or a failure carrying a structured ``AppError``. Callers map the
error's code and status onto their own transport.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INVALID_OPERATION = "INVALID_OPERATION"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    PAYMENT_VERIFICATION_FAILED = "PAYMENT_VERIFICATION_FAILED"
    ORDER_CREATION_FAILED = "ORDER_CREATION_FAILED"
    ORDER_FETCH_FAILED = "ORDER_FETCH_FAILED"
    ORDER_UPDATE_FAILED = "ORDER_UPDATE_FAILED"
    PAYMENT_PROCESSING_FAILED = "PAYMENT_PROCESSING_FAILED"
    ORDER_COMPLETION_FAILED = "ORDER_COMPLETION_FAILED"
    ORDER_CANCELLATION_FAILED = "ORDER_CANCELLATION_FAILED"
    # Transient failures of external collaborators
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class AppError(Exception):
    """Application error with a stable machine-readable code.

    Args:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status code the caller should surface (default 500)
        context: Extra data for diagnostics (ids, current/requested status, ...)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.status_code = status_code
        self.context = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "statusCode": self.status_code,
            "context": self.context,
        }

    def __repr__(self) -> str:
        return f"AppError(code={self.code!r}, status_code={self.status_code}, message={self.message!r})"


@dataclass(frozen=True)
class Result(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[AppError] = None

    def unwrap(self) -> T:
        """Return the success value or raise the carried error."""
        if not self.success:
            raise self.error
        return self.data


def ok(data: T) -> Result[T]:
    return Result(success=True, data=data)


def err(error: AppError) -> Result[Any]:
    return Result(success=False, error=error)


def is_ok(result: Result) -> bool:
    return result.success is True


def is_err(result: Result) -> bool:
    return result.success is False
