"""
LaikaTest client error taxonomy

Four kinds, nothing else escapes the client:

- ValidationError: caller input is malformed, fix the call
- NetworkError: transport failure, timeout or unparsable body
- ServiceError: non-2xx status or malformed success envelope
- AssignmentNotFoundError: tracking without a prior fetch or explicit id
"""

from enum import Enum
from typing import Any, Optional


class ErrorType(str, Enum):
    """Error kinds"""

    VALIDATION = "validation"
    NETWORK = "network"
    SERVICE = "service"
    ASSIGNMENT_NOT_FOUND = "assignment_not_found"


class LaikaTestError(Exception):
    """Base class for every error raised by the client."""

    error_type: ErrorType
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.error_type.value}] {self.message}"


class ValidationError(LaikaTestError):
    """Malformed or out-of-range caller input. Never reaches the network."""

    error_type = ErrorType.VALIDATION


class NetworkError(LaikaTestError):
    """Transport failure, timeout or a response body that is not an envelope."""

    error_type = ErrorType.NETWORK
    retryable = True

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class ServiceError(LaikaTestError):
    """The service answered, but not with a usable success envelope."""

    error_type = ErrorType.SERVICE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Any] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.error_type.value}:{self.status_code}] {self.message}"
        return super().__str__()


class AssignmentNotFoundError(LaikaTestError):
    """No cached assignment matches the identity being tracked."""

    error_type = ErrorType.ASSIGNMENT_NOT_FOUND
