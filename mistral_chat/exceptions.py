"""Plugin exception hierarchy.

All custom exceptions inherit from MistralNodeError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "MST-1000"
    CONFIGURATION_ERROR = "MST-1001"
    INPUT_ERROR = "MST-1002"

    # Transport errors (2xxx)
    LLM_SERVICE_ERROR = "MST-2000"
    LLM_TIMEOUT = "MST-2001"
    LLM_RATE_LIMIT = "MST-2002"
    LLM_CONNECTION_ERROR = "MST-2003"

    # Response errors (3xxx)
    EMPTY_RESPONSE = "MST-3001"

    # Invocation control (4xxx)
    CANCELLED = "MST-4000"


class MistralNodeError(Exception):
    """Base exception for all Mistral node errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for host error reporting."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(MistralNodeError):
    """Missing or invalid plugin configuration, such as the API key."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class InputError(MistralNodeError):
    """Missing or invalid node input."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INPUT_ERROR, details)


class TransportError(MistralNodeError):
    """HTTP status or connection failure talking to the Mistral API."""

    retryable = True

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, code, details)
        self.status_code = status_code


class EmptyResponseError(MistralNodeError):
    """The completion produced no content."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMPTY_RESPONSE, details)


class InvocationCancelledError(MistralNodeError):
    """The graph run aborted the node while it was executing."""

    def __init__(
        self,
        message: str = "Mistral chat invocation was cancelled",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CANCELLED, details)
