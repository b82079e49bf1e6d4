# ruff: noqa: D107
"""AI provider exceptions."""

from typing import Any

from .base import BaseAppException


class AIServiceError(BaseAppException):
    """Base exception for AI provider errors."""

    def __init__(
        self,
        message: str = "AI service error occurred",
        error_code: str = "AI_SERVICE_ERROR",
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(
            message=message, status_code=status_code, error_code=error_code, details=details
        )


class AIServiceUnavailableError(AIServiceError):
    """Exception raised when the provider is unavailable."""

    def __init__(
        self,
        message: str = "AI service is temporarily unavailable",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message, error_code="AI_SERVICE_UNAVAILABLE", details=details, status_code=503
        )


class AITimeoutError(AIServiceError):
    """Exception raised when a provider request times out."""

    def __init__(
        self,
        message: str = "AI service request timed out",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, error_code="AI_TIMEOUT", details=details, status_code=504)


class AIConfigurationError(AIServiceError):
    """Exception raised when a provider is not properly configured."""

    def __init__(
        self,
        message: str = "AI service is not properly configured",
        details: dict[str, Any] | None = None,
        error_code: str = "AI_CONFIGURATION_ERROR",
    ):
        super().__init__(message=message, error_code=error_code, details=details, status_code=400)


class AICredentialsMissingError(AIConfigurationError):
    """Exception raised when no API key is available for the selected provider."""

    def __init__(
        self,
        message: str = "API key not configured",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, details=details, error_code="AI_CREDENTIALS_MISSING")


class AIUnsupportedOperationError(AIServiceError):
    """Exception raised when a provider cannot serve the requested operation."""

    def __init__(
        self,
        message: str = "Operation not supported by this provider",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message, error_code="AI_UNSUPPORTED_OPERATION", details=details, status_code=400
        )


class AIRateLimitError(AIServiceError):
    """Exception raised when the provider rate limit is hit."""

    def __init__(
        self,
        message: str = "AI service rate limit exceeded",
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        if details is None:
            details = {}
        if retry_after:
            details["retry_after"] = retry_after
        super().__init__(
            message=message, error_code="AI_RATE_LIMITED", details=details, status_code=429
        )


def describe_generation_error(error: BaseException) -> str:
    """User-facing text for a failure reported inside a response stream."""
    if isinstance(error, AIServiceError):
        return error.message
    if isinstance(error, TimeoutError):
        return "The model took too long to respond. Please try again."
    message = str(error).strip()
    return message or "An error occurred while generating the response."
