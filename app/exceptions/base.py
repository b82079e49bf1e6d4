# ruff: noqa: D107
"""Base exception classes."""

from typing import Any

from fastapi import HTTPException


class BaseAppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={"message": message, "error_code": error_code, "details": details},
        )


class NotFoundError(BaseAppException):
    """Exception raised when a resource is not found or not owned by the caller."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
        error_code: str = "NOT_FOUND",
    ):
        super().__init__(message=message, status_code=404, error_code=error_code, details=details)


class AuthenticationError(BaseAppException):
    """Exception raised when the request carries no valid session."""

    def __init__(
        self,
        message: str = "Unauthorized",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=401,
            error_code="UNAUTHORIZED",
            details=details,
        )
        self.headers = {"WWW-Authenticate": "Bearer"}


class AppPermissionError(BaseAppException):
    """Exception raised when user doesn't have permission to access a resource."""

    def __init__(
        self,
        message: str = "Permission denied",
        details: dict[str, Any] | None = None,
        error_code: str = "PERMISSION_DENIED",
    ):
        super().__init__(
            message=message,
            status_code=403,
            error_code=error_code,
            details=details,
        )


class ValidationError(BaseAppException):
    """Exception raised when validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict[str, Any] | None = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details,
        )


class ConflictError(BaseAppException):
    """Exception raised when a resource already exists or is busy."""

    def __init__(
        self,
        message: str = "Conflict",
        details: dict[str, Any] | None = None,
        error_code: str = "CONFLICT",
    ):
        super().__init__(
            message=message,
            status_code=409,
            error_code=error_code,
            details=details,
        )
