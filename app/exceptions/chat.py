# ruff: noqa: D107
"""Chat, thread and share exceptions."""

from typing import Any

from .base import AppPermissionError, ConflictError, NotFoundError, ValidationError


class ModelNotFoundError(ValidationError):
    """Exception raised when a model key is absent from the registry."""

    def __init__(self, model_key: str, details: dict[str, Any] | None = None):
        self.model_key = model_key
        super().__init__(
            message=f"Model '{model_key}' not found in LLM registry",
            details=details,
            error_code="MODEL_NOT_FOUND",
        )


class ModelDisabledError(ValidationError):
    """Exception raised when a registry entry is disabled."""

    def __init__(self, model_key: str, details: dict[str, Any] | None = None):
        self.model_key = model_key
        super().__init__(
            message=f"Model '{model_key}' is currently disabled",
            details=details,
            error_code="MODEL_DISABLED",
        )


class InvalidChatRequestError(ValidationError):
    """Exception raised when a chat submission is structurally unusable."""

    def __init__(
        self,
        message: str = "Invalid chat request",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, details=details, error_code="INVALID_CHAT_REQUEST")


class MessageOwnershipError(AppPermissionError):
    """Exception raised when a submitted message id belongs to another thread."""

    def __init__(self, message_id: str, details: dict[str, Any] | None = None):
        self.message_id = message_id
        super().__init__(
            message=f"Message '{message_id}' does not belong to this thread",
            details=details,
            error_code="MESSAGE_OWNERSHIP_VIOLATION",
        )


class GenerationInProgressError(ConflictError):
    """Exception raised when a thread already has a generation in flight."""

    def __init__(self, thread_id: str, details: dict[str, Any] | None = None):
        self.thread_id = thread_id
        super().__init__(
            message="A response is already being generated for this thread",
            details=details,
            error_code="GENERATION_IN_PROGRESS",
        )


class ThreadNotFoundError(NotFoundError):
    """Exception raised when a thread is missing or not owned by the caller."""

    def __init__(self, message: str = "Thread not found", details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details, error_code="THREAD_NOT_FOUND")


class MessageNotFoundError(NotFoundError):
    """Exception raised when a message is missing or not owned by the caller."""

    def __init__(self, message: str = "Message not found", details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details, error_code="MESSAGE_NOT_FOUND")


class ShareNotFoundError(NotFoundError):
    """Exception raised when a share id does not exist."""

    def __init__(self, message: str = "Share not found", details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details, error_code="SHARE_NOT_FOUND")


class AttachmentNotFoundError(NotFoundError):
    """Exception raised when an attachment is missing or not owned by the caller."""

    def __init__(
        self, message: str = "Attachment not found", details: dict[str, Any] | None = None
    ):
        super().__init__(message=message, details=details, error_code="ATTACHMENT_NOT_FOUND")
