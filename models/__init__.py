"""
Models package initialization.
"""

from .attachment import Attachment, MessageAttachment
from .base import Base, BaseModel, new_id, utcnow
from .message import Message, MessageRole, MessageStatus
from .shared_chat import SharedChat, SharedMessage, SharedMessageAttachment
from .thread import Thread, ThreadStatus
from .user import User
from .user_preferences import FavoriteModel, UserPreferences

__all__ = [
    "Base",
    "BaseModel",
    "new_id",
    "utcnow",
    "User",
    # Chat models
    "Thread",
    "ThreadStatus",
    "Message",
    "MessageRole",
    "MessageStatus",
    "Attachment",
    "MessageAttachment",
    # Personalization
    "UserPreferences",
    "FavoriteModel",
    # Sharing
    "SharedChat",
    "SharedMessage",
    "SharedMessageAttachment",
]
