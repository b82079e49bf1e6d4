"""
Message model for thread messages.
"""

import enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class MessageRole(str, enum.Enum):
    """Message role enumeration."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, enum.Enum):
    """Message lifecycle status.

    ``pending`` while a generation targets the message, ``done`` once it has
    an answer, ``waiting`` after a provider failure so a retry is expected.
    """

    PENDING = "pending"
    DONE = "done"
    WAITING = "waiting"


class Message(BaseModel):
    """
    Represents a chat message.

    ``parts`` stores the serialized content parts (text, reasoning, file)
    in order; ``usage`` holds token counts for generated messages.
    """

    __tablename__ = "messages"

    thread_id = Column(
        String(255), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False)
    status = Column(String(20), default=MessageStatus.PENDING.value, nullable=False)
    parts = Column(JSON, nullable=False, default=list)
    usage = Column(JSON, nullable=True)
    model = Column(String(255), nullable=True)
    generation_start_at = Column(DateTime, nullable=True)
    generation_end_at = Column(DateTime, nullable=True)

    # Relationships
    thread = relationship("Thread", back_populates="messages")
    message_attachments = relationship(
        "MessageAttachment",
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
