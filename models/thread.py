"""
Thread model for persisted conversations.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


class ThreadStatus(str, enum.Enum):
    """Generation status of a thread."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"


class Thread(BaseModel):
    """
    Represents a conversation thread.

    ``branched_from_thread_id`` is a plain id reference to the origin thread
    of a split. It carries no foreign key; deleting the origin clears it on
    every child explicitly.
    """

    __tablename__ = "threads"

    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=True)
    user_set_title = Column(Boolean, default=False, nullable=False)
    pinned = Column(Boolean, default=False, nullable=False)
    generation_status = Column(String(20), default=ThreadStatus.PENDING.value, nullable=False)
    branched_from_thread_id = Column(String(255), nullable=True, index=True)
    last_message_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="threads")
    messages = relationship(
        "Message",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )
    shared_chats = relationship(
        "SharedChat", back_populates="thread", cascade="all, delete-orphan", passive_deletes=True
    )
