"""
Shared chat snapshots.

A share is an immutable copy of a thread's messages taken when the owner
shares (or re-shares) it. Attachments are linked, not copied.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class SharedChat(BaseModel):
    """Public handle for a thread snapshot."""

    __tablename__ = "shared_chats"

    share_id = Column(String(32), unique=True, nullable=False, index=True)
    thread_id = Column(
        String(255), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=True)

    # Relationships
    thread = relationship("Thread", back_populates="shared_chats")
    user = relationship("User", back_populates="shared_chats")
    shared_messages = relationship(
        "SharedMessage",
        back_populates="shared_chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SharedMessage.created_at",
    )


class SharedMessage(BaseModel):
    """Copy of a message at share time."""

    __tablename__ = "shared_messages"

    shared_chat_id = Column(
        String(255), ForeignKey("shared_chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    original_message_id = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False)
    parts = Column(JSON, nullable=False, default=list)
    usage = Column(JSON, nullable=True)
    model = Column(String(255), nullable=True)
    generation_start_at = Column(DateTime, nullable=True)
    generation_end_at = Column(DateTime, nullable=True)

    # Relationships
    shared_chat = relationship("SharedChat", back_populates="shared_messages")
    shared_message_attachments = relationship(
        "SharedMessageAttachment",
        back_populates="shared_message",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SharedMessageAttachment(BaseModel):
    """Attachment link of a shared message."""

    __tablename__ = "shared_message_attachments"

    shared_message_id = Column(
        String(255), ForeignKey("shared_messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attachment_id = Column(
        String(255), ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False
    )

    # Relationships
    shared_message = relationship("SharedMessage", back_populates="shared_message_attachments")
    attachment = relationship("Attachment")
