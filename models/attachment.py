"""
Attachment models for uploaded files and their message links.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Attachment(BaseModel):
    """
    Represents an uploaded file.

    ``attachment_url`` is the storage path (``{user_id}/{id}{ext}``), not a
    public URL. Binary content is read from storage only at generation or
    rendering time.
    """

    __tablename__ = "attachments"

    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), default="pending", nullable=False)
    attachment_type = Column(String(20), nullable=False, default="file")
    attachment_url = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=False, default="")
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)

    # Relationships
    user = relationship("User", back_populates="attachments")
    message_attachments = relationship(
        "MessageAttachment",
        back_populates="attachment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class MessageAttachment(BaseModel):
    """Join entity between messages and attachments."""

    __tablename__ = "message_attachments"
    __table_args__ = (UniqueConstraint("message_id", "attachment_id"),)

    message_id = Column(
        String(255), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attachment_id = Column(
        String(255), ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False
    )

    # Relationships
    message = relationship("Message", back_populates="message_attachments")
    attachment = relationship("Attachment", back_populates="message_attachments")
