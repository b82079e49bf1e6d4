"""
User preferences and favorite models.

Preferences feed the system prompt (name, occupation, traits, additional
info) and remember the last model the user picked.
"""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class UserPreferences(BaseModel):
    """
    Represents the personalization settings of a user.

    Each user has at most one preferences record (one-to-one relationship).

    :ivar user_id: Foreign key reference to the user.
    :type user_id: str
    :ivar name: How the assistant should address the user.
    :type name: str
    :ivar occupation: User occupation.
    :type occupation: str
    :ivar selected_traits: Personality traits the assistant should adopt.
    :type selected_traits: list[str]
    :ivar additional_info: Free-form context about the user.
    :type additional_info: str
    :ivar last_selected_model: Registry key of the last model used.
    :type last_selected_model: str
    :ivar stats_for_nerds: Show generation metrics in the UI.
    :type stats_for_nerds: bool
    """

    __tablename__ = "user_preferences"

    user_id = Column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    name = Column(String(50), default="", nullable=False)
    occupation = Column(String(100), default="", nullable=False)
    selected_traits = Column(JSON, default=list, nullable=False)
    additional_info = Column(Text, default="", nullable=False)
    last_selected_model = Column(String(255), nullable=True)
    stats_for_nerds = Column(Boolean, default=False, nullable=False)

    # Relationship
    user = relationship("User", back_populates="preferences")


class FavoriteModel(BaseModel):
    """A registry model key pinned by a user."""

    __tablename__ = "favorite_models"
    __table_args__ = (UniqueConstraint("user_id", "model_id"),)

    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    model_id = Column(String(255), nullable=False)

    user = relationship("User", back_populates="favorite_models")
