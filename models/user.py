"""
Provides the User model for the application's database schema.

The User model mirrors the identity held by the external session provider
(Clerk) and anchors every user-owned record: threads, attachments, favorite
models, shared chats and preferences.

Attributes
----------
clerk_user_id : sqlalchemy.Column
    Unique identifier for the user from the external session provider.
email : sqlalchemy.Column
    The email address of the user, if the session carries one.
username : sqlalchemy.Column
    The optional username chosen by the user.
is_active : sqlalchemy.Column
    A boolean indicating if the user is active. Defaults to `True`.
"""

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    """
    Represents a user entity in the application.

    :ivar clerk_user_id: Unique identifier for the user provided by Clerk.
    :type clerk_user_id: str
    :ivar email: Email address of the user.
    :type email: str
    :ivar username: Username of the user. This is optional.
    :type username: str
    :ivar is_active: Indicates whether the user account is active.
    :type is_active: bool
    """

    __tablename__ = "users"

    clerk_user_id = Column(String(255), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    username = Column(String(100))
    is_active = Column(Boolean, default=True)

    # Relationships
    threads = relationship("Thread", back_populates="user", cascade="all, delete-orphan")
    attachments = relationship("Attachment", back_populates="user", cascade="all, delete-orphan")
    favorite_models = relationship(
        "FavoriteModel", back_populates="user", cascade="all, delete-orphan"
    )
    shared_chats = relationship("SharedChat", back_populates="user", cascade="all, delete-orphan")
    preferences = relationship(
        "UserPreferences", back_populates="user", cascade="all, delete-orphan", uselist=False
    )
