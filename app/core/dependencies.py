# app/core/dependencies.py
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import ClerkAuthenticator
from app.database import get_db
from app.domains.user.service import UserService
from app.exceptions.base import AppPermissionError, AuthenticationError
from models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)
auth = ClerkAuthenticator()

__all__ = ["get_current_user", "get_db", "validate_token"]


async def validate_token(
    token: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Validate and decode the Clerk session token.

    Returns:
        dict: Decoded token payload

    Raises:
        AuthenticationError: If the token is missing or invalid
    """
    if not token or not token.credentials:
        raise AuthenticationError(message="Authentication token is required")

    return await auth.verify_token(token.credentials)


async def get_current_user(
    request: Request,
    payload: dict = Depends(validate_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT payload.

    Returns:
        User: Current authenticated user

    Raises:
        AuthenticationError: If the payload carries no user id
        AppPermissionError: If the user is inactive
    """
    clerk_user_id = payload.get("sub")
    if not clerk_user_id:
        raise AuthenticationError(message="Invalid token payload - missing user ID")

    # Get or create user in local database
    user = await UserService(db).get_or_create_user(clerk_user_id, payload)

    if not user.is_active:
        raise AppPermissionError(message="User account is inactive")

    # Add user info to request state for logging
    request.state.user_id = user.id
    request.state.clerk_user_id = clerk_user_id

    return user
