"""
Unit tests for authentication: token verification, the request
dependencies and local user provisioning.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest

from app.core.dependencies import get_current_user, validate_token
from app.core.security import ClerkAuthenticator
from app.domains.user.service import UserService
from app.exceptions.base import AppPermissionError, AuthenticationError

SIGNING_SECRET = "talkative-test-signing-secret-0123456789"


class TestValidateToken:
    """Test cases for validate_token dependency."""

    @pytest.mark.asyncio
    async def test_validate_token_success(self):
        mock_token = MagicMock()
        mock_token.credentials = "valid_jwt_token"
        payload = {"sub": "user_123", "email": "test@example.com"}

        with patch("app.core.dependencies.auth.verify_token", new=AsyncMock(return_value=payload)) as mock_verify:
            result = await validate_token(mock_token)

        assert result == payload
        mock_verify.assert_awaited_once_with("valid_jwt_token")

    @pytest.mark.asyncio
    async def test_validate_token_none_token(self):
        with pytest.raises(AuthenticationError) as exc_info:
            await validate_token(None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Authentication token is required"

    @pytest.mark.asyncio
    async def test_validate_token_empty_credentials(self):
        mock_token = MagicMock()
        mock_token.credentials = ""

        with pytest.raises(AuthenticationError):
            await validate_token(mock_token)


class TestGetCurrentUser:
    """Test cases for get_current_user dependency."""

    @pytest.mark.asyncio
    async def test_creates_local_user_on_first_request(self, test_db):
        request = MagicMock()

        user = await get_current_user(request, {"sub": "clerk_abc", "email": "ada@example.com"}, test_db)

        assert user.clerk_user_id == "clerk_abc"
        assert user.email == "ada@example.com"
        assert request.state.user_id == user.id

    @pytest.mark.asyncio
    async def test_returns_existing_user(self, test_db, test_user):
        user = await get_current_user(MagicMock(), {"sub": test_user.clerk_user_id}, test_db)

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_missing_subject(self, test_db):
        with pytest.raises(AuthenticationError) as exc_info:
            await get_current_user(MagicMock(), {"email": "x@example.com"}, test_db)

        assert exc_info.value.message == "Invalid token payload - missing user ID"

    @pytest.mark.asyncio
    async def test_inactive_user(self, test_db, test_user):
        test_user.is_active = False
        await test_db.commit()

        with pytest.raises(AppPermissionError):
            await get_current_user(MagicMock(), {"sub": test_user.clerk_user_id}, test_db)


class TestClerkAuthenticator:
    """Test cases for session token verification."""

    @pytest.mark.asyncio
    async def test_unverified_decode(self, monkeypatch):
        monkeypatch.setattr("app.core.security.settings.jwt_verify_signature", False)
        token = jwt.encode({"sub": "clerk_1"}, "any-key-will-do-for-unverified-0001", algorithm="HS256")

        payload = await ClerkAuthenticator().verify_token(token)

        assert payload["sub"] == "clerk_1"

    @pytest.mark.asyncio
    async def test_malformed_token(self, monkeypatch):
        monkeypatch.setattr("app.core.security.settings.jwt_verify_signature", False)

        with pytest.raises(AuthenticationError) as exc_info:
            await ClerkAuthenticator().verify_token("not-a-jwt")

        assert exc_info.value.message == "Invalid authentication token"

    @pytest.mark.asyncio
    async def test_hs256_signature(self, monkeypatch):
        monkeypatch.setattr("app.core.security.settings.jwt_verify_signature", True)
        authenticator = ClerkAuthenticator()
        authenticator.secret_key = SIGNING_SECRET

        token = jwt.encode({"sub": "clerk_2"}, SIGNING_SECRET, algorithm="HS256")
        assert (await authenticator.verify_token(token))["sub"] == "clerk_2"

        forged = jwt.encode({"sub": "clerk_2"}, "a-different-secret-of-enough-length-99", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            await authenticator.verify_token(forged)


class TestUserService:
    """Test cases for UserService."""

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, test_db):
        service = UserService(test_db)

        first = await service.get_or_create_user("clerk_xyz", {"email": "x@example.com", "username": "x"})
        second = await service.get_or_create_user("clerk_xyz", {"email": "other@example.com"})

        assert first.id == second.id
        assert second.email == "x@example.com"
        assert second.username == "x"

    @pytest.mark.asyncio
    async def test_unknown_clerk_id(self, test_db):
        assert await UserService(test_db).get_user_by_clerk_id("nobody") is None
