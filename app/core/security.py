"""Security related functions."""

import logging

import httpx
import jwt
from jwt import InvalidTokenError, PyJWKError

from app.core.config import settings
from app.exceptions.base import AuthenticationError

logger = logging.getLogger(__name__)


class ClerkAuthenticator:
    """
    Handles Clerk session token verification.

    Tokens are verified against the Clerk JWKS (RS256) or the configured
    secret (HS256). With ``jwt_verify_signature`` disabled the payload is
    decoded without a signature check, which is meant for local development
    and tests only.

    :ivar clerk_api_url: The base URL of the Clerk API.
    :type clerk_api_url: str
    :ivar secret_key: The secret key used to verify HS256 tokens.
    :type secret_key: str
    """

    def __init__(self):
        self.clerk_api_url = str(settings.clerk_api_url).rstrip("/")
        self.secret_key = settings.clerk_secret_key

    async def get_jwks(self) -> dict:
        """Get JWKS from Clerk for token verification."""
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{self.clerk_api_url}/.well-known/jwks.json")
            response.raise_for_status()
            return response.json()

    async def _signing_key(self, token: str):
        header = jwt.get_unverified_header(token)
        if header.get("alg") == "HS256":
            return self.secret_key or ""
        jwks = await self.get_jwks()
        for key in jwks.get("keys", []):
            if key.get("kid") == header.get("kid"):
                return jwt.PyJWK(key).key
        raise InvalidTokenError("No matching signing key")

    async def verify_token(self, token: str) -> dict:
        """
        Verify a Clerk session token and return its payload.

        :param token: The JWT token to be verified.
        :return: The decoded payload; ``sub`` is the Clerk user id.
        :raises AuthenticationError: The token is malformed, expired or forged.
        """
        try:
            if not settings.jwt_verify_signature:
                return jwt.decode(
                    token,
                    options={"verify_signature": False, "verify_aud": False, "verify_exp": False},
                )

            key = await self._signing_key(token)
            return jwt.decode(
                token,
                key=key,
                algorithms=settings.jwt_algorithms_list,
                options={"verify_aud": False},
            )
        except (InvalidTokenError, PyJWKError, httpx.HTTPError) as e:
            logger.warning(f"Rejected authentication token: {str(e)}")
            raise AuthenticationError(message="Invalid authentication token") from e
