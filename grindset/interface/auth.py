"""Access verification: turns a bearer token into a user ID."""

import logging
from typing import Protocol

from fastapi import Depends, Header
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from grindset.core.config import settings
from grindset.core.errors import UnauthorizedError


logger = logging.getLogger(__name__)

ACCESS_TOKEN_SALT = "grindset-access"


class AuthProvider(Protocol):
    """Capability that verifies an access token."""

    def verify_access(self, token: str) -> str: ...


class SignedTokenAuthProvider:
    """Verifies tokens signed with the application secret key."""

    def __init__(self, secret_key: str, *, max_age_seconds: int | None = None) -> None:
        self.serializer = URLSafeTimedSerializer(secret_key, salt=ACCESS_TOKEN_SALT)
        self.max_age_seconds = max_age_seconds or settings.access_token_max_age_seconds

    def issue(self, user_id: str) -> str:
        """Sign a token for a user; used by the account service and in tests."""
        return self.serializer.dumps({"user_id": str(user_id)})

    def verify_access(self, token: str) -> str:
        try:
            data = self.serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired as e:
            logger.warning("Expired access token")
            raise UnauthorizedError("Access token expired.") from e
        except BadSignature as e:
            logger.warning("Invalid access token")
            raise UnauthorizedError("Invalid access token.") from e

        user_id = data.get("user_id") if isinstance(data, dict) else None
        if not user_id:
            raise UnauthorizedError("Invalid access token.")
        return str(user_id)


_auth_provider: AuthProvider | None = None


def get_auth_provider() -> AuthProvider:
    """Return the process-wide provider, built from settings on first use."""
    global _auth_provider
    if _auth_provider is None:
        secret = settings.require_credential("secret_key", "Access token")
        _auth_provider = SignedTokenAuthProvider(secret)
    return _auth_provider


def set_auth_provider(provider: AuthProvider | None) -> None:
    """Install a provider; None rebuilds it from settings on next use."""
    global _auth_provider
    _auth_provider = provider


def current_user_id(
    authorization: str | None = Header(default=None),
    provider: AuthProvider = Depends(get_auth_provider),
) -> str:
    """FastAPI dependency resolving the caller from the Authorization header."""
    if not authorization:
        raise UnauthorizedError("Missing access token.")

    token = authorization.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return provider.verify_access(token)
