"""
Mock authentication and local identity providers.
"""

from typing import Optional

from univibe.core.exceptions import UnauthenticatedError
from univibe.interfaces.auth_provider import IAuthProvider, IIdentityProvider
from univibe.models.user import User


class MockAuthProvider(IAuthProvider):
    """Mock auth provider that treats the bearer token as the user id."""

    def __init__(self, enabled: bool = False):
        """
        Initialize mock auth provider.

        Args:
            enabled: Whether authentication is required
        """
        self._enabled = enabled

    async def verify_token(self, token: str) -> User:
        """
        Verify token - in mock mode, token is treated as user_id.

        Args:
            token: User ID (in mock mode)

        Returns:
            User whose id is the token
        """
        token = (token or "").strip()
        if not token:
            raise UnauthenticatedError("Empty token")
        return User(id=token)

    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        return self._enabled


class LocalIdentityProvider(IIdentityProvider):
    """Holds the identity of whoever signed in on this client."""

    def __init__(self, identity: Optional[str] = None):
        self._identity = identity

    def sign_in(self, identity: str) -> None:
        if not identity:
            raise UnauthenticatedError("Identity must not be empty")
        self._identity = identity

    def sign_out(self) -> None:
        self._identity = None

    def current_identity(self) -> Optional[str]:
        return self._identity
