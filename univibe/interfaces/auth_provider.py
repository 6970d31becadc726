"""
Identity and authentication provider interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from univibe.models.user import User


class IIdentityProvider(ABC):
    """Supplies the local caller's identity to the chat client."""

    @abstractmethod
    def current_identity(self) -> Optional[str]:
        """Return the signed-in identity, or None when signed out."""
        pass


class IAuthProvider(ABC):
    """Verifies bearer tokens on the HTTP surface."""

    @abstractmethod
    async def verify_token(self, token: str) -> User:
        """
        Verify a token and return its user.

        Raises:
            UnauthenticatedError: Token rejected
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        pass
