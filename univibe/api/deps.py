"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from univibe.core.config import Settings, get_settings
from univibe.core.exceptions import UnauthenticatedError
from univibe.interfaces.auth_provider import IAuthProvider
from univibe.interfaces.document_backend import IDocumentBackend
from univibe.interfaces.message_store import IMessageStore
from univibe.models.user import User
from univibe.services.reply_agent import ReplyAgent


# ===========================================
# Backend Dependencies
# ===========================================


@lru_cache()
def get_document_backend() -> IDocumentBackend:
    """Get document backend instance."""
    settings = get_settings()
    if settings.is_memory:
        from univibe.infrastructure.local.memory_document_backend import InMemoryDocumentBackend
        return InMemoryDocumentBackend()
    from univibe.infrastructure.local.document_backend import SqliteDocumentBackend
    return SqliteDocumentBackend()


@lru_cache()
def get_message_store() -> IMessageStore:
    """Get message store instance."""
    from univibe.services.message_store import DocumentMessageStore

    settings = get_settings()
    return DocumentMessageStore(
        get_document_backend(),
        collection=settings.CHATS_COLLECTION,
        separator=settings.SESSION_ID_SEPARATOR,
        max_attempts=settings.APPEND_MAX_ATTEMPTS,
        retry_delay_ms=settings.APPEND_RETRY_DELAY_MS,
    )


@lru_cache()
def get_reply_agent() -> ReplyAgent:
    """Get the process-wide simulated counterpart."""
    settings = get_settings()
    return ReplyAgent(
        get_message_store(),
        min_delay_ms=settings.REPLY_MIN_DELAY_MS,
        jitter_ms=settings.REPLY_JITTER_MS,
    )


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    settings = get_settings()
    from univibe.infrastructure.local.mock_auth import MockAuthProvider
    return MockAuthProvider(enabled=settings.AUTH_ENABLED)


# ===========================================
# Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    With auth disabled, returns the development user.
    """
    if not auth_provider.is_enabled():
        return User(id="dev_user", email="dev@example.com", display_name="Developer")

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        )


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

MessageStore = Annotated[IMessageStore, Depends(get_message_store)]
Replies = Annotated[ReplyAgent, Depends(get_reply_agent)]
AppSettings = Annotated[Settings, Depends(get_settings)]
CurrentUser = Annotated[User, Depends(get_current_user)]
