"""
Message store interface.

Defines the contract for the append-only per-session message log.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

from univibe.models.chat import ChatMessage

if TYPE_CHECKING:
    from univibe.services.subscription import Subscription

MessagesCallback = Callable[[list[ChatMessage]], None]
RetryCallback = Callable[[int, Exception], None]


class IMessageStore(ABC):
    """Abstract interface for chat log persistence."""

    @abstractmethod
    async def append(
        self,
        session_id: str,
        message: ChatMessage,
        on_retry: Optional[RetryCallback] = None,
    ) -> ChatMessage:
        """
        Append a message to the end of a session log.

        Creates the session when absent. Prior messages are never reordered
        or dropped.

        Args:
            session_id: Chat session ID
            message: Message to append
            on_retry: Called with (attempt, error) before each retry

        Returns:
            The appended message

        Raises:
            StoreUnavailableError: Attempts exhausted, nothing was written
        """
        pass

    @abstractmethod
    async def read(self, session_id: str) -> list[ChatMessage]:
        """
        Read the full log in append order.

        Returns:
            Messages, or an empty list for a session with no log
        """
        pass

    @abstractmethod
    async def subscribe(
        self,
        session_id: str,
        on_change: MessagesCallback,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> "Subscription":
        """
        Observe a session log.

        ``on_change`` is called with the current log before this returns and
        with the full log after every change.

        Returns:
            Cancellable subscription handle
        """
        pass
