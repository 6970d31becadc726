"""
Cancellable subscription handle.
"""

from __future__ import annotations

from typing import Callable, Optional

from univibe.core.logger import logger
from univibe.interfaces.document_backend import IListenerHandle
from univibe.models.chat import ChatMessage


class Subscription:
    """Live registration for snapshots of one session log.

    ``cancel()`` flips the local ``active`` flag before detaching the
    underlying listener, and every dispatch checks that flag, so no callback
    runs once ``cancel()`` has returned.
    """

    def __init__(
        self,
        session_id: str,
        on_change: Callable[[list[ChatMessage]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self.session_id = session_id
        self._on_change = on_change
        self._on_error = on_error
        self._active = True
        self._listener: Optional[IListenerHandle] = None

    @property
    def active(self) -> bool:
        return self._active

    def attach(self, listener: IListenerHandle) -> None:
        """Bind the transport listener. Closes it at once if already cancelled."""
        self._listener = listener
        if not self._active:
            listener.close()

    def dispatch(self, messages: list[ChatMessage]) -> None:
        if not self._active:
            return
        self._on_change(messages)

    def report_error(self, error: Exception) -> None:
        if not self._active:
            return
        if self._on_error is None:
            logger.warning(f"Subscription error on session {self.session_id}: {error}")
            return
        self._on_error(error)

    def cancel(self) -> None:
        """Stop delivery. Idempotent."""
        if not self._active:
            return
        self._active = False
        if self._listener is not None:
            self._listener.close()
        logger.debug(f"Subscription cancelled for session {self.session_id}")

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"<Subscription {self.session_id} {state}>"
