"""
Chat client: owns the single active chat of one caller context.

Opening a chat cancels the previous subscription and any pending simulated
replies before the new subscription is attached.
"""

from __future__ import annotations

from typing import Callable, Optional

from univibe.core.exceptions import StoreUnavailableError, UnauthenticatedError, ValidationError
from univibe.core.logger import logger
from univibe.interfaces.auth_provider import IIdentityProvider
from univibe.interfaces.message_store import IMessageStore
from univibe.models.chat import ChatMessage, OutgoingMessage
from univibe.models.enums import DeliveryStatus
from univibe.services.reply_agent import ReplyAgent
from univibe.services.session_resolver import DEFAULT_SEPARATOR, resolve_session_id
from univibe.services.subscription import Subscription
from univibe.utils.datetime_utils import SenderClock


class ChatClient:
    """Subscription lifecycle manager for one local UI session."""

    def __init__(
        self,
        store: IMessageStore,
        identity_provider: IIdentityProvider,
        reply_agent: Optional[ReplyAgent] = None,
        separator: str = DEFAULT_SEPARATOR,
        clock: Optional[SenderClock] = None,
    ):
        self._store = store
        self._identity_provider = identity_provider
        self._reply_agent = reply_agent
        self._separator = separator
        self._clock = clock or SenderClock()

        self._generation = 0
        self._subscription: Optional[Subscription] = None
        self._active_session_id: Optional[str] = None
        self._active_peer_id: Optional[str] = None
        self._outbox: list[OutgoingMessage] = []

    # ===========================================
    # State
    # ===========================================

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def active_peer_id(self) -> Optional[str]:
        return self._active_peer_id

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    @property
    def outbox(self) -> list[OutgoingMessage]:
        """Sends not yet delivered (PENDING, RETRYING or FAILED)."""
        return list(self._outbox)

    def _require_identity(self) -> str:
        identity = self._identity_provider.current_identity()
        if not identity:
            raise UnauthenticatedError("No signed-in user")
        return identity

    def resolve(self, other_id: str) -> str:
        """Session id between the caller and ``other_id``."""
        return resolve_session_id(self._require_identity(), other_id, self._separator)

    # ===========================================
    # Lifecycle
    # ===========================================

    def _teardown(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._reply_agent is not None:
            self._reply_agent.cancel()
        self._active_session_id = None
        self._active_peer_id = None

    async def open_chat(
        self,
        other_id: str,
        on_messages: Callable[[list[ChatMessage]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """
        Make ``other_id``'s conversation the active chat.

        The previous subscription is cancelled before this call first
        suspends. ``on_messages`` receives the current log before this
        returns and the full log after every change.

        Raises:
            UnauthenticatedError: No caller identity
            InvalidIdentityError: ``other_id`` cannot form a session
            StoreUnavailableError: Subscription registration failed
        """
        session_id = self.resolve(other_id)

        self._teardown()
        self._generation += 1
        generation = self._generation
        self._active_session_id = session_id
        self._active_peer_id = other_id

        def deliver(messages: list[ChatMessage]) -> None:
            if generation == self._generation:
                on_messages(messages)

        report = None
        if on_error is not None:
            def report(error: Exception) -> None:
                if generation == self._generation:
                    on_error(error)

        try:
            subscription = await self._store.subscribe(session_id, deliver, report)
        except StoreUnavailableError:
            if generation == self._generation:
                self._active_session_id = None
                self._active_peer_id = None
            raise

        if generation != self._generation:
            # Superseded by another open_chat/close_chat while registering.
            subscription.cancel()
            return subscription

        self._subscription = subscription
        logger.info(f"Opened chat {session_id}")
        return subscription

    def close_chat(self) -> None:
        """Cancel the active subscription and pending replies."""
        self._generation += 1
        self._teardown()

    # ===========================================
    # Sending
    # ===========================================

    async def _deliver(self, outgoing: OutgoingMessage) -> OutgoingMessage:
        def on_retry(attempt: int, error: Exception) -> None:
            outgoing.status = DeliveryStatus.RETRYING
            outgoing.attempts += 1
            outgoing.error = str(error)

        outgoing.status = DeliveryStatus.PENDING
        outgoing.attempts += 1
        try:
            await self._store.append(outgoing.session_id, outgoing.message, on_retry=on_retry)
        except StoreUnavailableError as e:
            outgoing.status = DeliveryStatus.FAILED
            outgoing.error = e.message
            logger.warning(f"Send to {outgoing.session_id} failed: {e.message}")
            return outgoing

        outgoing.status = DeliveryStatus.DELIVERED
        outgoing.error = None
        self._outbox = [o for o in self._outbox if o is not outgoing]
        if self._reply_agent is not None and outgoing.session_id == self._active_session_id:
            self._reply_agent.schedule_reply(outgoing.session_id, self._active_peer_id)
        return outgoing

    async def send_message(self, text: str) -> OutgoingMessage:
        """
        Append a message from the caller to the active chat.

        Store failures do not raise: the returned record ends in FAILED with
        the error attached, so the caller never shows an unpersisted message
        as sent.

        Raises:
            UnauthenticatedError: No caller identity
            ValidationError: No active chat, or empty text
        """
        self_id = self._require_identity()
        if self._active_session_id is None:
            raise ValidationError("No active chat")
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message text must not be empty")

        message = ChatMessage(sender_id=self_id, text=text, timestamp=self._clock.next(self_id))
        outgoing = OutgoingMessage(session_id=self._active_session_id, message=message)
        self._outbox.append(outgoing)
        return await self._deliver(outgoing)

    async def retry(self, outgoing: OutgoingMessage) -> OutgoingMessage:
        """Resend a FAILED message to its original session."""
        if outgoing.status != DeliveryStatus.FAILED:
            raise ValidationError(f"Only failed messages can be retried (status={outgoing.status.value})")
        return await self._deliver(outgoing)
