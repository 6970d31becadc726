"""
Message store built on the document backend.

Each session is one document in the chats collection holding the ordered
``messages`` array plus the two participants and timestamps.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from univibe.core.exceptions import (
    ConflictError,
    DuplicateError,
    NotFoundError,
    StoreUnavailableError,
)
from univibe.core.logger import logger
from univibe.interfaces.document_backend import IDocumentBackend
from univibe.interfaces.message_store import IMessageStore, MessagesCallback, RetryCallback
from univibe.models.chat import ChatDocument, ChatMessage
from univibe.models.document import DocumentSnapshot
from univibe.services.session_resolver import DEFAULT_SEPARATOR, session_participants
from univibe.services.subscription import Subscription
from univibe.utils.datetime_utils import epoch_millis

# Failures that leave the log untouched and are safe to retry.
RETRYABLE_ERRORS = (DuplicateError, NotFoundError, ConflictError, StoreUnavailableError)


class DocumentMessageStore(IMessageStore):
    """Append-only session logs stored as documents."""

    def __init__(
        self,
        backend: IDocumentBackend,
        collection: str = "univibe_chats",
        separator: str = DEFAULT_SEPARATOR,
        max_attempts: int = 5,
        retry_delay_ms: int = 50,
        clock: Callable[[], int] = epoch_millis,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._backend = backend
        self._collection = collection
        self._separator = separator
        self._max_attempts = max_attempts
        self._retry_delay_ms = retry_delay_ms
        self._clock = clock

    def _parse_messages(self, snapshot: DocumentSnapshot) -> list[ChatMessage]:
        if not snapshot.exists:
            return []
        return [ChatMessage.model_validate(raw) for raw in snapshot.data.get("messages") or []]

    async def _append_once(self, session_id: str, message: ChatMessage) -> None:
        snapshot = await self._backend.get(self._collection, session_id)
        now = self._clock()

        if not snapshot.exists:
            user_a, user_b = session_participants(session_id, self._separator)
            document = ChatDocument(
                session_id=session_id,
                messages=[message],
                user_a=user_a,
                user_b=user_b,
                created_at=now,
                last_updated=now,
            )
            await self._backend.create(self._collection, session_id, document.to_wire())
            return

        data = dict(snapshot.data)
        data["messages"] = [*(data.get("messages") or []), message.to_wire()]
        data["lastUpdated"] = now
        await self._backend.update(
            self._collection,
            session_id,
            data,
            expected_version=snapshot.version,
        )

    async def append(
        self,
        session_id: str,
        message: ChatMessage,
        on_retry: Optional[RetryCallback] = None,
    ) -> ChatMessage:
        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._append_once(session_id, message)
            except RETRYABLE_ERRORS as e:
                last_error = e
                if attempt == self._max_attempts:
                    break
                logger.info(
                    f"Append to {session_id} failed on attempt {attempt}/{self._max_attempts}: {e}"
                )
                if on_retry is not None:
                    on_retry(attempt, e)
                if self._retry_delay_ms:
                    await asyncio.sleep(self._retry_delay_ms / 1000)
                continue
            if attempt > 1:
                logger.info(f"Append to {session_id} succeeded on attempt {attempt}")
            return message

        raise StoreUnavailableError(
            f"Append to session {session_id} failed after {self._max_attempts} attempts",
            details={"attempts": self._max_attempts, "last_error": str(last_error)},
        ) from last_error

    async def read(self, session_id: str) -> list[ChatMessage]:
        snapshot = await self._backend.get(self._collection, session_id)
        return self._parse_messages(snapshot)

    async def subscribe(
        self,
        session_id: str,
        on_change: MessagesCallback,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        subscription = Subscription(session_id, on_change, on_error)

        def handle_error(error: Exception) -> None:
            if not isinstance(error, StoreUnavailableError):
                error = StoreUnavailableError(f"Subscription transport failed: {error}")
            subscription.report_error(error)

        def handle_snapshot(snapshot: DocumentSnapshot) -> None:
            try:
                messages = self._parse_messages(snapshot)
            except PydanticValidationError as e:
                handle_error(StoreUnavailableError(f"Malformed chat document {session_id}: {e}"))
                return
            subscription.dispatch(messages)

        listener = await self._backend.listen(
            self._collection,
            session_id,
            handle_snapshot,
            handle_error,
        )
        subscription.attach(listener)
        return subscription
