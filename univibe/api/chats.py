"""
Chat API endpoints.

History, send and a Server-Sent Events stream of session snapshots for the
conversation between the caller and a peer.
"""

import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from univibe.api.deps import AppSettings, CurrentUser, MessageStore, Replies
from univibe.core.exceptions import InvalidIdentityError, StoreUnavailableError
from univibe.core.logger import logger
from univibe.models.chat import (
    ChatHistoryResponse,
    ChatMessage,
    SendMessageRequest,
    SendMessageResponse,
)
from univibe.models.enums import DeliveryStatus
from univibe.services.session_resolver import resolve_session_id
from univibe.utils.datetime_utils import SenderClock, now_utc

router = APIRouter()

KEEP_ALIVE_SECONDS = 15

_clock = SenderClock()


def _resolve_or_400(user_id: str, peer_id: str, separator: str) -> str:
    try:
        return resolve_session_id(user_id, peer_id, separator)
    except InvalidIdentityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


def _snapshot_payload(session_id: str, messages: list[ChatMessage]) -> str:
    return json.dumps(
        {
            "type": "snapshot",
            "session_id": session_id,
            "messages": [message.to_wire() for message in messages],
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


@router.get("/{peer_id}/messages", response_model=ChatHistoryResponse)
async def get_messages(
    peer_id: str,
    user: CurrentUser,
    store: MessageStore,
    settings: AppSettings,
) -> ChatHistoryResponse:
    """Full ordered log of the conversation with ``peer_id``."""
    session_id = _resolve_or_400(user.id, peer_id, settings.SESSION_ID_SEPARATOR)
    try:
        messages = await store.read(session_id)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    return ChatHistoryResponse(session_id=session_id, messages=messages, fetched_at=now_utc())


@router.post(
    "/{peer_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    peer_id: str,
    request: SendMessageRequest,
    user: CurrentUser,
    store: MessageStore,
    replies: Replies,
    settings: AppSettings,
) -> SendMessageResponse:
    """Append the caller's message; optionally schedule a simulated reply."""
    session_id = _resolve_or_400(user.id, peer_id, settings.SESSION_ID_SEPARATOR)
    text = request.text.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message text must not be empty")

    message = ChatMessage(sender_id=user.id, text=text, timestamp=_clock.next(user.id))
    attempts = 1

    def on_retry(attempt: int, error: Exception) -> None:
        nonlocal attempts
        attempts = attempt + 1

    try:
        await store.append(session_id, message, on_retry=on_retry)
    except StoreUnavailableError as e:
        logger.warning(f"Send to {session_id} failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": DeliveryStatus.FAILED.value, "message": e.message},
        )

    if settings.REPLY_ENABLED:
        replies.schedule_reply(session_id, peer_id)

    return SendMessageResponse(
        session_id=session_id,
        status=DeliveryStatus.DELIVERED,
        message=message,
        attempts=attempts,
        reply_scheduled=settings.REPLY_ENABLED,
    )


@router.get("/{peer_id}/stream")
async def stream_messages(
    peer_id: str,
    user: CurrentUser,
    request: Request,
    store: MessageStore,
    settings: AppSettings,
) -> StreamingResponse:
    """Server-Sent Events: one ``snapshot`` event per change of the log."""
    session_id = _resolve_or_400(user.id, peer_id, settings.SESSION_ID_SEPARATOR)
    queue: asyncio.Queue[str] = asyncio.Queue()

    def on_change(messages: list[ChatMessage]) -> None:
        queue.put_nowait(_snapshot_payload(session_id, messages))

    def on_error(error: Exception) -> None:
        queue.put_nowait(json.dumps({"type": "error", "detail": str(error)}))

    try:
        subscription = await store.subscribe(session_id, on_change, on_error)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            yield 'data: {"type":"connected"}\n\n'
            while True:
                if await request.is_disconnected():
                    break
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {data}\n\n"
        finally:
            subscription.cancel()

    return StreamingResponse(event_generator(), media_type="text/event-stream")
