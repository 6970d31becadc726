"""
Chat message and chat document models.

Messages serialize to the wire shape {senderId, text, timestamp}.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from univibe.models.enums import DeliveryStatus


class ChatMessage(BaseModel):
    """A single immutable message in a session log."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    sender_id: str = Field(..., min_length=1, alias="senderId", description="Author identity")
    text: str = Field(..., min_length=1, description="Message text")
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")

    def to_wire(self) -> dict:
        """Serialize to the stored/wire representation."""
        return self.model_dump(by_alias=True)


class ChatDocument(BaseModel):
    """Stored chat document for one session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    user_a: str = Field(..., alias="userA")
    user_b: str = Field(..., alias="userB")
    created_at: int = Field(..., alias="createdAt")
    last_updated: int = Field(..., alias="lastUpdated")

    def to_wire(self) -> dict:
        """Serialize to the backend document body (session id is the key)."""
        return self.model_dump(by_alias=True, exclude={"session_id"})


class OutgoingMessage(BaseModel):
    """Caller-visible record of a send and its delivery state."""

    session_id: str
    message: ChatMessage
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempts: int = 0
    error: Optional[str] = None

    @property
    def is_delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


# ===========================================
# API schemas
# ===========================================


class SendMessageRequest(BaseModel):
    """Schema for sending a chat message."""

    text: str = Field(..., min_length=1)


class SendMessageResponse(BaseModel):
    """Result of a send."""

    session_id: str
    status: DeliveryStatus
    message: ChatMessage
    attempts: int
    reply_scheduled: bool = False


class ChatHistoryResponse(BaseModel):
    """Full ordered log of a session."""

    session_id: str
    messages: list[ChatMessage]
    fetched_at: datetime
