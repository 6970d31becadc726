"""
Enum definitions for the chat core.
"""

from enum import Enum


class DeliveryStatus(str, Enum):
    """
    Delivery state of a locally sent message.

    PENDING = Append in flight (first attempt)
    RETRYING = A previous attempt failed and the store is retrying
    DELIVERED = Persisted in the session log
    FAILED = Retries exhausted, the message was not persisted
    """

    PENDING = "PENDING"
    RETRYING = "RETRYING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class ReplyAgentState(str, Enum):
    """Simulated counterpart state."""

    IDLE = "IDLE"
    TYPING = "TYPING"
