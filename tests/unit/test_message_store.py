"""
Unit tests for the document-backed message store.

Uses the in-memory document backend; races are forced by yielding to the
event loop inside backend reads.
"""

import asyncio
import logging

import pytest

from univibe.core.exceptions import StoreUnavailableError
from univibe.infrastructure.local.change_feed import topic_for
from univibe.models.chat import ChatMessage
from univibe.services.message_store import DocumentMessageStore
from tests.conftest import CHATS, FlakyBackend, YieldingBackend, settle

SESSION = "u1_u2"


def _msg(sender: str, text: str, ts: int) -> ChatMessage:
    return ChatMessage(sender_id=sender, text=text, timestamp=ts)


# ============================================
# append / read
# ============================================


class TestAppendAndRead:
    @pytest.mark.asyncio
    async def test_read_unknown_session_is_empty(self, store):
        assert await store.read("nobody_here") == []

    @pytest.mark.asyncio
    async def test_first_append_creates_session(self, store, backend):
        message = _msg("u1", "hi", 1000)
        result = await store.append(SESSION, message)

        assert result == message
        assert await store.read(SESSION) == [message]

        snapshot = await backend.get(CHATS, SESSION)
        assert snapshot.version == 1
        assert snapshot.data["userA"] == "u1"
        assert snapshot.data["userB"] == "u2"
        assert snapshot.data["messages"] == [{"senderId": "u1", "text": "hi", "timestamp": 1000}]

    @pytest.mark.asyncio
    async def test_append_order_is_read_order(self, store):
        """hi then yo reads back as [hi, yo]."""
        await store.append(SESSION, _msg("u1", "hi", 1000))
        await store.append(SESSION, _msg("u2", "yo", 1001))

        texts = [m.text for m in await store.read(SESSION)]
        assert texts == ["hi", "yo"]

    @pytest.mark.asyncio
    async def test_insertion_order_wins_over_timestamp(self, store):
        await store.append(SESSION, _msg("u1", "later clock", 5000))
        await store.append(SESSION, _msg("u2", "earlier clock", 10))

        texts = [m.text for m in await store.read(SESSION)]
        assert texts == ["later clock", "earlier clock"]

    @pytest.mark.asyncio
    async def test_many_appends_preserve_order(self, store):
        sent = [_msg("u1" if i % 2 else "u2", f"m{i}", 1000 + i) for i in range(25)]
        for message in sent:
            await store.append(SESSION, message)
        assert await store.read(SESSION) == sent

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, store):
        await store.append("a_b", _msg("a", "to b", 1))
        await store.append("a_c", _msg("a", "to c", 2))

        assert [m.text for m in await store.read("a_b")] == ["to b"]
        assert [m.text for m in await store.read("a_c")] == ["to c"]


class TestAppendRaces:
    @pytest.mark.asyncio
    async def test_concurrent_first_appends_keep_both(self):
        """Two appends racing on session creation: the loser retries as an update."""
        backend = YieldingBackend()
        store = DocumentMessageStore(backend, collection=CHATS, retry_delay_ms=0)
        first = _msg("u1", "first", 1)
        second = _msg("u2", "second", 2)

        await asyncio.gather(store.append(SESSION, first), store.append(SESSION, second))

        assert await store.read(SESSION) == [first, second]

    @pytest.mark.asyncio
    async def test_concurrent_updates_lose_nothing(self):
        backend = YieldingBackend()
        store = DocumentMessageStore(backend, collection=CHATS, max_attempts=10, retry_delay_ms=0)
        opener = _msg("u1", "opener", 0)
        await store.append(SESSION, opener)

        burst = [_msg("u1", f"b{i}", i + 1) for i in range(4)]
        await asyncio.gather(*(store.append(SESSION, m) for m in burst))

        log = await store.read(SESSION)
        assert log[0] == opener
        assert len(log) == 5
        assert set(log[1:]) == set(burst)

    @pytest.mark.asyncio
    async def test_conflict_reported_to_on_retry(self):
        backend = YieldingBackend()
        store = DocumentMessageStore(backend, collection=CHATS, retry_delay_ms=0)
        retries = []

        await asyncio.gather(
            store.append(SESSION, _msg("u1", "a", 1)),
            store.append(SESSION, _msg("u2", "b", 2), on_retry=lambda n, e: retries.append((n, e))),
        )

        assert len(retries) == 1
        assert retries[0][0] == 1


class TestAppendFailures:
    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        backend = FlakyBackend([StoreUnavailableError("down"), StoreUnavailableError("down")])
        store = DocumentMessageStore(backend, collection=CHATS, max_attempts=3, retry_delay_ms=0)
        attempts = []

        message = _msg("u1", "hi", 1)
        await store.append(SESSION, message, on_retry=lambda n, e: attempts.append(n))

        assert attempts == [1, 2]
        assert await store.read(SESSION) == [message]

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_and_write_nothing(self):
        backend = FlakyBackend([StoreUnavailableError("down")] * 3)
        store = DocumentMessageStore(backend, collection=CHATS, max_attempts=3, retry_delay_ms=0)

        with pytest.raises(StoreUnavailableError) as exc:
            await store.append(SESSION, _msg("u1", "hi", 1))

        assert exc.value.details["attempts"] == 3
        assert backend.get_calls == 3
        assert await store.read(SESSION) == []

    def test_max_attempts_must_be_positive(self, backend):
        with pytest.raises(ValueError):
            DocumentMessageStore(backend, max_attempts=0)


# ============================================
# subscribe
# ============================================


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_initial_state_delivered_before_return(self, store):
        await store.append(SESSION, _msg("u1", "hi", 1))
        received = []

        subscription = await store.subscribe(SESSION, received.append)

        assert subscription.active
        assert [[m.text for m in snap] for snap in received] == [["hi"]]

    @pytest.mark.asyncio
    async def test_empty_session_delivers_empty_list(self, store):
        received = []
        await store.subscribe(SESSION, received.append)
        assert received == [[]]

    @pytest.mark.asyncio
    async def test_every_append_delivers_full_log(self, store):
        received = []
        await store.subscribe(SESSION, received.append)

        await store.append(SESSION, _msg("u1", "hi", 1))
        await settle()
        await store.append(SESSION, _msg("u2", "yo", 2))
        await settle()

        assert [[m.text for m in snap] for snap in received] == [[], ["hi"], ["hi", "yo"]]

    @pytest.mark.asyncio
    async def test_burst_delivers_final_state(self, store):
        received = []
        await store.subscribe(SESSION, received.append)

        for i in range(10):
            await store.append(SESSION, _msg("u1", f"m{i}", i))
        await settle()

        assert [m.text for m in received[-1]] == [f"m{i}" for i in range(10)]
        # Snapshots only ever grow.
        lengths = [len(snap) for snap in received]
        assert lengths == sorted(lengths)

    @pytest.mark.asyncio
    async def test_cancelled_subscription_never_fires(self, store):
        received = []
        subscription = await store.subscribe(SESSION, received.append)

        await store.append(SESSION, _msg("u1", "before", 1))
        subscription.cancel()
        await store.append(SESSION, _msg("u1", "after", 2))
        await settle()

        assert received == [[]]
        assert not subscription.active

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, store, backend):
        subscription = await store.subscribe(SESSION, lambda messages: None)

        subscription.cancel()
        subscription.cancel()

        assert not subscription.active
        assert backend.feed.listener_count(topic_for(CHATS, SESSION)) == 0

    @pytest.mark.asyncio
    async def test_transport_error_goes_to_error_channel(self, store, backend):
        received, errors = [], []
        subscription = await store.subscribe(SESSION, received.append, errors.append)

        backend.feed.publish_error(topic_for(CHATS, SESSION), ConnectionError("socket closed"))
        await settle()

        assert len(errors) == 1
        assert isinstance(errors[0], StoreUnavailableError)
        assert received == [[]]
        assert subscription.active

        # Still attached: later changes are delivered.
        await store.append(SESSION, _msg("u1", "back", 1))
        await settle()
        assert [m.text for m in received[-1]] == ["back"]

    @pytest.mark.asyncio
    async def test_transport_error_without_handler_is_logged(self, store, backend, caplog):
        await store.subscribe(SESSION, lambda messages: None)

        with caplog.at_level(logging.WARNING, logger="univibe"):
            backend.feed.publish_error(topic_for(CHATS, SESSION), ConnectionError("socket closed"))
            await settle()

        assert "socket closed" in caplog.text

    @pytest.mark.asyncio
    async def test_errors_after_cancel_are_dropped(self, store, backend):
        errors = []
        subscription = await store.subscribe(SESSION, lambda messages: None, errors.append)
        subscription.cancel()

        backend.feed.publish_error(topic_for(CHATS, SESSION), ConnectionError("late"))
        await settle()

        assert errors == []


class TestLongMessages:
    @pytest.mark.asyncio
    async def test_read_returns_long_message_from_other_writer(self, store, backend):
        long_text = "y" * 20000
        await backend.create(
            CHATS,
            SESSION,
            {"messages": [{"senderId": "u2", "text": long_text, "timestamp": 1}]},
        )

        log = await store.read(SESSION)

        assert [m.text for m in log] == [long_text]

    @pytest.mark.asyncio
    async def test_subscribe_delivers_long_message(self, store):
        received, errors = [], []
        await store.append(SESSION, _msg("u2", "z" * 20000, 1))

        await store.subscribe(SESSION, received.append, errors.append)

        assert errors == []
        assert len(received[0][0].text) == 20000
