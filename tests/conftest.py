"""
Shared fixtures for chat core tests.
"""

import asyncio
import random

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from univibe.infrastructure.local.database import get_session_factory, init_db
from univibe.infrastructure.local.memory_document_backend import InMemoryDocumentBackend
from univibe.services.message_store import DocumentMessageStore

CHATS = "univibe_chats"


async def settle(rounds: int = 10) -> None:
    """Let pending listener pumps run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeSleep:
    """Records requested delays and returns without waiting."""

    def __init__(self):
        self.calls: list[float] = []
        self.release = asyncio.Event()
        self.blocking = False

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.blocking:
            await self.release.wait()
        else:
            await asyncio.sleep(0)


@pytest.fixture
def backend():
    return InMemoryDocumentBackend()


@pytest.fixture
def store(backend):
    return DocumentMessageStore(backend, collection=CHATS, retry_delay_ms=0)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest_asyncio.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield get_session_factory(engine)
    await engine.dispose()


class YieldingBackend(InMemoryDocumentBackend):
    """Yields after every read and before listen so concurrent calls interleave."""

    async def get(self, collection, key):
        snapshot = await super().get(collection, key)
        await asyncio.sleep(0)
        return snapshot

    async def listen(self, collection, key, on_snapshot, on_error=None):
        await asyncio.sleep(0)
        return await super().listen(collection, key, on_snapshot, on_error)


class FlakyBackend(InMemoryDocumentBackend):
    """Raises queued errors from get() before behaving normally."""

    def __init__(self, errors=()):
        super().__init__()
        self.errors = list(errors)
        self.get_calls = 0

    async def get(self, collection, key):
        self.get_calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return await super().get(collection, key)
