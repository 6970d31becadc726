"""
In-process change notification for document backends.

Each listened document is a topic with a set of queues. Writers publish
snapshots (or transport errors) and every listener drains its own queue
from a pump task.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Union

from univibe.core.logger import logger
from univibe.interfaces.document_backend import ErrorCallback, IListenerHandle, SnapshotCallback
from univibe.models.document import DocumentSnapshot

FeedItem = Union[DocumentSnapshot, Exception]


def topic_for(collection: str, key: str) -> str:
    return f"{collection}/{key}"


class ChangeFeed:
    def __init__(self) -> None:
        self._connections: dict[str, set[asyncio.Queue[FeedItem]]] = {}

    def connect(self, topic: str) -> asyncio.Queue[FeedItem]:
        queue: asyncio.Queue[FeedItem] = asyncio.Queue()
        self._connections.setdefault(topic, set()).add(queue)
        return queue

    def disconnect(self, topic: str, queue: asyncio.Queue[FeedItem]) -> None:
        queues = self._connections.get(topic)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            self._connections.pop(topic, None)

    def publish(self, topic: str, snapshot: DocumentSnapshot) -> None:
        for queue in list(self._connections.get(topic, set())):
            queue.put_nowait(snapshot)

    def publish_error(self, topic: str, error: Exception) -> None:
        """Report a transport failure to every listener of a topic."""
        for queue in list(self._connections.get(topic, set())):
            queue.put_nowait(error)

    def listener_count(self, topic: str) -> int:
        return len(self._connections.get(topic, set()))


class FeedListener(IListenerHandle):
    """Listener handle that pumps a ChangeFeed queue into callbacks."""

    def __init__(
        self,
        feed: ChangeFeed,
        topic: str,
        queue: asyncio.Queue[FeedItem],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._feed = feed
        self._topic = topic
        self._queue = queue
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._last_version = -1
        self._closed = False
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._task is None and not self._closed:
            self._task = asyncio.get_running_loop().create_task(self._pump())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.disconnect(self._topic, self._queue)
        if self._task is not None:
            self._task.cancel()

    def deliver(self, snapshot: DocumentSnapshot) -> None:
        # Snapshots at or below the last delivered version are stale.
        if self._closed or snapshot.version <= self._last_version:
            return
        self._last_version = snapshot.version
        try:
            self._on_snapshot(snapshot)
        except Exception:
            logger.exception(f"Snapshot callback failed for {self._topic}")

    def report(self, error: Exception) -> None:
        if self._closed:
            return
        if self._on_error is None:
            logger.warning(f"Listener error on {self._topic}: {error}")
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception(f"Error callback failed for {self._topic}")

    async def _pump(self) -> None:
        while not self._closed:
            items = [await self._queue.get()]
            while not self._queue.empty():
                items.append(self._queue.get_nowait())

            # Coalesce runs of snapshots to the newest one; errors keep their position.
            pending: Optional[DocumentSnapshot] = None
            for item in items:
                if isinstance(item, Exception):
                    if pending is not None:
                        self.deliver(pending)
                        pending = None
                    self.report(item)
                elif pending is None or item.version > pending.version:
                    pending = item
            if pending is not None:
                self.deliver(pending)
