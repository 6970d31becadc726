"""
In-memory document backend.

Dict-backed implementation of IDocumentBackend for tests and the
``memory`` environment.
"""

from __future__ import annotations

import copy
from typing import Any, Optional

from univibe.core.exceptions import ConflictError, DuplicateError, NotFoundError
from univibe.infrastructure.local.change_feed import ChangeFeed, FeedListener, topic_for
from univibe.interfaces.document_backend import (
    ErrorCallback,
    IDocumentBackend,
    IListenerHandle,
    SnapshotCallback,
)
from univibe.models.document import DocumentSnapshot


class InMemoryDocumentBackend(IDocumentBackend):
    """In-memory implementation of the document backend."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._documents: dict[tuple[str, str], tuple[dict[str, Any], int]] = {}
        self.feed = feed or ChangeFeed()

    def _snapshot(self, collection: str, key: str) -> DocumentSnapshot:
        stored = self._documents.get((collection, key))
        if stored is None:
            return DocumentSnapshot(collection=collection, key=key)
        data, version = stored
        return DocumentSnapshot(
            collection=collection,
            key=key,
            data=copy.deepcopy(data),
            version=version,
        )

    async def get(self, collection: str, key: str) -> DocumentSnapshot:
        return self._snapshot(collection, key)

    async def create(self, collection: str, key: str, data: dict[str, Any]) -> DocumentSnapshot:
        if (collection, key) in self._documents:
            raise DuplicateError(f"Document {collection}/{key} already exists")
        self._documents[(collection, key)] = (copy.deepcopy(data), 1)
        snapshot = self._snapshot(collection, key)
        self.feed.publish(topic_for(collection, key), snapshot)
        return snapshot

    async def update(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        expected_version: int,
    ) -> DocumentSnapshot:
        stored = self._documents.get((collection, key))
        if stored is None:
            raise NotFoundError(f"Document {collection}/{key} not found")
        _, version = stored
        if version != expected_version:
            raise ConflictError(
                f"Document {collection}/{key} changed",
                expected_version=expected_version,
                actual_version=version,
            )
        self._documents[(collection, key)] = (copy.deepcopy(data), version + 1)
        snapshot = self._snapshot(collection, key)
        self.feed.publish(topic_for(collection, key), snapshot)
        return snapshot

    async def listen(
        self,
        collection: str,
        key: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> IListenerHandle:
        topic = topic_for(collection, key)
        queue = self.feed.connect(topic)
        listener = FeedListener(self.feed, topic, queue, on_snapshot, on_error)
        listener.deliver(self._snapshot(collection, key))
        listener.start()
        return listener
