"""
Document backend interface.

Defines the get/create/update/listen primitive set the chat store is built on.
No query language is assumed: only point lookup by key, whole-document
update and change notification.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from univibe.models.document import DocumentSnapshot

SnapshotCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class IListenerHandle(ABC):
    """Registration returned by ``IDocumentBackend.listen``."""

    @abstractmethod
    def close(self) -> None:
        """Detach the listener. Synchronous and idempotent."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass


class IDocumentBackend(ABC):
    """Abstract interface for document persistence."""

    @abstractmethod
    async def get(self, collection: str, key: str) -> DocumentSnapshot:
        """
        Point lookup.

        Returns:
            Snapshot with ``data=None`` when the document does not exist

        Raises:
            StoreUnavailableError: Backend transport failure
        """
        pass

    @abstractmethod
    async def create(self, collection: str, key: str, data: dict[str, Any]) -> DocumentSnapshot:
        """
        Create a document.

        Raises:
            DuplicateError: Document already exists
            StoreUnavailableError: Backend transport failure
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        expected_version: int,
    ) -> DocumentSnapshot:
        """
        Replace a document body if it is still at ``expected_version``.

        Raises:
            NotFoundError: Document does not exist
            ConflictError: Document changed since it was read
            StoreUnavailableError: Backend transport failure
        """
        pass

    @abstractmethod
    async def listen(
        self,
        collection: str,
        key: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> IListenerHandle:
        """
        Observe a document.

        ``on_snapshot`` receives the current snapshot before this coroutine
        returns, then every later snapshot in version order. Bursts may be
        coalesced but the latest snapshot is always delivered. Transport
        errors after registration go to ``on_error`` and do not detach the
        listener.

        Raises:
            StoreUnavailableError: Registration failed
        """
        pass
