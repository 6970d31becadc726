"""
SQLite implementation of the document backend.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError

from univibe.core.exceptions import (
    ConflictError,
    DuplicateError,
    NotFoundError,
    StoreUnavailableError,
)
from univibe.infrastructure.local.change_feed import ChangeFeed, FeedListener, topic_for
from univibe.infrastructure.local.database import DocumentORM, get_session_factory
from univibe.interfaces.document_backend import (
    ErrorCallback,
    IDocumentBackend,
    IListenerHandle,
    SnapshotCallback,
)
from univibe.models.document import DocumentSnapshot
from univibe.utils.datetime_utils import now_utc


class SqliteDocumentBackend(IDocumentBackend):
    """SQLite implementation of the document backend.

    Updates are conditional on the stored version, so two writers that read
    the same version cannot both succeed. Change notification is in-process
    only; transport failures on a document are also reported to its listeners.
    """

    def __init__(self, session_factory=None, feed: Optional[ChangeFeed] = None):
        self._session_factory = session_factory or get_session_factory()
        self.feed = feed or ChangeFeed()

    def _orm_to_snapshot(self, collection: str, key: str, orm: Optional[DocumentORM]) -> DocumentSnapshot:
        """Convert ORM object to snapshot."""
        if orm is None:
            return DocumentSnapshot(collection=collection, key=key)
        return DocumentSnapshot(
            collection=collection,
            key=key,
            data=dict(orm.data),
            version=orm.version,
        )

    def _unavailable(self, collection: str, key: str, action: str, error: Exception) -> StoreUnavailableError:
        """Build the transport error and report it to the document's listeners."""
        unavailable = StoreUnavailableError(f"Failed to {action} {collection}/{key}: {error}")
        self.feed.publish_error(topic_for(collection, key), unavailable)
        return unavailable

    async def get(self, collection: str, key: str) -> DocumentSnapshot:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DocumentORM).where(
                        and_(DocumentORM.collection == collection, DocumentORM.key == key)
                    )
                )
                return self._orm_to_snapshot(collection, key, result.scalar_one_or_none())
        except DBAPIError as e:
            raise self._unavailable(collection, key, "read", e) from e

    async def create(self, collection: str, key: str, data: dict[str, Any]) -> DocumentSnapshot:
        try:
            async with self._session_factory() as session:
                orm = DocumentORM(collection=collection, key=key, data=data, version=1)
                session.add(orm)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise DuplicateError(f"Document {collection}/{key} already exists") from e
        except DBAPIError as e:
            raise self._unavailable(collection, key, "create", e) from e

        snapshot = DocumentSnapshot(collection=collection, key=key, data=data, version=1)
        self.feed.publish(topic_for(collection, key), snapshot)
        return snapshot

    async def update(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        expected_version: int,
    ) -> DocumentSnapshot:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(DocumentORM)
                    .where(
                        and_(
                            DocumentORM.collection == collection,
                            DocumentORM.key == key,
                            DocumentORM.version == expected_version,
                        )
                    )
                    .values(data=data, version=expected_version + 1, updated_at=now_utc())
                )
                if result.rowcount == 0:
                    await session.rollback()
                    current = await session.execute(
                        select(DocumentORM.version).where(
                            and_(DocumentORM.collection == collection, DocumentORM.key == key)
                        )
                    )
                    actual = current.scalar_one_or_none()
                    if actual is None:
                        raise NotFoundError(f"Document {collection}/{key} not found")
                    raise ConflictError(
                        f"Document {collection}/{key} changed",
                        expected_version=expected_version,
                        actual_version=actual,
                    )
                await session.commit()
        except DBAPIError as e:
            raise self._unavailable(collection, key, "update", e) from e

        snapshot = DocumentSnapshot(
            collection=collection,
            key=key,
            data=data,
            version=expected_version + 1,
        )
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
        # Connect before reading so no write between the read and the
        # registration is missed.
        queue = self.feed.connect(topic)
        try:
            snapshot = await self.get(collection, key)
        except StoreUnavailableError:
            self.feed.disconnect(topic, queue)
            raise
        listener = FeedListener(self.feed, topic, queue, on_snapshot, on_error)
        listener.deliver(snapshot)
        listener.start()
        return listener
