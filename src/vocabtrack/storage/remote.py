"""Remote word collection: async key-value store with change notification."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from vocabtrack import monitoring
from vocabtrack.errors import RecordNotFoundError, RemoteStoreError
from vocabtrack.models.base import ensure_utc
from vocabtrack.models.metrics import RemoteWordRecord
from vocabtrack.models.models import RemoteWord

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[RemoteWordRecord]], None]
Unsubscribe = Callable[[], None]

UPDATABLE_FIELDS = {
    "translation",
    "correct_count",
    "total_attempts",
    "input_times",
    "last_practiced_at",
    "frequency",
}


def union_preserving_order(existing: Iterable[Any], additions: Iterable[Any]) -> List[Any]:
    """Append values not already present, keeping the existing order."""
    merged = list(existing)
    for value in additions:
        if value not in merged:
            merged.append(value)
    return merged


class RemoteWordCollection(ABC):
    """Per-user collection of word records keyed by an opaque document id."""

    @abstractmethod
    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Unsubscribe:
        """Push the full snapshot now and after every change; returns an unsubscribe handle."""

    @abstractmethod
    async def create(self, user_id: str, fields: Mapping[str, Any]) -> str:
        """Create a record and return its id."""

    @abstractmethod
    async def update_fields(
        self,
        user_id: str,
        record_id: str,
        fields: Mapping[str, Any],
        array_union: Optional[Mapping[str, Iterable[Any]]] = None,
    ) -> None:
        """Partially update a record; raises RecordNotFoundError if it is gone."""

    @abstractmethod
    async def delete(self, user_id: str, record_id: str) -> None:
        """Delete a record."""

    @abstractmethod
    async def query_by_word(self, user_id: str, word: str) -> List[RemoteWordRecord]:
        """Records whose word equals the given word."""

    @abstractmethod
    async def list_all(self, user_id: str) -> List[RemoteWordRecord]:
        """Every record of the user."""


class SqlRemoteWordCollection(RemoteWordCollection):
    """Remote collection backed by a SQLAlchemy database."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize the collection with a session factory."""
        self.session_factory = session_factory
        self._subscribers: Dict[str, List[SnapshotCallback]] = {}

    @staticmethod
    def _to_record(row: RemoteWord) -> RemoteWordRecord:
        return RemoteWordRecord(
            id=row.id,
            word=row.word,
            translation=row.translation or "",
            correct_count=row.correct_count or 0,
            total_attempts=row.total_attempts or 0,
            input_times=list(row.input_times or []),
            last_practiced_at=ensure_utc(row.last_practiced_at),
            created_at=ensure_utc(row.created_at),
            frequency=row.frequency or 0,
        )

    def _snapshot(self, db: Session, user_id: str) -> List[RemoteWordRecord]:
        rows = (
            db.query(RemoteWord)
            .filter(RemoteWord.user_id == user_id)
            .order_by(RemoteWord.created_at)
            .all()
        )
        return [self._to_record(row) for row in rows]

    def _notify(self, user_id: str) -> None:
        callbacks = list(self._subscribers.get(user_id, []))
        if not callbacks:
            return
        snapshot = self._list_all_sync(user_id)
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error("Snapshot listener failed for user %s: %s", user_id, e)

    def _list_all_sync(self, user_id: str) -> List[RemoteWordRecord]:
        db = self.session_factory()
        try:
            return self._snapshot(db, user_id)
        finally:
            db.close()

    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Unsubscribe:
        self._subscribers.setdefault(user_id, []).append(callback)
        logger.debug("Subscribed listener for user %s", user_id)
        callback(self._list_all_sync(user_id))

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(user_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def create(self, user_id: str, fields: Mapping[str, Any]) -> str:
        db = self.session_factory()
        try:
            row = RemoteWord(
                user_id=user_id,
                word=fields["word"],
                translation=fields.get("translation", ""),
                correct_count=fields.get("correct_count", 0),
                total_attempts=fields.get("total_attempts", 0),
                input_times=list(fields.get("input_times", [])),
                last_practiced_at=fields.get("last_practiced_at"),
                frequency=fields.get("frequency", 0),
            )
            if fields.get("created_at") is not None:
                row.created_at = fields["created_at"]
            db.add(row)
            db.commit()
            record_id = row.id
        except SQLAlchemyError as e:
            db.rollback()
            monitoring.remote_errors.labels(operation="create").inc()
            raise RemoteStoreError(f"Failed to create word: {e}") from e
        finally:
            db.close()

        logger.debug("Created remote record %s for user %s", record_id, user_id)
        self._notify(user_id)
        return record_id

    async def update_fields(
        self,
        user_id: str,
        record_id: str,
        fields: Mapping[str, Any],
        array_union: Optional[Mapping[str, Iterable[Any]]] = None,
    ) -> None:
        unknown = (set(fields) | set(array_union or {})) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown fields: {sorted(unknown)}")

        db = self.session_factory()
        try:
            row = (
                db.query(RemoteWord)
                .filter(RemoteWord.id == record_id, RemoteWord.user_id == user_id)
                .first()
            )
            if not row:
                raise RecordNotFoundError(record_id)

            for key, value in fields.items():
                setattr(row, key, list(value) if key == "input_times" else value)
            for key, values in (array_union or {}).items():
                setattr(row, key, union_preserving_order(getattr(row, key) or [], values))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            monitoring.remote_errors.labels(operation="update").inc()
            raise RemoteStoreError(f"Failed to update record {record_id}: {e}") from e
        finally:
            db.close()

        self._notify(user_id)

    async def delete(self, user_id: str, record_id: str) -> None:
        db = self.session_factory()
        try:
            deleted = (
                db.query(RemoteWord)
                .filter(RemoteWord.id == record_id, RemoteWord.user_id == user_id)
                .delete()
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            monitoring.remote_errors.labels(operation="delete").inc()
            raise RemoteStoreError(f"Failed to delete record {record_id}: {e}") from e
        finally:
            db.close()

        if deleted:
            self._notify(user_id)

    async def query_by_word(self, user_id: str, word: str) -> List[RemoteWordRecord]:
        db = self.session_factory()
        try:
            rows = (
                db.query(RemoteWord)
                .filter(RemoteWord.user_id == user_id, RemoteWord.word == word)
                .all()
            )
            return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            monitoring.remote_errors.labels(operation="query").inc()
            raise RemoteStoreError(f"Failed to query word {word}: {e}") from e
        finally:
            db.close()

    async def list_all(self, user_id: str) -> List[RemoteWordRecord]:
        try:
            return self._list_all_sync(user_id)
        except SQLAlchemyError as e:
            monitoring.remote_errors.labels(operation="list").inc()
            raise RemoteStoreError(f"Failed to list words: {e}") from e
