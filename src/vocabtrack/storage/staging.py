"""Durable local staging: a small synchronous key-value store."""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from vocabtrack.models.models import StagingEntry

logger = logging.getLogger(__name__)


class LocalStaging(ABC):
    """String key-value store that survives process restart."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Value for key, or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Keys starting with prefix."""


class MemoryLocalStaging(LocalStaging):
    """Process-local staging, used in tests and when no database is configured."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class SqlLocalStaging(LocalStaging):
    """Staging stored in the staging_entries table."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize the staging area with a session factory."""
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            entry = db.get(StagingEntry, key)
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            db.merge(StagingEntry(key=key, value=value))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self.session_factory()
        try:
            db.query(StagingEntry).filter(StagingEntry.key == key).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def keys(self, prefix: str = "") -> List[str]:
        db = self.session_factory()
        try:
            query = db.query(StagingEntry.key)
            if prefix:
                query = query.filter(StagingEntry.key.startswith(prefix, autoescape=True))
            return [key for (key,) in query.order_by(StagingEntry.key).all()]
        finally:
            db.close()
