"""Durable offline queue of word updates waiting for the remote store."""
import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from vocabtrack import monitoring
from vocabtrack.config import settings
from vocabtrack.errors import RecordNotFoundError
from vocabtrack.models.base import utc_now
from vocabtrack.models.metrics import SyncPayload, SyncQueueItem
from vocabtrack.services.word_store import normalize_word
from vocabtrack.storage.auth import AuthContext
from vocabtrack.storage.remote import RemoteWordCollection
from vocabtrack.storage.staging import LocalStaging

logger = logging.getLogger(__name__)


class FlushStatus(Enum):
    """Outcome of one flush."""
    EMPTY = "empty"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class FlushResult:
    """Summary of a flush, for status indicators and tests."""
    status: FlushStatus
    attempted: int = 0
    updated: int = 0
    retried: int = 0
    dead_lettered: int = 0
    orphaned: int = 0
    error: Optional[str] = None


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class SyncQueue:
    """Last-write-wins-per-word queue persisted in local staging.

    Every item carries the full current snapshot of a word, so a flush keeps
    only the last item per remote id. A failed flush bumps the retry count of
    every attempted item and drops the ones that reach the retry cap.
    """

    STORAGE_KEY = "sync_queue"
    LEASE_KEY = "sync_queue_lease"

    def __init__(
        self,
        staging: LocalStaging,
        remote: RemoteWordCollection,
        auth: AuthContext,
        is_live: Optional[Callable[[SyncQueueItem], bool]] = None,
        max_retries: Optional[int] = None,
        remote_timeout: Optional[float] = None,
        lease_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
        session_id: Optional[str] = None,
    ):
        """Initialize the queue over a staging area and a remote collection."""
        self.staging = staging
        self.remote = remote
        self.auth = auth
        self.is_live = is_live
        self.max_retries = max_retries if max_retries is not None else settings.sync.max_retries
        self.remote_timeout = remote_timeout if remote_timeout is not None else settings.sync.remote_timeout
        self.lease_seconds = lease_seconds if lease_seconds is not None else settings.sync.lease_seconds
        self.clock = clock
        self.session_id = session_id or uuid.uuid4().hex
        self._inflight: Optional[asyncio.Future] = None

    # Storage

    def _load(self) -> List[SyncQueueItem]:
        try:
            raw = self.staging.get(self.STORAGE_KEY)
        except Exception as e:
            logger.error("Failed to read sync queue: %s", e)
            return []
        if not raw:
            return []

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Sync queue is corrupted, treating as empty: %s", e)
            return []
        if not isinstance(data, list):
            logger.error("Sync queue has unexpected shape, treating as empty")
            return []

        items = []
        for entry in data:
            try:
                items.append(SyncQueueItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed sync queue item: %s", e)
        return items

    def _save(self, items: List[SyncQueueItem]) -> None:
        try:
            if items:
                self.staging.set(self.STORAGE_KEY, json.dumps([item.to_dict() for item in items]))
            else:
                self.staging.delete(self.STORAGE_KEY)
        except Exception as e:
            logger.error("Failed to save sync queue: %s", e)
        monitoring.sync_pending.set(len(items))

    # Queue operations

    def enqueue(self, word: str, remote_id: str, payload: SyncPayload) -> SyncQueueItem:
        """Append an update; duplicates are coalesced at flush time."""
        if not remote_id:
            raise ValueError("A remote id is required to queue an update")

        now = self.clock()
        item = SyncQueueItem(
            id=f"{_epoch_ms(now)}_{uuid.uuid4().hex[:8]}",
            word=normalize_word(word),
            remote_id=remote_id,
            payload=payload,
            created_at=_epoch_ms(now),
        )
        items = self._load()
        items.append(item)
        self._save(items)
        logger.debug("Queued update for '%s' (%d pending)", item.word, len(items))
        return item

    def items(self) -> List[SyncQueueItem]:
        return self._load()

    def pending_count(self) -> int:
        return len(self._load())

    def unique_word_count(self) -> int:
        return len({item.word for item in self._load()})

    @property
    def is_flushing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def discard_word(self, word: str) -> int:
        """Drop pending items of a deleted word."""
        key = normalize_word(word)
        items = self._load()
        kept = [item for item in items if item.word != key]
        removed = len(items) - len(kept)
        if removed:
            self._save(kept)
            logger.info("Discarded %d pending updates for deleted word '%s'", removed, key)
        return removed

    def clear(self) -> None:
        self._save([])

    # Lease

    def _acquire_lease(self) -> bool:
        if self.lease_seconds <= 0:
            return True
        now_ms = _epoch_ms(self.clock())
        try:
            raw = self.staging.get(self.LEASE_KEY)
            lease = json.loads(raw) if raw else None
        except (TypeError, ValueError):
            lease = None
        except Exception as e:
            logger.error("Failed to read sync lease: %s", e)
            return False

        if isinstance(lease, dict) and lease.get("owner") != self.session_id:
            expires_at = lease.get("expires_at")
            if isinstance(expires_at, (int, float)) and expires_at > now_ms:
                logger.info("Sync lease held by another session, skipping flush")
                return False

        try:
            self.staging.set(
                self.LEASE_KEY,
                json.dumps({"owner": self.session_id, "expires_at": now_ms + int(self.lease_seconds * 1000)}),
            )
        except Exception as e:
            logger.error("Failed to write sync lease: %s", e)
            return False
        return True

    def _release_lease(self) -> None:
        if self.lease_seconds <= 0:
            return
        try:
            raw = self.staging.get(self.LEASE_KEY)
            lease = json.loads(raw) if raw else None
            if isinstance(lease, dict) and lease.get("owner") == self.session_id:
                self.staging.delete(self.LEASE_KEY)
        except Exception as e:
            logger.error("Failed to release sync lease: %s", e)

    # Flush

    async def flush(self) -> FlushResult:
        """Push pending updates; concurrent callers share one in-flight flush."""
        if self.is_flushing:
            logger.debug("Flush already in flight, joining it")
            return await asyncio.shield(self._inflight)

        self._inflight = asyncio.ensure_future(self._flush())
        return await asyncio.shield(self._inflight)

    async def _push(self, user_id: str, item: SyncQueueItem) -> None:
        await asyncio.wait_for(
            self.remote.update_fields(user_id, item.remote_id, item.payload.to_fields()),
            timeout=self.remote_timeout,
        )

    async def _flush(self) -> FlushResult:
        user_id = self.auth.current_user_id()
        if not user_id:
            logger.debug("No signed-in user, skipping flush")
            monitoring.sync_flushes.labels(status=FlushStatus.SKIPPED.value).inc()
            return FlushResult(FlushStatus.SKIPPED)

        if not self._acquire_lease():
            monitoring.sync_flushes.labels(status=FlushStatus.SKIPPED.value).inc()
            return FlushResult(FlushStatus.SKIPPED)

        try:
            result = await self._flush_snapshot(user_id)
        except Exception as e:
            logger.error("Unexpected error while flushing sync queue: %s", e)
            result = FlushResult(FlushStatus.FAILED, error=str(e))
        finally:
            self._release_lease()

        monitoring.sync_flushes.labels(status=result.status.value).inc()
        return result

    async def _flush_snapshot(self, user_id: str) -> FlushResult:
        snapshot = self._load()
        if not snapshot:
            return FlushResult(FlushStatus.EMPTY)

        attempted_ids: Set[str] = {item.id for item in snapshot}
        dropped_ids: Set[str] = set()

        latest: Dict[str, SyncQueueItem] = {}
        for item in snapshot:
            if self.is_live is not None and not self.is_live(item):
                dropped_ids.add(item.id)
                continue
            latest[item.remote_id] = item

        logger.info(
            "Flushing %d queued items as %d updates for user %s",
            len(snapshot), len(latest), user_id,
        )
        pushes = list(latest.values())
        outcomes = await asyncio.gather(
            *(self._push(user_id, item) for item in pushes),
            return_exceptions=True,
        )

        updated = 0
        missing: Set[str] = set()
        errors: List[str] = []
        for item, outcome in zip(pushes, outcomes):
            if isinstance(outcome, RecordNotFoundError):
                missing.add(item.remote_id)
            elif isinstance(outcome, asyncio.TimeoutError):
                errors.append(f"{item.word}: timed out")
            elif isinstance(outcome, BaseException):
                errors.append(f"{item.word}: {outcome}")
            else:
                updated += 1

        for item in snapshot:
            if item.remote_id in missing:
                dropped_ids.add(item.id)
        orphaned = len(dropped_ids)
        if orphaned:
            monitoring.sync_orphaned.inc(orphaned)
            logger.info("Dropped %d queued items of deleted words", orphaned)

        # Re-read: items enqueued while the updates were in flight must survive.
        current = self._load()

        if not errors:
            self._save([item for item in current if item.id not in attempted_ids])
            return FlushResult(
                FlushStatus.SUCCESS,
                attempted=len(snapshot),
                updated=updated,
                orphaned=orphaned,
            )

        logger.warning("Flush failed for %d updates: %s", len(errors), "; ".join(errors))
        kept: List[SyncQueueItem] = []
        retried = 0
        dead_lettered = 0
        for item in current:
            if item.id in dropped_ids:
                continue
            if item.id in attempted_ids:
                item.retry_count += 1
                if item.retry_count >= self.max_retries:
                    dead_lettered += 1
                    logger.warning(
                        "Dropping update for '%s' after %d failed attempts",
                        item.word, item.retry_count,
                    )
                    continue
                retried += 1
            kept.append(item)
        self._save(kept)

        if dead_lettered:
            monitoring.sync_dead_lettered.inc(dead_lettered)

        return FlushResult(
            FlushStatus.FAILED,
            attempted=len(snapshot),
            updated=updated,
            retried=retried,
            dead_lettered=dead_lettered,
            orphaned=orphaned,
            error="; ".join(errors),
        )
