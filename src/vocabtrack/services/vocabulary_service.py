"""Service composing the word store, sync queue and remote collection."""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from vocabtrack import monitoring
from vocabtrack.errors import DuplicateWordError, NotAuthenticatedError, WordNotFoundError
from vocabtrack.models.metrics import MasteryResult, RemoteWordRecord, SyncQueueItem, WordMetrics
from vocabtrack.services.mastery import LEVEL_BANDS, calculate_mastery_score
from vocabtrack.services.practice_selector import PracticeSelector
from vocabtrack.services.sync_queue import SyncQueue
from vocabtrack.services.word_store import StoreEvent, StoreEventType, WordStore, normalize_word
from vocabtrack.storage.auth import AuthContext
from vocabtrack.storage.remote import RemoteWordCollection

logger = logging.getLogger(__name__)


@dataclass
class WordTiming:
    """Average input time of one practiced word."""
    word: str
    average_time: float
    count: int


@dataclass
class LearnerStatistics:
    """Aggregated practice statistics of the vocabulary."""
    total_words: int
    words_practiced: int
    overall_average_input_time: Optional[float]
    level_counts: Dict[str, int] = field(default_factory=dict)
    slowest_words: List[WordTiming] = field(default_factory=list)


class VocabularyService:
    """Entry point for vocabulary changes and practice results.

    Practice results go through record_attempt, which applies the change to
    the store and queues the resulting snapshot in one step. Add, delete and
    translation edits talk to the remote collection directly and raise on
    failure.
    """

    def __init__(
        self,
        store: WordStore,
        queue: SyncQueue,
        remote: RemoteWordCollection,
        auth: AuthContext,
        selector: Optional[PracticeSelector] = None,
    ):
        """Initialize the service with its collaborators."""
        self.store = store
        self.queue = queue
        self.remote = remote
        self.auth = auth
        self.selector = selector or PracticeSelector(clock=store.clock)
        self._unsubscribe_remote: Optional[Callable[[], None]] = None
        self._awaiting_remote_id: Set[str] = set()
        self._unsubscribe_store = store.subscribe(self._on_store_event)
        if queue.is_live is None:
            queue.is_live = self.is_queue_item_live

    # Lifecycle

    def start(self) -> None:
        """Mirror the remote collection of the signed-in user into the store."""
        user_id = self._require_user()
        if self._unsubscribe_remote:
            return
        self._unsubscribe_remote = self.remote.subscribe(user_id, self._on_remote_snapshot)
        logger.info("Listening to remote words of user %s", user_id)

    def stop(self) -> None:
        if self._unsubscribe_remote:
            self._unsubscribe_remote()
            self._unsubscribe_remote = None

    def _on_remote_snapshot(self, records: List[RemoteWordRecord]) -> None:
        # Queued snapshots are newer than the remote copy until flushed.
        pending: Dict[str, SyncQueueItem] = {item.remote_id: item for item in self.queue.items()}
        snapshot = []
        for record in records:
            metrics = record.to_metrics()
            item = pending.get(record.id)
            if item is not None:
                metrics.correct_count = min(item.payload.correct_count, item.payload.total_attempts)
                metrics.total_attempts = item.payload.total_attempts
                metrics.input_times = list(item.payload.input_times)
                metrics.last_practiced_at = item.payload.to_fields()["last_practiced_at"]
            snapshot.append(metrics)
        self.store.set_words(snapshot)

    def _require_user(self) -> str:
        user_id = self.auth.current_user_id()
        if not user_id:
            raise NotAuthenticatedError("User must be signed in")
        return user_id

    # Queue wiring

    def is_queue_item_live(self, item: SyncQueueItem) -> bool:
        """Queued items of deleted or re-created words are orphans."""
        return self.store.get_remote_id(item.word) == item.remote_id

    def _enqueue_snapshot(self, metrics: WordMetrics) -> bool:
        if not metrics.remote_id:
            self._awaiting_remote_id.add(metrics.word)
            logger.debug("Word '%s' has no remote id yet, update held back", metrics.word)
            return False
        self.queue.enqueue(metrics.word, metrics.remote_id, metrics.to_payload())
        return True

    def _on_store_event(self, event: StoreEvent) -> None:
        if not self._awaiting_remote_id:
            return
        if event.type not in (StoreEventType.REMOTE_ID_SET, StoreEventType.WORDS_SET):
            return
        for word in list(self._awaiting_remote_id):
            metrics = self.store.get(word)
            if metrics is None:
                self._awaiting_remote_id.discard(word)
            elif metrics.remote_id:
                self._awaiting_remote_id.discard(word)
                self.queue.enqueue(metrics.word, metrics.remote_id, metrics.to_payload())
                logger.debug("Queued held-back update for '%s'", word)

    # Practice

    def record_attempt(
        self,
        word: str,
        correct: bool,
        input_time: Optional[float] = None,
    ) -> Optional[WordMetrics]:
        """Record a practice result and queue it for sync."""
        if correct:
            metrics = self.store.record_correct_attempt(word, input_time)
        else:
            metrics = self.store.record_incorrect_attempt(word)
        if metrics is None:
            return None

        monitoring.attempts_recorded.labels(result="correct" if correct else "incorrect").inc()
        self._enqueue_snapshot(metrics)
        return metrics

    def reset_practice_records(self) -> int:
        """Reset every word's practice history and queue the zeroed snapshots."""
        self.store.reset_practice_records()
        queued = 0
        for metrics in self.store.all_words():
            if self._enqueue_snapshot(metrics):
                queued += 1
        return queued

    def select_practice_words(self, max_words: Optional[int] = None) -> List[Tuple[str, str]]:
        return self.selector.select_practice_words(self.store.all_words(), max_words)

    def get_mastery(self, word: str) -> Optional[MasteryResult]:
        metrics = self.store.get(word)
        return calculate_mastery_score(metrics) if metrics else None

    # Vocabulary management

    async def add_word(self, word: str, translation: str) -> WordMetrics:
        """Create the word remotely, then locally."""
        user_id = self._require_user()
        key = normalize_word(word)
        if not key:
            raise ValueError("Word cannot be empty")
        if key in self.store or await self.remote.query_by_word(user_id, key):
            raise DuplicateWordError(key)

        remote_id = await self.remote.create(user_id, {
            "word": key,
            "translation": translation,
            "created_at": self.store.clock(),
        })

        # The remote listener may already have delivered the new record.
        metrics = self.store.get(key)
        if metrics is None:
            metrics = self.store.add_word(key, translation, remote_id)
        elif metrics.remote_id != remote_id:
            self.store.set_remote_id(key, remote_id)

        monitoring.words_added.inc()
        logger.info("Added word '%s'", key)
        return metrics

    async def delete_word(self, word: str) -> None:
        """Delete the word remotely and locally, dropping its queued updates."""
        user_id = self._require_user()
        key = normalize_word(word)

        record_ids = [r.id for r in await self.remote.query_by_word(user_id, key)]
        local_id = self.store.get_remote_id(key)
        if local_id and local_id not in record_ids:
            record_ids.append(local_id)
        if not record_ids and key not in self.store:
            raise WordNotFoundError(key)

        for record_id in record_ids:
            await self.remote.delete(user_id, record_id)

        self.store.delete_word(key)
        self._awaiting_remote_id.discard(key)
        self.queue.discard_word(key)
        monitoring.words_deleted.inc()
        logger.info("Deleted word '%s'", key)

    async def update_translation(self, word: str, translation: str) -> WordMetrics:
        user_id = self._require_user()
        metrics = self.store.get(word)
        if metrics is None:
            raise WordNotFoundError(normalize_word(word))
        if metrics.remote_id:
            await self.remote.update_fields(user_id, metrics.remote_id, {"translation": translation})
        return self.store.update_translation(word, translation)

    async def remove_all_words(self) -> int:
        """Delete every word of the user."""
        user_id = self._require_user()
        records = await self.remote.list_all(user_id)
        for record in records:
            await self.remote.delete(user_id, record.id)
        self.store.remove_all_words()
        self._awaiting_remote_id.clear()
        self.queue.clear()
        logger.info("Removed %d words", len(records))
        return len(records)

    # Reporting

    def get_statistics(self) -> LearnerStatistics:
        level_counts = {band.level.value: 0 for band in LEVEL_BANDS}
        timings: List[WordTiming] = []
        for metrics in self.store.all_words():
            level_counts[calculate_mastery_score(metrics).level.value] += 1
            if metrics.input_times:
                timings.append(WordTiming(
                    word=metrics.word,
                    average_time=sum(metrics.input_times) / len(metrics.input_times),
                    count=len(metrics.input_times),
                ))
        timings.sort(key=lambda timing: timing.average_time, reverse=True)

        return LearnerStatistics(
            total_words=len(self.store),
            words_practiced=len(timings),
            overall_average_input_time=self.store.overall_average_input_time(),
            level_counts=level_counts,
            slowest_words=timings,
        )

    def sync_status(self) -> Dict[str, object]:
        return {
            "pending": self.queue.pending_count(),
            "unique_words": self.queue.unique_word_count(),
            "syncing": self.queue.is_flushing,
        }
