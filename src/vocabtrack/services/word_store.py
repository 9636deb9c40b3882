"""In-memory store of a user's vocabulary and practice metrics."""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from vocabtrack.config import settings
from vocabtrack.errors import DuplicateWordError
from vocabtrack.models.base import utc_now
from vocabtrack.models.metrics import WordMetrics

logger = logging.getLogger(__name__)


class StoreEventType(Enum):
    """Kinds of store mutations reported to listeners."""
    WORDS_SET = "words_set"
    WORD_ADDED = "word_added"
    WORD_DELETED = "word_deleted"
    WORDS_CLEARED = "words_cleared"
    ATTEMPT_RECORDED = "attempt_recorded"
    TRANSLATION_UPDATED = "translation_updated"
    REMOTE_ID_SET = "remote_id_set"
    RECORDS_RESET = "records_reset"
    INPUT_CHANGED = "input_changed"


@dataclass
class StoreEvent:
    """Mutation notification; word is None for bulk changes."""
    type: StoreEventType
    word: Optional[str] = None


StoreListener = Callable[[StoreEvent], None]


def normalize_word(word: str) -> str:
    return word.strip().lower()


class WordStore:
    """Single source of truth for one user's words.

    Mutations apply synchronously and then call every subscribed listener.
    The store does not persist anything; callers wire mutations to the
    sync queue.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        history_size: Optional[int] = None,
    ):
        """Initialize an empty store."""
        self.clock = clock
        self.history_size = history_size or settings.practice.input_history_size
        self._words: Dict[str, WordMetrics] = {}
        self._user_inputs: Dict[str, str] = {}
        self._listeners: List[StoreListener] = []

    # Observers

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: StoreEventType, word: Optional[str] = None) -> None:
        for listener in list(self._listeners):
            listener(StoreEvent(event_type, word))

    # Reads

    def __len__(self) -> int:
        return len(self._words)

    def __contains__(self, word: str) -> bool:
        return normalize_word(word) in self._words

    def get(self, word: str) -> Optional[WordMetrics]:
        return self._words.get(normalize_word(word))

    def get_remote_id(self, word: str) -> Optional[str]:
        metrics = self.get(word)
        return metrics.remote_id if metrics else None

    def get_input_times(self, word: str) -> List[float]:
        metrics = self.get(word)
        return list(metrics.input_times) if metrics else []

    def all_words(self) -> List[WordMetrics]:
        return list(self._words.values())

    @property
    def words(self) -> Dict[str, str]:
        """Word to translation mapping."""
        return {metrics.word: metrics.translation for metrics in self._words.values()}

    def overall_average_input_time(self) -> Optional[float]:
        """Mean of every recorded input time, or None without data."""
        times = [t for metrics in self._words.values() for t in metrics.input_times]
        if not times:
            return None
        return sum(times) / len(times)

    # Bulk mutations

    def set_words(self, snapshot: Iterable[WordMetrics]) -> None:
        """Replace every word with a fresh snapshot; input state is kept."""
        words: Dict[str, WordMetrics] = {}
        for metrics in snapshot:
            key = normalize_word(metrics.word)
            if key in words:
                logger.warning("Duplicate word '%s' in snapshot, keeping the first", key)
                continue
            metrics.input_times = list(metrics.input_times)[-self.history_size:]
            words[key] = metrics
        self._words = words
        logger.debug("Store replaced with %d words", len(words))
        self._emit(StoreEventType.WORDS_SET)

    def remove_all_words(self) -> None:
        self._words.clear()
        self._emit(StoreEventType.WORDS_CLEARED)

    def reset_practice_records(self) -> None:
        """Zero counters and timing history of every word, keeping the words."""
        for metrics in self._words.values():
            metrics.correct_count = 0
            metrics.total_attempts = 0
            metrics.input_times = []
            metrics.last_practiced_at = None
        logger.info("Reset practice records for %d words", len(self._words))
        self._emit(StoreEventType.RECORDS_RESET)

    # Word mutations

    def add_word(self, word: str, translation: str, remote_id: Optional[str] = None) -> WordMetrics:
        """Insert a word with zero counters."""
        key = normalize_word(word)
        if not key:
            raise ValueError("Word cannot be empty")
        if key in self._words:
            raise DuplicateWordError(key)

        metrics = WordMetrics(
            word=key,
            translation=translation,
            created_at=self.clock(),
            remote_id=remote_id,
        )
        self._words[key] = metrics
        self._emit(StoreEventType.WORD_ADDED, key)
        return metrics

    def delete_word(self, word: str) -> bool:
        """Remove a word; unknown words are ignored."""
        key = normalize_word(word)
        if self._words.pop(key, None) is None:
            return False
        self._user_inputs.pop(key, None)
        self._emit(StoreEventType.WORD_DELETED, key)
        return True

    def update_translation(self, word: str, translation: str) -> Optional[WordMetrics]:
        metrics = self.get(word)
        if metrics is None:
            return None
        metrics.translation = translation
        self._emit(StoreEventType.TRANSLATION_UPDATED, metrics.word)
        return metrics

    def set_remote_id(self, word: str, remote_id: str) -> Optional[WordMetrics]:
        metrics = self.get(word)
        if metrics is None:
            return None
        metrics.remote_id = remote_id
        self._emit(StoreEventType.REMOTE_ID_SET, metrics.word)
        return metrics

    def record_correct_attempt(self, word: str, input_time_seconds: float) -> Optional[WordMetrics]:
        """Count a correct answer and keep its input time."""
        if input_time_seconds is None or input_time_seconds <= 0:
            raise ValueError("Input time must be a positive number of seconds")
        metrics = self.get(word)
        if metrics is None:
            logger.debug("Ignoring correct attempt for unknown word '%s'", word)
            return None

        metrics.total_attempts += 1
        metrics.correct_count += 1
        metrics.input_times.append(float(input_time_seconds))
        if len(metrics.input_times) > self.history_size:
            metrics.input_times = metrics.input_times[-self.history_size:]
        metrics.last_practiced_at = self.clock()
        self._emit(StoreEventType.ATTEMPT_RECORDED, metrics.word)
        return metrics

    def record_incorrect_attempt(self, word: str) -> Optional[WordMetrics]:
        """Count a wrong answer."""
        metrics = self.get(word)
        if metrics is None:
            logger.debug("Ignoring incorrect attempt for unknown word '%s'", word)
            return None

        metrics.total_attempts += 1
        metrics.last_practiced_at = self.clock()
        self._emit(StoreEventType.ATTEMPT_RECORDED, metrics.word)
        return metrics

    # Transient practice input

    def set_user_input(self, word: str, value: str) -> None:
        self._user_inputs[normalize_word(word)] = value
        self._emit(StoreEventType.INPUT_CHANGED, normalize_word(word))

    def get_user_input(self, word: str) -> Optional[str]:
        return self._user_inputs.get(normalize_word(word))

    def clear_user_inputs(self) -> None:
        self._user_inputs.clear()
        self._emit(StoreEventType.INPUT_CHANGED)

    def is_answer_correct(self, expected_words: Iterable[str]) -> bool:
        """True when every expected word was typed exactly and nothing else."""
        expected = [normalize_word(word) for word in expected_words]
        if len(self._user_inputs) != len(expected):
            return False
        return all(self._user_inputs.get(word, "").strip().lower() == word for word in expected)
