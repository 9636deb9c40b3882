"""Priority-weighted selection of words to practice."""
import logging
import random
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from vocabtrack.config import settings
from vocabtrack.models.base import ensure_utc, utc_now
from vocabtrack.models.metrics import WordMetrics
from vocabtrack.services.mastery import calculate_mastery_score

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
NEVER_PRACTICED_DAYS = 30.0

# (upper bound in days, multiplier); the last entry has no bound
RECENCY_BUCKETS: Tuple[Tuple[Optional[float], float], ...] = (
    (1, 0.5),
    (2, 1.0),
    (4, 1.5),
    (8, 2.0),
    (15, 2.5),
    (None, 3.0),
)

# (max attempts inclusive, multiplier); the last entry has no bound
PRACTICE_BUCKETS: Tuple[Tuple[Optional[int], float], ...] = (
    (0, 3.0),
    (2, 2.0),
    (5, 1.5),
    (10, 1.0),
    (None, 0.8),
)


def days_since(last_practiced_at: Optional[datetime], now: datetime) -> float:
    if last_practiced_at is None:
        return NEVER_PRACTICED_DAYS
    return (now - ensure_utc(last_practiced_at)).total_seconds() / SECONDS_PER_DAY


def get_recency_multiplier(days: float) -> float:
    """Suppress words seen very recently, boost long-unseen ones."""
    for bound, multiplier in RECENCY_BUCKETS:
        if bound is None or days < bound:
            return multiplier
    return RECENCY_BUCKETS[-1][1]


def get_practice_multiplier(total_attempts: int) -> float:
    """Favor rarely attempted words."""
    for bound, multiplier in PRACTICE_BUCKETS:
        if bound is None or total_attempts <= bound:
            return multiplier
    return PRACTICE_BUCKETS[-1][1]


def calculate_priority(
    mastery_score: float,
    last_practiced_at: Optional[datetime],
    total_attempts: int,
    now: Optional[datetime] = None,
) -> float:
    """Selection weight: lower mastery, older practice and fewer attempts weigh more."""
    if now is None:
        now = utc_now()
    base_priority = 100 - mastery_score
    return (
        base_priority
        * get_recency_multiplier(days_since(last_practiced_at, now))
        * get_practice_multiplier(total_attempts)
    )


class PracticeSelector:
    """Weighted random sampling of practice words without replacement."""

    def __init__(
        self,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the selector with a uniform [0, 1) source and a clock."""
        self.rng = rng
        self.clock = clock

    def priority_of(self, metrics: WordMetrics, now: Optional[datetime] = None) -> float:
        mastery = calculate_mastery_score(metrics)
        return calculate_priority(
            mastery.score,
            metrics.last_practiced_at,
            metrics.total_attempts,
            now or self.clock(),
        )

    def rank_words(self, all_words: Iterable[WordMetrics]) -> List[Tuple[WordMetrics, int, float]]:
        """(metrics, mastery score, priority) sorted by descending priority."""
        now = self.clock()
        ranked = []
        for metrics in all_words:
            mastery = calculate_mastery_score(metrics)
            priority = calculate_priority(
                mastery.score, metrics.last_practiced_at, metrics.total_attempts, now
            )
            ranked.append((metrics, mastery.score, priority))
        ranked.sort(key=lambda entry: entry[2], reverse=True)
        return ranked

    def _draw_index(self, weights: Sequence[float]) -> int:
        total = sum(weights)
        if total <= 0:
            # Every remaining weight is zero: uniform fallback
            return min(int(self.rng() * len(weights)), len(weights) - 1)

        target = self.rng() * total
        running = 0.0
        last_positive = 0
        for index, weight in enumerate(weights):
            if weight <= 0:
                continue
            last_positive = index
            running += weight
            if running > target:
                return index
        return last_positive

    def sample(self, all_words: Iterable[WordMetrics], max_words: int) -> List[WordMetrics]:
        """Draw up to max_words distinct words, weighted by priority."""
        now = self.clock()
        candidates = list(all_words)
        weights = [max(0.0, self.priority_of(metrics, now)) for metrics in candidates]

        selected: List[WordMetrics] = []
        for _ in range(min(max(0, max_words), len(candidates))):
            index = self._draw_index(weights)
            selected.append(candidates.pop(index))
            weights.pop(index)

        logger.debug("Selected %d of %d words for practice", len(selected), len(selected) + len(candidates))
        return selected

    def select_practice_words(
        self,
        all_words: Iterable[WordMetrics],
        max_words: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        """(word, translation) pairs in draw order."""
        if max_words is None:
            max_words = settings.practice.max_practice_words
        return [(metrics.word, metrics.translation) for metrics in self.sample(all_words, max_words)]


def select_practice_words(
    all_words: Iterable[WordMetrics],
    max_words: Optional[int] = None,
    rng: Callable[[], float] = random.random,
) -> List[Tuple[str, str]]:
    """Module-level shortcut using the default clock."""
    return PracticeSelector(rng=rng).select_practice_words(all_words, max_words)
