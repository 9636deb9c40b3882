"""Mastery scoring for vocabulary words.

The score blends three factors of a word's practice history:

* accuracy (40%): share of correct attempts;
* speed (30%): expected input time against the mean recorded time;
* consistency (30%): how little the recent input times vary.

A never-practiced word always scores 0.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from vocabtrack.config import settings
from vocabtrack.models.metrics import MasteryLevel, MasteryResult, WordMetrics

ACCURACY_WEIGHT = 0.4
SPEED_WEIGHT = 0.3
CONSISTENCY_WEIGHT = 0.3

NEUTRAL_CONSISTENCY = 50.0
MIN_TIMES_FOR_CONSISTENCY = 3


@dataclass(frozen=True)
class LevelBand:
    """Score band of one mastery level."""
    level: MasteryLevel
    min_score: int
    max_score: int
    color: str


# Single source of truth for level names, indexes, bounds and colors.
LEVEL_BANDS: Tuple[LevelBand, ...] = (
    LevelBand(MasteryLevel.NEW, 0, 19, "#EF4444"),
    LevelBand(MasteryLevel.LEARNING, 20, 39, "#F97316"),
    LevelBand(MasteryLevel.FAMILIAR, 40, 59, "#EAB308"),
    LevelBand(MasteryLevel.PROFICIENT, 60, 79, "#84CC16"),
    LevelBand(MasteryLevel.MASTERED, 80, 100, "#22C55E"),
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def get_expected_input_time(word_length: int) -> float:
    """Expected seconds to type a word: length * 0.3 + 1.0."""
    return word_length * 0.3 + 1.0


def get_mastery_level_index(score: float) -> int:
    """Ordinal 0-4 of the level a score falls into."""
    index = 0
    for position, band in enumerate(LEVEL_BANDS):
        if score >= band.min_score:
            index = position
    return index


def get_mastery_level(score: float) -> MasteryLevel:
    """Mastery level for a score."""
    return LEVEL_BANDS[get_mastery_level_index(score)].level


def get_level_band(level: MasteryLevel) -> LevelBand:
    for band in LEVEL_BANDS:
        if band.level is level:
            return band
    raise ValueError(f"Unknown mastery level: {level}")


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def calculate_speed_score(word: str, input_times: Sequence[float]) -> float:
    expected = get_expected_input_time(len(word))
    average = _mean(input_times) if input_times else expected * 2  # missing data counts as slow
    if average <= 0:
        return 100.0
    return min(100.0, expected / average * 50)


def calculate_consistency_score(input_times: Sequence[float], window: Optional[int] = None) -> float:
    if window is None:
        window = settings.practice.consistency_window
    if len(input_times) < MIN_TIMES_FOR_CONSISTENCY:
        return NEUTRAL_CONSISTENCY

    recent: List[float] = list(input_times)[-window:]
    mean = _mean(recent)
    std_dev = math.sqrt(sum((t - mean) ** 2 for t in recent) / len(recent))
    cv = std_dev / mean if mean > 0 else 0
    return clamp(100 - cv * 100, 0, 100)


def calculate_mastery_score(metrics: WordMetrics) -> MasteryResult:
    """Calculate the mastery score for a word."""
    if metrics.total_attempts == 0:
        return MasteryResult(score=0, level=MasteryLevel.NEW)

    accuracy = metrics.correct_count / metrics.total_attempts * 100
    speed = calculate_speed_score(metrics.word, metrics.input_times)
    consistency = calculate_consistency_score(metrics.input_times)

    weighted = (
        accuracy * ACCURACY_WEIGHT
        + speed * SPEED_WEIGHT
        + consistency * CONSISTENCY_WEIGHT
    )
    score = int(clamp(round_half_up(weighted), 0, 100))

    return MasteryResult(
        score=score,
        level=get_mastery_level(score),
        accuracy_score=round_half_up(accuracy),
        speed_score=round_half_up(speed),
        consistency_score=round_half_up(consistency),
    )
