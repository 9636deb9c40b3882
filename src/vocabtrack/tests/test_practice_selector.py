"""Tests for practice word selection."""
from datetime import timedelta

import pytest
from faker import Faker

from conftest import FakeClock, SequenceRng
from vocabtrack.models.metrics import WordMetrics
from vocabtrack.services.practice_selector import (
    PracticeSelector,
    calculate_priority,
    get_practice_multiplier,
    get_recency_multiplier,
    select_practice_words,
)

fake = Faker()


def make_words(count: int) -> list[WordMetrics]:
    words = set()
    while len(words) < count:
        words.add(fake.unique.word())
    return [WordMetrics(word=w, translation=fake.word()) for w in words]


def mastered(word: str) -> WordMetrics:
    """Metrics that score exactly 100."""
    return WordMetrics(word=word, correct_count=5, total_attempts=5, input_times=[0.5] * 5)


@pytest.mark.parametrize(
    "days,multiplier",
    [(0, 0.5), (0.99, 0.5), (1, 1.0), (1.5, 1.0), (3, 1.5), (7.9, 2.0), (14, 2.5), (15, 3.0), (400, 3.0)],
)
def test_recency_multiplier(days: float, multiplier: float) -> None:
    assert get_recency_multiplier(days) == multiplier


@pytest.mark.parametrize(
    "attempts,multiplier",
    [(0, 3.0), (1, 2.0), (2, 2.0), (3, 1.5), (5, 1.5), (6, 1.0), (10, 1.0), (11, 0.8), (500, 0.8)],
)
def test_practice_multiplier(attempts: int, multiplier: float) -> None:
    assert get_practice_multiplier(attempts) == multiplier


def test_never_practiced_word_gets_maximal_priority(clock: FakeClock) -> None:
    """Null last practice counts as 30 days; zero attempts triples the weight."""
    assert calculate_priority(0, None, 0, clock()) == pytest.approx(900)


def test_lower_mastery_has_higher_priority(clock: FakeClock) -> None:
    last = clock() - timedelta(days=3)
    for low, high in [(0, 10), (25, 60), (79, 80), (99, 100)]:
        assert calculate_priority(low, last, 4, clock()) >= calculate_priority(high, last, 4, clock())


def test_recent_practice_is_suppressed(clock: FakeClock) -> None:
    recent = calculate_priority(50, clock() - timedelta(hours=2), 4, clock())
    stale = calculate_priority(50, clock() - timedelta(days=20), 4, clock())
    assert recent == pytest.approx(50 * 0.5 * 1.5)
    assert stale == pytest.approx(50 * 3.0 * 1.5)


def test_weighted_draws_follow_cumulative_priority(clock: FakeClock) -> None:
    """Each draw walks the remaining pool until the running total passes it."""
    words = [
        WordMetrics(word="apple", translation="яблуко", last_practiced_at=clock()),  # 150
        WordMetrics(word="bread", translation="хліб"),  # 900
        WordMetrics(word="cheese", translation="сир", last_practiced_at=clock() - timedelta(days=10)),  # 750
    ]
    selector = PracticeSelector(rng=SequenceRng(0.0, 0.99, 0.5), clock=clock)

    assert selector.select_practice_words(words, 3) == [
        ("apple", "яблуко"),
        ("cheese", "сир"),
        ("bread", "хліб"),
    ]


def test_zero_priority_pool_falls_back_to_uniform(clock: FakeClock) -> None:
    words = [mastered("a"), mastered("b"), mastered("c")]
    selector = PracticeSelector(rng=SequenceRng(0.5), clock=clock)

    assert selector.priority_of(words[0]) == 0
    picked = selector.select_practice_words(words, 3)

    assert picked[0][0] == "b"
    assert sorted(word for word, _ in picked) == ["a", "b", "c"]


def test_zero_priority_word_waits_for_positive_ones(clock: FakeClock) -> None:
    words = [mastered("a"), WordMetrics(word="b")]
    selector = PracticeSelector(rng=SequenceRng(0.0), clock=clock)

    assert [word for word, _ in selector.select_practice_words(words, 2)] == ["b", "a"]


def test_selection_has_no_duplicates() -> None:
    words = make_words(12)
    for _ in range(50):
        picked = select_practice_words(words, 5)
        assert len(picked) == 5
        assert len({word for word, _ in picked}) == 5


def test_small_pool_returns_every_word() -> None:
    """Asking for 5 from 3 returns the 3, no error."""
    words = make_words(3)
    picked = select_practice_words(words, 5)

    assert len(picked) == 3
    assert {word for word, _ in picked} == {w.word for w in words}


def test_empty_pool_returns_empty_list() -> None:
    assert select_practice_words([], 5) == []


def test_default_count_comes_from_settings() -> None:
    assert len(select_practice_words(make_words(8))) == 5


def test_rank_words_sorts_by_priority(clock: FakeClock) -> None:
    words = [mastered("done"), WordMetrics(word="fresh")]
    ranked = PracticeSelector(clock=clock).rank_words(words)

    assert [metrics.word for metrics, _, _ in ranked] == ["fresh", "done"]
    assert ranked[0][1] == 0
    assert ranked[1][1] == 100


def test_selection_does_not_mutate_words(clock: FakeClock) -> None:
    words = make_words(4)
    before = [(w.word, w.total_attempts, list(w.input_times)) for w in words]

    PracticeSelector(clock=clock).select_practice_words(words, 2)

    assert [(w.word, w.total_attempts, list(w.input_times)) for w in words] == before
    assert len(words) == 4
