"""Sentence practice built from the learner's own words."""
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from vocabtrack.config import settings
from vocabtrack.services.practice_selector import PracticeSelector
from vocabtrack.services.word_store import WordStore

logger = logging.getLogger(__name__)

# Placeholders are {word1}..{wordN}; the count of placeholders is the word count.
SENTENCE_TEMPLATES = (
    "I see a {word1}",
    "I want {word1}",
    "I have a {word1}",
    "This is my {word1}",
    "I can see the {word1}",
    "We found the {word1}",
    "I am looking for the {word1}",
    "I like {word1} and {word2}",
    "This {word1} is very {word2}",
    "The {word1} is {word2}",
    "I need {word1} and {word2}",
    "The {word1} is next to the {word2}",
    "He likes {word1} but not {word2}",
    "My {word1} is better than your {word2}",
    "These {word1} and {word2} are all good",
    "We have {word1}, {word2} and {word3}",
    "We need a {word1}, a {word2} and a {word3}",
    "She wants {word1}, {word2}, {word3} and {word4}",
    "I bought {word1}, {word2}, {word3}, {word4} and {word5}",
)

PLACEHOLDER_PATTERN = re.compile(r"\{word(\d+)\}")


@dataclass
class GeneratedSentence:
    """A sentence to translate and the words it uses."""
    text: str
    words: List[str] = field(default_factory=list)


@dataclass
class TranslationCheck:
    """Result of checking a learner's sentence."""
    success: bool
    missing_words: List[str] = field(default_factory=list)


def placeholder_count(template: str) -> int:
    return len(set(PLACEHOLDER_PATTERN.findall(template)))


def check_translation(translation: str, required_words: Sequence[str]) -> TranslationCheck:
    """Every required word must appear as a whole word, ignoring case."""
    normalized = translation.lower().strip()
    missing = [
        word for word in required_words
        if not re.search(rf"\b{re.escape(word.lower())}\b", normalized)
    ]
    return TranslationCheck(success=not missing, missing_words=missing)


class SentencePracticeService:
    """Fills sentence templates with words picked for practice."""

    def __init__(
        self,
        store: Optional[WordStore] = None,
        selector: Optional[PracticeSelector] = None,
        rng: Callable[[], float] = random.random,
        min_words: Optional[int] = None,
    ):
        self.store = store
        self.rng = rng
        self.selector = selector or PracticeSelector(rng=rng)
        self.min_words = min_words or settings.practice.min_sentence_words

    def is_available(self) -> bool:
        """Sentence practice needs at least min_words words."""
        return self.store is not None and len(self.store) >= self.min_words

    def _pick_template(self, count: int) -> Optional[str]:
        matching = [t for t in SENTENCE_TEMPLATES if placeholder_count(t) == count]
        if not matching:
            return None
        return matching[min(int(self.rng() * len(matching)), len(matching) - 1)]

    def _pick_words(self, words: Optional[Sequence[str]], count: int) -> List[str]:
        if words is None:
            picked = self.selector.sample(self.store.all_words(), count)
            return [metrics.word for metrics in picked]

        pool = list(words)
        picked = []
        for _ in range(count):
            picked.append(pool.pop(min(int(self.rng() * len(pool)), len(pool) - 1)))
        return picked

    def generate_sentence(
        self,
        words: Optional[Sequence[str]] = None,
        count: Optional[int] = None,
    ) -> Optional[GeneratedSentence]:
        """Sentence using count words, or None when there are too few words."""
        if count is None:
            count = self.min_words
        available = len(words) if words is not None else (len(self.store) if self.store else 0)
        if count < 1 or available < count:
            logger.debug("Not enough words for a %d-word sentence (%d available)", count, available)
            return None

        template = self._pick_template(count)
        if template is None:
            return None

        chosen = self._pick_words(words, count)
        text = PLACEHOLDER_PATTERN.sub(lambda m: chosen[int(m.group(1)) - 1], template)
        return GeneratedSentence(text=text, words=chosen)
