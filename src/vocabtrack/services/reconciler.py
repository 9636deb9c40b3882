"""One-shot migration of legacy offline staging into the remote store."""
import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from vocabtrack import monitoring
from vocabtrack.errors import RemoteStoreError
from vocabtrack.models.base import utc_now
from vocabtrack.storage.remote import RemoteWordCollection
from vocabtrack.storage.staging import LocalStaging

logger = logging.getLogger(__name__)

INPUT_TIMES_PREFIX = "inputTimes_"
FREQUENCY_PREFIX = "word_frequency_"
MIGRATION_MARKER_KEY = "_migration_completed"
LEGACY_WORDS_KEY = "words"

LEGACY_PREFIXES = (INPUT_TIMES_PREFIX, FREQUENCY_PREFIX)


@dataclass
class MigrationResult:
    """Outcome of a reconciliation run."""
    success: bool
    migrated_count: int = 0
    errors: List[str] = field(default_factory=list)
    skipped: bool = False


@dataclass
class LegacyStagedData:
    """Legacy per-word offline data found in staging."""
    input_times: Dict[str, List[float]] = field(default_factory=dict)
    frequencies: Dict[str, float] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.input_times and not self.frequencies


class Reconciler:
    """Merges legacy per-word staging into remote records.

    Timing history is append-only and merged with set-union semantics; the
    frequency scalar is overwritten with the local value. Each staged key is
    removed right after its own remote write succeeds, so an interrupted run
    resumes where it stopped.
    """

    def __init__(
        self,
        staging: LocalStaging,
        remote: RemoteWordCollection,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the reconciler."""
        self.staging = staging
        self.remote = remote
        self.clock = clock
        self._lock = asyncio.Lock()

    def _staged_keys(self) -> List[str]:
        keys: List[str] = []
        for prefix in LEGACY_PREFIXES:
            keys.extend(self.staging.keys(prefix))
        return keys

    def _drop_corrupt(self, key: str, reason: str) -> None:
        logger.warning("Dropping unreadable staged value %s: %s", key, reason)
        self.staging.delete(key)

    def collect_staged_data(self) -> LegacyStagedData:
        """Read every legacy staged value, discarding unreadable ones."""
        data = LegacyStagedData()

        for key in self.staging.keys(INPUT_TIMES_PREFIX):
            word = key[len(INPUT_TIMES_PREFIX):]
            try:
                times = json.loads(self.staging.get(key) or "[]")
            except (TypeError, ValueError) as e:
                self._drop_corrupt(key, str(e))
                continue
            if not isinstance(times, list) or not all(isinstance(t, (int, float)) for t in times):
                self._drop_corrupt(key, "not a list of numbers")
                continue
            if not times:
                self.staging.delete(key)
                continue
            data.input_times[word] = [float(t) for t in times]

        for key in self.staging.keys(FREQUENCY_PREFIX):
            word = key[len(FREQUENCY_PREFIX):]
            try:
                frequency = float(self.staging.get(key) or "")
            except (TypeError, ValueError) as e:
                self._drop_corrupt(key, str(e))
                continue
            if math.isnan(frequency) or math.isinf(frequency):
                self._drop_corrupt(key, "not a finite number")
                continue
            data.frequencies[word] = frequency

        return data

    def has_pending_migration(self) -> bool:
        """True when no completion marker exists and legacy data is staged."""
        if self.staging.get(MIGRATION_MARKER_KEY):
            return False
        return bool(self._staged_keys())

    def is_completed(self) -> bool:
        return bool(self.staging.get(MIGRATION_MARKER_KEY)) and not self._staged_keys()

    async def run(self, user_id: str, word_ids: Mapping[str, str]) -> MigrationResult:
        """Migrate staged data for words whose remote ids are known."""
        async with self._lock:
            if self.is_completed():
                logger.debug("Migration already completed, nothing staged")
                return MigrationResult(success=True, skipped=True)

            try:
                return await self._migrate(user_id, word_ids)
            except Exception as e:
                logger.error("Migration failed: %s", e)
                return MigrationResult(success=False, errors=[f"Critical error: {e}"])

    async def _migrate_field(
        self,
        user_id: str,
        word: str,
        record_id: str,
        key: str,
        field_name: str,
        fields: Mapping[str, object],
        array_union: Optional[Mapping[str, List[float]]] = None,
    ) -> Tuple[bool, Optional[str]]:
        try:
            await self.remote.update_fields(user_id, record_id, fields, array_union=array_union)
        except RemoteStoreError as e:
            return False, f"Failed to migrate {field_name} for {word}: {e}"

        self.staging.delete(key)
        monitoring.migrated_fields.labels(field=field_name).inc()
        logger.info("Migrated %s for word: %s", field_name, word)
        return True, None

    async def _migrate(self, user_id: str, word_ids: Mapping[str, str]) -> MigrationResult:
        staged = self.collect_staged_data()
        if staged.is_empty():
            logger.info("No local data to migrate")
            self._mark_completed()
            return MigrationResult(success=True)

        logger.info(
            "Found %d words with input times, %d words with frequencies",
            len(staged.input_times), len(staged.frequencies),
        )

        errors: List[str] = []
        jobs = []
        for word, times in staged.input_times.items():
            record_id = word_ids.get(word)
            if not record_id:
                errors.append(f"Word ID not found for: {word}")
                continue
            jobs.append(self._migrate_field(
                user_id, word, record_id, INPUT_TIMES_PREFIX + word,
                "input_times", {}, array_union={"input_times": times},
            ))

        for word, frequency in staged.frequencies.items():
            record_id = word_ids.get(word)
            if not record_id:
                errors.append(f"Word ID not found for: {word}")
                continue
            jobs.append(self._migrate_field(
                user_id, word, record_id, FREQUENCY_PREFIX + word,
                "frequency", {"frequency": frequency},
            ))

        migrated_count = 0
        for ok, error in await asyncio.gather(*jobs):
            if ok:
                migrated_count += 1
            else:
                errors.append(error)

        if not errors:
            self._mark_completed()

        logger.info("Migration finished: %d items migrated, %d errors", migrated_count, len(errors))
        return MigrationResult(success=not errors, migrated_count=migrated_count, errors=errors)

    def _mark_completed(self) -> None:
        self.staging.set(MIGRATION_MARKER_KEY, self.clock().isoformat())

    def cleanup_staged_data(self) -> int:
        """Remove every legacy staged value; returns how many were removed."""
        keys = self._staged_keys()
        for key in keys:
            self.staging.delete(key)
        logger.info("Cleaned up %d local temporary items", len(keys))
        return len(keys)

    async def import_legacy_word_list(self, user_id: str) -> int:
        """Create remote records for the legacy word list, skipping known words."""
        raw = self.staging.get(LEGACY_WORDS_KEY)
        if not raw:
            return 0

        try:
            pairs = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._drop_corrupt(LEGACY_WORDS_KEY, str(e))
            return 0
        if not isinstance(pairs, list):
            self._drop_corrupt(LEGACY_WORDS_KEY, "not a list")
            return 0

        imported = 0
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                logger.warning("Skipping malformed legacy word entry: %r", pair)
                continue
            word, translation = str(pair[0]).strip().lower(), str(pair[1])
            if not word or await self.remote.query_by_word(user_id, word):
                continue
            await self.remote.create(user_id, {
                "word": word,
                "translation": translation,
                "created_at": self.clock(),
            })
            imported += 1

        self.staging.delete(LEGACY_WORDS_KEY)
        logger.info("Imported %d legacy words", imported)
        return imported
