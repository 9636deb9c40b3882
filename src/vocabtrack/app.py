"""Composition root wiring stores, sync and migration together."""
import logging
import random
from datetime import datetime
from typing import Callable, Optional

from vocabtrack.config import settings
from vocabtrack.models.base import init_db, make_engine, make_session_factory, utc_now
from vocabtrack.monitoring import start_monitoring
from vocabtrack.services.practice_selector import PracticeSelector
from vocabtrack.services.reconciler import MigrationResult, Reconciler
from vocabtrack.services.sentence_practice import SentencePracticeService
from vocabtrack.services.sync_queue import SyncQueue
from vocabtrack.services.sync_scheduler import SyncScheduler
from vocabtrack.services.vocabulary_service import VocabularyService
from vocabtrack.services.word_store import WordStore
from vocabtrack.storage.auth import AuthContext, StaticAuthContext
from vocabtrack.storage.remote import RemoteWordCollection, SqlRemoteWordCollection
from vocabtrack.storage.staging import LocalStaging, SqlLocalStaging


class VocabApp:
    """Owns one user session: store, queue, scheduler and services."""

    def __init__(
        self,
        remote: Optional[RemoteWordCollection] = None,
        staging: Optional[LocalStaging] = None,
        auth: Optional[AuthContext] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Callable[[], float] = random.random,
    ):
        """Build the object graph; missing boundaries come from settings."""
        self.logger = logging.getLogger(__name__)
        self.running = False

        if remote is None:
            engine = make_engine(settings.database.remote_url)
            init_db(engine)
            remote = SqlRemoteWordCollection(make_session_factory(engine))
        if staging is None:
            engine = make_engine(settings.database.staging_url)
            init_db(engine)
            staging = SqlLocalStaging(make_session_factory(engine))

        self.remote = remote
        self.staging = staging
        self.auth = auth or StaticAuthContext(settings.app.user_id)

        self.store = WordStore(clock=clock)
        self.selector = PracticeSelector(rng=rng, clock=clock)
        self.queue = SyncQueue(staging, remote, self.auth, clock=clock)
        self.scheduler = SyncScheduler(self.queue)
        self.vocabulary = VocabularyService(self.store, self.queue, remote, self.auth, self.selector)
        self.reconciler = Reconciler(staging, remote, clock=clock)
        self.sentences = SentencePracticeService(self.store, self.selector, rng=rng)

    async def start(self) -> None:
        """Start listening, migrate legacy data and begin periodic sync."""
        if self.running:
            return

        try:
            self.vocabulary.start()
            self.logger.info("Loaded %d words", len(self.store))

            await self.run_migration()

            await self.scheduler.start()
            self.logger.info("Sync scheduler started")

            if settings.monitoring.enabled:
                start_monitoring(settings.monitoring.port)
                self.logger.info("Metrics exposed on port %d", settings.monitoring.port)

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            self.vocabulary.stop()
            raise

    async def run_migration(self) -> MigrationResult:
        """Import the legacy word list and merge legacy staged data."""
        user_id = self.auth.current_user_id()
        if not user_id:
            return MigrationResult(success=False, errors=["User not signed in"], skipped=True)

        imported = await self.reconciler.import_legacy_word_list(user_id)
        if imported:
            self.logger.info("Imported %d words from the legacy word list", imported)

        word_ids = {metrics.word: metrics.remote_id for metrics in self.store.all_words() if metrics.remote_id}
        result = await self.reconciler.run(user_id, word_ids)
        if result.errors:
            self.logger.warning("Migration finished with errors: %s", result.errors)
        return result

    async def stop(self) -> None:
        """Stop syncing (with a last flush) and stop listening."""
        if not self.running:
            return

        try:
            await self.scheduler.stop()
            self.logger.info("Sync scheduler stopped")
        finally:
            self.vocabulary.stop()
            self.running = False
