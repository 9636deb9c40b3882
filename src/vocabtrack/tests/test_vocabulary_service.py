"""Tests for the vocabulary service."""
import pytest

from conftest import TEST_USER
from vocabtrack.errors import DuplicateWordError, NotAuthenticatedError, WordNotFoundError
from vocabtrack.services.sync_queue import FlushStatus, SyncQueue
from vocabtrack.services.vocabulary_service import VocabularyService
from vocabtrack.services.word_store import WordStore


@pytest.fixture
def store(clock) -> WordStore:
    return WordStore(clock=clock)


@pytest.fixture
def queue(staging, remote, auth, clock) -> SyncQueue:
    return SyncQueue(staging, remote, auth, clock=clock, lease_seconds=0)


@pytest.fixture
def service(store, queue, remote, auth) -> VocabularyService:
    """Service listening to the remote collection."""
    service = VocabularyService(store, queue, remote, auth)
    service.start()
    yield service
    service.stop()


@pytest.fixture
def offline_service(store, queue, remote, auth) -> VocabularyService:
    """Service that is not mirroring the remote collection."""
    return VocabularyService(store, queue, remote, auth)


def test_queue_uses_store_to_detect_orphans(service: VocabularyService, queue: SyncQueue) -> None:
    assert queue.is_live == service.is_queue_item_live


@pytest.mark.asyncio
async def test_add_word_creates_remote_and_local(service: VocabularyService, store, remote) -> None:
    metrics = await service.add_word(" Apple ", "яблуко")

    [record] = await remote.query_by_word(TEST_USER, "apple")
    assert metrics.word == "apple"
    assert store.get_remote_id("apple") == record.id
    assert store.get("apple").translation == "яблуко"


@pytest.mark.asyncio
async def test_add_duplicate_word_fails(service: VocabularyService) -> None:
    await service.add_word("apple", "яблуко")

    with pytest.raises(DuplicateWordError):
        await service.add_word("APPLE", "яблуко")


@pytest.mark.asyncio
async def test_add_word_already_in_remote_fails(offline_service: VocabularyService, remote, store) -> None:
    await remote.create(TEST_USER, {"word": "pear", "translation": "груша"})

    with pytest.raises(DuplicateWordError):
        await offline_service.add_word("pear", "груша")
    assert "pear" not in store


@pytest.mark.asyncio
async def test_operations_require_user(service: VocabularyService, auth) -> None:
    auth.sign_out()

    with pytest.raises(NotAuthenticatedError):
        await service.add_word("apple", "яблуко")
    with pytest.raises(NotAuthenticatedError):
        await service.delete_word("apple")


@pytest.mark.asyncio
async def test_attempt_is_queued_and_flushed(service: VocabularyService, queue: SyncQueue, remote) -> None:
    await service.add_word("apple", "яблуко")

    service.record_attempt("apple", True, 1.4)
    service.record_attempt("apple", False)

    assert queue.pending_count() == 2
    result = await queue.flush()

    assert result.status is FlushStatus.SUCCESS
    assert result.updated == 1
    [record] = await remote.query_by_word(TEST_USER, "apple")
    assert record.total_attempts == 2
    assert record.correct_count == 1
    assert record.input_times == [1.4]


@pytest.mark.asyncio
async def test_remote_snapshot_keeps_unflushed_practice(service: VocabularyService, store, remote) -> None:
    """A remote change to another field must not roll back queued practice."""
    await service.add_word("apple", "яблуко")
    service.record_attempt("apple", True, 2.0)

    await remote.update_fields(TEST_USER, store.get_remote_id("apple"), {"translation": "apple fruit"})

    metrics = store.get("apple")
    assert metrics.translation == "apple fruit"
    assert metrics.total_attempts == 1
    assert metrics.input_times == [2.0]


def test_attempt_without_remote_id_waits_for_it(offline_service: VocabularyService, store, queue) -> None:
    store.add_word("local", "локальний")

    offline_service.record_attempt("local", True, 1.0)
    assert queue.pending_count() == 0

    store.set_remote_id("local", "id-local")

    [item] = queue.items()
    assert item.remote_id == "id-local"
    assert item.payload.total_attempts == 1


def test_attempt_on_unknown_word_is_ignored(offline_service: VocabularyService, queue) -> None:
    assert offline_service.record_attempt("ghost", False) is None
    assert queue.pending_count() == 0


@pytest.mark.asyncio
async def test_delete_word_drops_pending_updates(service: VocabularyService, store, queue, remote) -> None:
    await service.add_word("apple", "яблуко")
    service.record_attempt("apple", True, 1.0)

    await service.delete_word("Apple")

    assert "apple" not in store
    assert queue.pending_count() == 0
    assert await remote.list_all(TEST_USER) == []
    assert service.record_attempt("apple", True, 1.0) is None


@pytest.mark.asyncio
async def test_delete_unknown_word_fails(service: VocabularyService) -> None:
    with pytest.raises(WordNotFoundError):
        await service.delete_word("ghost")


@pytest.mark.asyncio
async def test_update_translation(service: VocabularyService, remote) -> None:
    await service.add_word("apple", "яблуко")

    await service.update_translation("apple", "яблучко")

    [record] = await remote.query_by_word(TEST_USER, "apple")
    assert record.translation == "яблучко"
    with pytest.raises(WordNotFoundError):
        await service.update_translation("ghost", "привид")


@pytest.mark.asyncio
async def test_reset_practice_records_queues_every_word(service: VocabularyService, store, queue) -> None:
    await service.add_word("apple", "яблуко")
    await service.add_word("pear", "груша")
    service.record_attempt("apple", True, 1.0)
    queue.clear()

    assert service.reset_practice_records() == 2
    assert {item.word for item in queue.items()} == {"apple", "pear"}
    assert all(item.payload.total_attempts == 0 for item in queue.items())
    assert store.get("apple").input_times == []


@pytest.mark.asyncio
async def test_remove_all_words(service: VocabularyService, store, queue, remote) -> None:
    await service.add_word("apple", "яблуко")
    await service.add_word("pear", "груша")
    service.record_attempt("pear", False)

    assert await service.remove_all_words() == 2
    assert len(store) == 0
    assert queue.pending_count() == 0
    assert await remote.list_all(TEST_USER) == []


@pytest.mark.asyncio
async def test_statistics(service: VocabularyService) -> None:
    await service.add_word("apple", "яблуко")
    await service.add_word("pear", "груша")
    await service.add_word("plum", "слива")
    service.record_attempt("apple", True, 1.0)
    service.record_attempt("pear", True, 4.0)
    service.record_attempt("pear", True, 2.0)

    stats = service.get_statistics()

    assert stats.total_words == 3
    assert stats.words_practiced == 2
    assert stats.overall_average_input_time == pytest.approx(7.0 / 3)
    assert stats.slowest_words[0].word == "pear"
    assert stats.slowest_words[0].average_time == pytest.approx(3.0)
    assert sum(stats.level_counts.values()) == 3
    assert stats.level_counts["new"] >= 1


@pytest.mark.asyncio
async def test_practice_selection_and_mastery(service: VocabularyService) -> None:
    for word in ("apple", "pear", "plum"):
        await service.add_word(word, word.upper())

    picked = service.select_practice_words(2)

    assert len(picked) == 2
    assert service.get_mastery("apple").score == 0
    assert service.get_mastery("ghost") is None
    assert service.sync_status() == {"pending": 0, "unique_words": 0, "syncing": False}
