"""Tests for database models, storage boundaries and sync records."""
from datetime import UTC, datetime
from typing import Generator

import pytest
from faker import Faker
from sqlalchemy.orm import Session

from conftest import TEST_USER
from vocabtrack.errors import RecordNotFoundError
from vocabtrack.models.metrics import RemoteWordRecord, SyncPayload, SyncQueueItem, WordMetrics
from vocabtrack.models.models import RemoteWord, StagingEntry
from vocabtrack.storage.remote import union_preserving_order
from vocabtrack.storage.staging import SqlLocalStaging

fake = Faker()


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def test_remote_word_defaults(db: Session) -> None:
    word = RemoteWord(user_id=fake.email(), word="hello")
    db.add(word)
    db.commit()
    db.refresh(word)

    assert len(word.id) == 32
    assert word.correct_count == 0
    assert word.total_attempts == 0
    assert word.input_times == []
    assert word.frequency == 0
    assert word.created_at is not None


def test_staging_entry_creation(db: Session) -> None:
    db.add(StagingEntry(key="sync_queue", value="[]"))
    db.commit()

    assert db.get(StagingEntry, "sync_queue").value == "[]"


def test_sql_staging(session_factory) -> None:
    staging = SqlLocalStaging(session_factory)
    staging.set("inputTimes_cat", "[1.0]")
    staging.set("inputTimes_cat", "[2.0]")
    staging.set("word_frequency_cat", "3")
    staging.set("inputTimes%x", "[]")

    assert staging.get("inputTimes_cat") == "[2.0]"
    assert staging.keys("inputTimes_") == ["inputTimes_cat"]
    staging.delete("inputTimes_cat")
    staging.delete("missing")
    assert staging.get("inputTimes_cat") is None


def test_union_preserving_order() -> None:
    assert union_preserving_order([1.0, 2.0], [2.0, 3.0, 1.0, 4.0]) == [1.0, 2.0, 3.0, 4.0]
    assert union_preserving_order([], [5.0, 5.0]) == [5.0]


@pytest.mark.asyncio
async def test_remote_subscription_pushes_snapshots(remote) -> None:
    snapshots = []
    unsubscribe = remote.subscribe(TEST_USER, snapshots.append)
    assert snapshots == [[]]

    record_id = await remote.create(TEST_USER, {"word": "cat", "translation": "кіт"})
    await remote.create("other@example.com", {"word": "dog", "translation": "пес"})

    assert len(snapshots) == 2
    assert [r.id for r in snapshots[-1]] == [record_id]

    unsubscribe()
    await remote.delete(TEST_USER, record_id)
    assert len(snapshots) == 2


@pytest.mark.asyncio
async def test_remote_update_rejects_missing_and_unknown(remote) -> None:
    record_id = await remote.create(TEST_USER, {"word": "cat"})

    with pytest.raises(RecordNotFoundError):
        await remote.update_fields(TEST_USER, "missing", {"correct_count": 1})
    with pytest.raises(RecordNotFoundError):
        await remote.update_fields("other@example.com", record_id, {"correct_count": 1})
    with pytest.raises(ValueError):
        await remote.update_fields(TEST_USER, record_id, {"word": "dog"})


@pytest.mark.asyncio
async def test_remote_datetimes_are_utc(remote) -> None:
    practiced = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)
    record_id = await remote.create(TEST_USER, {"word": "cat", "last_practiced_at": practiced})

    [record] = await remote.list_all(TEST_USER)
    assert record.id == record_id
    assert record.last_practiced_at == practiced
    assert record.last_practiced_at.tzinfo is not None


def test_word_metrics_payload_snapshot() -> None:
    practiced = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)
    metrics = WordMetrics(
        word="cat", correct_count=1, total_attempts=2, input_times=[1.0], last_practiced_at=practiced,
    )

    payload = metrics.to_payload()
    metrics.input_times.append(2.0)

    assert payload.input_times == [1.0]
    assert payload.to_fields()["last_practiced_at"] == practiced


def test_queue_item_from_stored_dict() -> None:
    item = SyncQueueItem.from_dict({
        "id": "1700000000000_ab12cd34",
        "word": "cat",
        "remote_id": "r1",
        "payload": {"correct_count": 1, "total_attempts": 1, "input_times": [1], "last_practiced_at": None},
        "created_at": 1700000000000,
    })

    assert item.retry_count == 0
    assert item.payload == SyncPayload(1, 1, [1.0], None)
    with pytest.raises(ValueError):
        SyncPayload.from_dict({"correct_count": 1, "total_attempts": 1, "input_times": "1.0"})


def test_remote_record_repairs_bad_counters() -> None:
    record = RemoteWordRecord(
        id="r1", word="cat", correct_count=7, total_attempts=3, input_times=[1.0, 0, -2.0, 3.0],
    )

    metrics = record.to_metrics()

    assert metrics.correct_count == 3
    assert metrics.total_attempts == 3
    assert metrics.input_times == [1.0, 3.0]
    assert metrics.remote_id == "r1"
