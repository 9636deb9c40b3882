"""Tests for the application wiring."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import TEST_USER
from vocabtrack.app import VocabApp
from vocabtrack.services.reconciler import INPUT_TIMES_PREFIX, LEGACY_WORDS_KEY, MIGRATION_MARKER_KEY
from vocabtrack.storage.auth import StaticAuthContext


@pytest.fixture
def app(remote, staging, auth, clock) -> VocabApp:
    """Create an app over in-memory boundaries."""
    return VocabApp(remote=remote, staging=staging, auth=auth, clock=clock)


@pytest.mark.asyncio
async def test_start_and_stop(app: VocabApp) -> None:
    await app.start()

    assert app.running
    assert app.scheduler.running
    assert app.staging.get(MIGRATION_MARKER_KEY) is not None

    await app.stop()

    assert not app.running
    assert not app.scheduler.running


@pytest.mark.asyncio
async def test_start_imports_legacy_data(app: VocabApp, staging, remote) -> None:
    staging.set(LEGACY_WORDS_KEY, json.dumps([["cat", "кіт"], ["dog", "пес"]]))
    staging.set(INPUT_TIMES_PREFIX + "cat", json.dumps([1.5, 2.5]))

    await app.start()
    try:
        assert app.store.words == {"cat": "кіт", "dog": "пес"}
        assert app.store.get_input_times("cat") == [1.5, 2.5]
        [record] = await remote.query_by_word(TEST_USER, "cat")
        assert record.input_times == [1.5, 2.5]
        assert app.reconciler.is_completed()
    finally:
        await app.stop()


@pytest.mark.asyncio
async def test_practice_round_trip(app: VocabApp, remote) -> None:
    await app.start()
    try:
        await app.vocabulary.add_word("cat", "кіт")
        app.vocabulary.record_attempt("cat", True, 1.1)
        assert app.scheduler.status()["pending"] == 1

        await app.scheduler.flush_now()

        [record] = await remote.query_by_word(TEST_USER, "cat")
        assert record.correct_count == 1
        assert app.scheduler.status()["pending"] == 0
    finally:
        await app.stop()


@pytest.mark.asyncio
async def test_migration_skipped_without_user(remote, staging, clock) -> None:
    app = VocabApp(remote=remote, staging=staging, auth=StaticAuthContext(None), clock=clock)

    result = await app.run_migration()

    assert result.skipped
    assert not result.success


@pytest.mark.asyncio
async def test_main_exits_without_user(mocker) -> None:
    from vocabtrack import __main__

    mock_app = MagicMock()
    mock_app.auth.current_user_id.return_value = None
    mock_app.start = AsyncMock()
    mocker.patch.object(__main__, "VocabApp", return_value=mock_app)

    await __main__.main()

    mock_app.start.assert_not_awaited()
