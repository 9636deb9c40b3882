"""Test configuration."""
import os
from datetime import datetime, timedelta, UTC
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from vocabtrack.models.base import init_db, make_engine, make_session_factory
from vocabtrack.storage.auth import StaticAuthContext
from vocabtrack.storage.remote import SqlRemoteWordCollection
from vocabtrack.storage.staging import MemoryLocalStaging

TEST_USER = "learner@example.com"


class FakeClock:
    """Controllable wall clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class SequenceRng:
    """Replays fixed draws from [0, 1)."""

    def __init__(self, *values: float):
        self.values = list(values)
        self.calls = 0

    def __call__(self) -> float:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def staging() -> MemoryLocalStaging:
    return MemoryLocalStaging()


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def remote(session_factory) -> SqlRemoteWordCollection:
    return SqlRemoteWordCollection(session_factory)


@pytest.fixture
def auth() -> StaticAuthContext:
    return StaticAuthContext(TEST_USER)
