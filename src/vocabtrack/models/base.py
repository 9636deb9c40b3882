"""Base model configuration."""
from datetime import UTC, datetime
from typing import Generator, Optional

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from vocabtrack.config import settings

# Create declarative base class
Base = declarative_base()


def utc_now() -> datetime:
    """Current wall-clock time, timezone-aware."""
    return datetime.now(UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TimestampMixin:
    """Mixin to add timestamp columns to models."""
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


def make_engine(url: str, echo: Optional[bool] = None) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across sessions."""
    if echo is None:
        echo = settings.database.echo
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Get database session."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Engine) -> None:
    """Initialize database."""
    # Register models on the metadata before creating tables
    from vocabtrack.models import models  # noqa: F401

    Base.metadata.create_all(bind=engine)  # Create tables if they don't exist
