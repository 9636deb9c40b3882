"""Database models for the remote word collection and local staging."""
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)

from vocabtrack.models.base import Base, TimestampMixin


def new_record_id() -> str:
    """Opaque document identifier for a remote word."""
    return uuid.uuid4().hex


class RemoteWord(Base, TimestampMixin):
    """Per-user word record in the remote collection."""

    __tablename__ = "remote_words"

    id = Column(String(32), primary_key=True, default=new_record_id)
    user_id = Column(String, nullable=False, index=True)
    word = Column(String, nullable=False, index=True)
    translation = Column(String, nullable=False, default="")
    correct_count = Column(Integer, nullable=False, default=0)
    total_attempts = Column(Integer, nullable=False, default=0)
    input_times = Column(JSON, nullable=False, default=list)
    last_practiced_at = Column(DateTime(timezone=True), nullable=True)
    frequency = Column(Float, nullable=False, default=0)  # legacy scalar counter


class StagingEntry(Base):
    """Key-value row of the durable local staging area."""

    __tablename__ = "staging_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
