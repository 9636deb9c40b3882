"""Data structures for word metrics, mastery results and sync items."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from vocabtrack.models.base import ensure_utc, utc_now


class MasteryLevel(Enum):
    """Ordered mastery categories, lowest first."""
    NEW = "new"
    LEARNING = "learning"
    FAMILIAR = "familiar"
    PROFICIENT = "proficient"
    MASTERED = "mastered"


@dataclass
class WordMetrics:
    """Practice metrics for one vocabulary word."""
    word: str
    translation: str = ""
    correct_count: int = 0
    total_attempts: int = 0
    input_times: List[float] = field(default_factory=list)
    last_practiced_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    remote_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.correct_count < 0 or self.total_attempts < 0:
            raise ValueError("Counters must be non-negative")
        if self.correct_count > self.total_attempts:
            raise ValueError("correct_count cannot exceed total_attempts")

    def to_payload(self) -> "SyncPayload":
        """Full current snapshot of the synced fields."""
        return SyncPayload(
            correct_count=self.correct_count,
            total_attempts=self.total_attempts,
            input_times=list(self.input_times),
            last_practiced_at=self.last_practiced_at.isoformat() if self.last_practiced_at else None,
        )


@dataclass
class MasteryResult:
    """Derived mastery estimate for a word."""
    score: int
    level: MasteryLevel
    accuracy_score: int = 0
    speed_score: int = 0
    consistency_score: int = 0


@dataclass
class SyncPayload:
    """Snapshot of counters and timings sent to the remote store."""
    correct_count: int
    total_attempts: int
    input_times: List[float]
    last_practiced_at: Optional[str] = None  # ISO format datetime string

    def to_fields(self) -> Dict[str, Any]:
        """Remote field names and values for an update."""
        last = datetime.fromisoformat(self.last_practiced_at) if self.last_practiced_at else None
        return {
            "correct_count": self.correct_count,
            "total_attempts": self.total_attempts,
            "input_times": list(self.input_times),
            "last_practiced_at": last,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncPayload":
        """Rebuild a payload from its stored JSON form."""
        input_times = data.get("input_times", [])
        if not isinstance(input_times, list):
            raise ValueError("input_times must be a list")
        return cls(
            correct_count=int(data["correct_count"]),
            total_attempts=int(data["total_attempts"]),
            input_times=[float(t) for t in input_times],
            last_practiced_at=data.get("last_practiced_at"),
        )


@dataclass
class SyncQueueItem:
    """One pending mutation in the sync queue."""
    id: str
    word: str
    remote_id: str
    payload: SyncPayload
    created_at: int  # epoch milliseconds
    retry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "word": self.word,
            "remote_id": self.remote_id,
            "payload": {
                "correct_count": self.payload.correct_count,
                "total_attempts": self.payload.total_attempts,
                "input_times": list(self.payload.input_times),
                "last_practiced_at": self.payload.last_practiced_at,
            },
            "created_at": self.created_at,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncQueueItem":
        return cls(
            id=str(data["id"]),
            word=str(data["word"]),
            remote_id=str(data["remote_id"]),
            payload=SyncPayload.from_dict(data["payload"]),
            created_at=int(data["created_at"]),
            retry_count=int(data.get("retry_count", 0)),
        )


@dataclass
class RemoteWordRecord:
    """Remote view of one word document."""
    id: str
    word: str
    translation: str = ""
    correct_count: int = 0
    total_attempts: int = 0
    input_times: List[float] = field(default_factory=list)
    last_practiced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    frequency: float = 0

    def to_metrics(self) -> WordMetrics:
        """Convert to store metrics, repairing counters the store would reject."""
        total = max(0, self.total_attempts)
        correct = min(max(0, self.correct_count), total)
        return WordMetrics(
            word=self.word,
            translation=self.translation,
            correct_count=correct,
            total_attempts=total,
            input_times=[float(t) for t in self.input_times if t and t > 0],
            last_practiced_at=ensure_utc(self.last_practiced_at),
            created_at=ensure_utc(self.created_at) or utc_now(),
            remote_id=self.id,
        )
