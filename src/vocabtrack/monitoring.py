"""Prometheus metrics for practice and sync activity."""
from prometheus_client import Counter, Gauge, start_http_server

# Practice metrics
attempts_recorded = Counter(
    "vocabtrack_attempts_recorded_total",
    "Total number of practice attempts recorded",
    ["result"],
)

# Word management metrics
words_added = Counter(
    "vocabtrack_words_added_total",
    "Total number of words added to the vocabulary",
)

words_deleted = Counter(
    "vocabtrack_words_deleted_total",
    "Total number of words deleted from the vocabulary",
)

# Sync metrics
sync_flushes = Counter(
    "vocabtrack_sync_flushes_total",
    "Total number of sync queue flushes",
    ["status"],
)

sync_dead_lettered = Counter(
    "vocabtrack_sync_dead_lettered_total",
    "Total number of queue items dropped after exhausting retries",
)

sync_orphaned = Counter(
    "vocabtrack_sync_orphaned_total",
    "Total number of queue items dropped because their word was deleted",
)

sync_pending = Gauge(
    "vocabtrack_sync_pending_items",
    "Number of items waiting in the sync queue",
)

# Remote store metrics
remote_errors = Counter(
    "vocabtrack_remote_errors_total",
    "Total number of failed remote store operations",
    ["operation"],
)

# Migration metrics
migrated_fields = Counter(
    "vocabtrack_migrated_fields_total",
    "Total number of legacy staged fields migrated to the remote store",
    ["field"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
