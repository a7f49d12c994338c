"""
Prometheus metrics for sync passes.

Registered once per process against the default registry; re-importing the
module (tests, reloads) reuses the collectors already registered.
"""

from prometheus_client import REGISTRY, Counter, Histogram


def _counter(name: str, documentation: str, labels: list[str]) -> Counter:
    try:
        return Counter(name, documentation, labels, registry=REGISTRY)
    except ValueError:
        # Already registered
        return REGISTRY._names_to_collectors[name]


def _histogram(name: str, documentation: str, labels: list[str], buckets: list[float]) -> Histogram:
    try:
        return Histogram(name, documentation, labels, buckets=buckets, registry=REGISTRY)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


SYNC_PASSES = _counter(
    "hris_sync_passes_total",
    "Sync passes by mode and outcome",
    ["mode", "outcome"],  # outcome: completed, aborted
)

SYNC_PASS_DURATION = _histogram(
    "hris_sync_pass_duration_seconds",
    "Wall-clock duration of a sync pass",
    ["mode"],
    [1, 5, 10, 30, 60, 120, 300, 600, 1800],
)

SYNC_RECORDS = _counter(
    "hris_sync_records_total",
    "Source records processed by outcome",
    ["outcome"],  # synced, unchanged, unmatched, failed
)

SYNC_MATCHES = _counter(
    "hris_sync_matches_total",
    "Source records by match method",
    ["method"],
)

DIRECTORY_OPERATIONS = _counter(
    "hris_sync_directory_operations_total",
    "Directory operations by kind and status",
    ["operation", "status"],  # operation: bind, search, modify, relocate
)
