"""
=============================================================================
METRICS SNAPSHOT
=============================================================================

The latest rate metrics plus the raw cumulative counters they came from.

    ┌──────────────┐   publish()    ┌──────────────────┐   read()    ┌──────────┐
    │   Sampler    │ ─────────────► │  MetricsSnapshot │ ──────────► │ Workers  │
    │ (one writer) │  one lock per  │    (lock-guarded) │  copy out  │ (N reads)│
    └──────────────┘  sampling pass └──────────────────┘  under lock └──────────┘

Writers replace every field that belongs to one sampling pass inside a
single lock acquisition, and readers copy every field inside a single lock
acquisition. A reader therefore never sees CPU values from one pass next to
network values from another.

Lock hold time is a handful of attribute assignments; no I/O ever happens
while the lock is held.

=============================================================================
"""

import threading
from dataclasses import dataclass, replace
from typing import Tuple


@dataclass(frozen=True)
class RawCounters:
    """Counter values from the most recent successful sub-samples."""

    cpu_busy: float = 0.0
    cpu_total: float = 0.0
    cpu_seeded: bool = False

    net_bytes_sent: int = 0
    net_bytes_recv: int = 0
    net_timestamp: float = 0.0
    net_seeded: bool = False


@dataclass(frozen=True)
class RateMetrics:
    """
    Immutable copy of the published metrics, handed to request handlers.

    passes counts completed sampling passes that changed anything; it lets
    callers tell a zeroed snapshot from a sampled one.
    """

    cpu_usage_percent: float = 0.0
    net_upload_bytes_sec: float = 0.0
    net_download_bytes_sec: float = 0.0
    net_total_bytes_sent: int = 0
    net_total_bytes_recv: int = 0
    passes: int = 0


class MetricsSnapshot:
    """
    Lock-guarded record shared by the sampler (writer) and workers (readers).

    Created zeroed. Only the sampler calls publish().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters = RawCounters()
        self._rates = RateMetrics()

    def read(self) -> RateMetrics:
        """Copy out the derived fields."""
        with self._lock:
            return self._rates

    def state(self) -> Tuple[RawCounters, RateMetrics]:
        """Copy out the raw counters together with the rates derived from them."""
        with self._lock:
            return self._counters, self._rates

    def publish(self, counters: RawCounters, rates: RateMetrics) -> None:
        """
        Replace counters and rates as one unit.

        Both arguments are frozen, so assigning the two references under
        the lock is the entire critical section.
        """
        with self._lock:
            self._counters = counters
            self._rates = replace(rates, passes=self._rates.passes + 1)
