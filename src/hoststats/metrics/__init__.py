"""
Host metrics: where the numbers come from and how rates are derived.

    readers.py    point-in-time reads (psutil, thermal zone, os-release)
    sampler.py    1s background thread differencing cumulative counters
    snapshot.py   lock-guarded latest rates shared with the workers
"""

from .readers import (
    CpuTimes,
    DiskUsage,
    MemoryUsage,
    NetCounters,
    SystemReader,
    UNKNOWN,
)
from .sampler import Sampler, SAMPLE_INTERVAL, advance
from .snapshot import MetricsSnapshot, RateMetrics, RawCounters

__all__ = [
    "CpuTimes",
    "DiskUsage",
    "MemoryUsage",
    "NetCounters",
    "SystemReader",
    "UNKNOWN",
    "Sampler",
    "SAMPLE_INTERVAL",
    "advance",
    "MetricsSnapshot",
    "RateMetrics",
    "RawCounters",
]
