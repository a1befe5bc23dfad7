"""
=============================================================================
SAMPLER
=============================================================================

A single background thread that turns cumulative kernel counters into
rates. Every SAMPLE_INTERVAL seconds it runs one sampling pass:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Sampling Pass                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. read CPU times          reader.cpu_times()                     │
    │   2. read network bytes      reader.net_counters()                  │
    │   3. difference both against the previous pass (no lock held)       │
    │   4. snapshot.publish(...)   one lock acquisition, all fields       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

CUMULATIVE-COUNTER DIFFERENCING
───────────────────────────────

    cpu_usage_percent = 100 * (busy_now - busy_last) / (total_now - total_last)
    upload_rate       = (sent_now - sent_last) / elapsed_seconds
    download_rate     = (recv_now - recv_last) / elapsed_seconds

The first successful CPU read only seeds busy_last/total_last. The first
network read publishes totals but no rate. A zero CPU denominator or a
non-positive elapsed time keeps the previously published rate. A sub-sample
whose source could not be read is skipped for that pass: stale values stay
published, nothing is zeroed.

=============================================================================
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Optional, Tuple

from .readers import CpuTimes, NetCounters, SystemReader
from .snapshot import MetricsSnapshot, RateMetrics, RawCounters


logger = logging.getLogger(__name__)

SAMPLE_INTERVAL = 1.0


def advance(
    counters: RawCounters,
    rates: RateMetrics,
    cpu: Optional[CpuTimes],
    net: Optional[NetCounters],
    now: float,
) -> Tuple[RawCounters, RateMetrics]:
    """
    Compute the snapshot contents after one pass.

    Pure function of the previous state and the new readings, so the
    arithmetic can be tested without threads or clocks.

    Args:
        counters: Raw counters currently published.
        rates: Rates currently published.
        cpu: New CPU reading, or None if it could not be taken.
        net: New network reading, or None if it could not be taken.
        now: Monotonic timestamp of this pass, in seconds.

    Returns:
        (new counters, new rates)
    """
    if cpu is not None:
        if counters.cpu_seeded:
            delta_total = cpu.total - counters.cpu_total
            delta_busy = cpu.busy - counters.cpu_busy

            if delta_total > 0 and delta_busy >= 0:
                percent = 100.0 * delta_busy / delta_total
                rates = replace(rates, cpu_usage_percent=min(100.0, percent))
            elif delta_total < 0 or delta_busy < 0:
                logger.warning("CPU counters went backwards, reseeding")

        counters = replace(
            counters,
            cpu_busy=cpu.busy,
            cpu_total=cpu.total,
            cpu_seeded=True,
        )

    if net is not None:
        if counters.net_seeded:
            elapsed = now - counters.net_timestamp
            delta_sent = net.bytes_sent - counters.net_bytes_sent
            delta_recv = net.bytes_recv - counters.net_bytes_recv

            if delta_sent < 0 or delta_recv < 0:
                logger.warning("Network counters went backwards, reseeding")
            elif elapsed > 0:
                rates = replace(
                    rates,
                    net_upload_bytes_sec=delta_sent / elapsed,
                    net_download_bytes_sec=delta_recv / elapsed,
                )

        rates = replace(
            rates,
            net_total_bytes_sent=net.bytes_sent,
            net_total_bytes_recv=net.bytes_recv,
        )
        counters = replace(
            counters,
            net_bytes_sent=net.bytes_sent,
            net_bytes_recv=net.bytes_recv,
            net_timestamp=now,
            net_seeded=True,
        )

    return counters, rates


class Sampler:
    """
    Background thread that periodically publishes rate metrics.

    Usage:
        snapshot = MetricsSnapshot()
        sampler = Sampler(snapshot, SystemReader())
        sampler.start()
        ...
        sampler.stop()
    """

    def __init__(
        self,
        snapshot: MetricsSnapshot,
        reader: SystemReader,
        interval: float = SAMPLE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the sampler. No thread runs until start().

        Args:
            snapshot: The snapshot this sampler exclusively writes.
            reader: Source of cumulative counters.
            interval: Seconds between passes.
            clock: Timestamp source for network elapsed time.
        """
        self._snapshot = snapshot
        self._reader = reader
        self._interval = interval
        self._clock = clock

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="Sampler",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Sampler started, interval {self._interval}s")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Wake the sampler out of its sleep and wait for it to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        # Sleep first: the first pass happens one interval after start
        while not self._stop_event.wait(timeout=self._interval):
            try:
                self.sample_once()
            except Exception as e:
                logger.exception(f"Sampling pass failed: {e}")

    def sample_once(self) -> bool:
        """
        Run one sampling pass now.

        Returns:
            True if anything was published, False if both sources failed.
        """
        cpu = self._reader.cpu_times()
        net = self._reader.net_counters()
        now = self._clock()

        if cpu is None and net is None:
            logger.debug("Sampling pass skipped, no counters readable")
            return False

        # Only this thread publishes, so counters cannot change between
        # this read and the publish below.
        counters, rates = self._snapshot.state()

        counters, rates = advance(counters, rates, cpu, net, now)
        self._snapshot.publish(counters, rates)
        return True
