"""
=============================================================================
TELEMETRY HANDLERS
=============================================================================

The two endpoints of the API.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /stats                                                          │
    │  ─────────────────────────────────────────────────────────────────── │
    │   snapshot.read()        rates, one lock acquisition, copied out     │
    │        +                                                             │
    │   reader.*()             uptime, memory, temperature, disks          │
    │        │                 (no lock, each read is self-consistent)     │
    │        ▼                                                             │
    │   build_stats_payload()  pure function → ordered dict → JSON         │
    ├─────────────────────────────────────────────────────────────────────┤
    │  GET /distro                                                         │
    │  ─────────────────────────────────────────────────────────────────── │
    │   reader.kernel_version() + reader.distro_name()                     │
    │   no snapshot access                                                 │
    └─────────────────────────────────────────────────────────────────────┘

A source that can't be read shows up as 0 or "Unknown" in its field; the
response itself never fails.

=============================================================================
"""

from typing import Any, Dict

from ..config import MonitorConfig
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok_json
from ..metrics.readers import SystemReader
from ..metrics.snapshot import MetricsSnapshot, RateMetrics


# Field order of the /stats object. Clients index these by name, but the
# order is kept stable for people reading the raw output.
STATS_FIELDS = (
    "cpu_uptime_seconds",
    "cpu_usage_percent",
    "ram_total_kb",
    "ram_used_kb",
    "swap_total_kb",
    "swap_used_kb",
    "cpu_temp_millicelsius",
    "net_upload_bytes_sec",
    "net_download_bytes_sec",
    "net_total_bytes_sent",
    "net_total_bytes_recv",
    "main_disk_total_bytes",
    "main_disk_used_bytes",
    "main_disk_usage_percent",
    "usb_disk_total_bytes",
    "usb_disk_used_bytes",
    "usb_disk_usage_percent",
)

DISTRO_FIELDS = ("kernel_version", "distro_name")


def build_stats_payload(
    rates: RateMetrics,
    reader: SystemReader,
    config: MonitorConfig,
) -> Dict[str, Any]:
    """
    Combine a snapshot copy with point-in-time reads.

    Args:
        rates: Copy returned by MetricsSnapshot.read().
        reader: Source of the non-rate metrics.
        config: Supplies the disk paths.

    Returns:
        Dict keyed in STATS_FIELDS order. Rates and percentages are floats,
        counts and sizes are ints.
    """
    memory = reader.memory()
    main_disk = reader.disk_usage(config.main_disk_path)
    usb_disk = reader.disk_usage(config.usb_disk_path)

    return {
        "cpu_uptime_seconds": reader.uptime_seconds(),
        "cpu_usage_percent": float(rates.cpu_usage_percent),
        "ram_total_kb": memory.ram_total_kb,
        "ram_used_kb": memory.ram_used_kb,
        "swap_total_kb": memory.swap_total_kb,
        "swap_used_kb": memory.swap_used_kb,
        "cpu_temp_millicelsius": reader.cpu_temp_millicelsius(),
        "net_upload_bytes_sec": float(rates.net_upload_bytes_sec),
        "net_download_bytes_sec": float(rates.net_download_bytes_sec),
        "net_total_bytes_sent": rates.net_total_bytes_sent,
        "net_total_bytes_recv": rates.net_total_bytes_recv,
        "main_disk_total_bytes": main_disk.total_bytes,
        "main_disk_used_bytes": main_disk.used_bytes,
        "main_disk_usage_percent": float(main_disk.usage_percent),
        "usb_disk_total_bytes": usb_disk.total_bytes,
        "usb_disk_used_bytes": usb_disk.used_bytes,
        "usb_disk_usage_percent": float(usb_disk.usage_percent),
    }


def build_distro_payload(reader: SystemReader) -> Dict[str, str]:
    return {
        "kernel_version": reader.kernel_version(),
        "distro_name": reader.distro_name(),
    }


class StatsHandler:
    """
    Request handler for /stats and /distro.

    Stateless apart from its collaborators; safe to share across workers.

        handler = StatsHandler(snapshot, reader, config)
        router.add_route("/stats", handler.stats)
        router.add_route("/distro", handler.distro)
    """

    def __init__(self, snapshot: MetricsSnapshot, reader: SystemReader, config: MonitorConfig):
        self.snapshot = snapshot
        self.reader = reader
        self.config = config

    def stats(self, request: HTTPRequest) -> HTTPResponse:
        rates = self.snapshot.read()
        return ok_json(build_stats_payload(rates, self.reader, self.config))

    def distro(self, request: HTTPRequest) -> HTTPResponse:
        return ok_json(build_distro_payload(self.reader))
