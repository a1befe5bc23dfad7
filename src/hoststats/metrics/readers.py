"""
Kernel metric readers.

Synchronous, stateless, point-in-time reads of host telemetry. Counters,
uptime and disk usage come from psutil; memory, temperature and OS
identity are read straight from their pseudo-files.

Every reader substitutes a default when its source is unavailable:

    cpu_times() / net_counters()    None  (the sampler skips that sub-sample)
    everything numeric              0
    kernel_version() / distro_name  "Unknown"

A missing thermal zone or an unmounted USB disk is normal, so these paths
log at DEBUG, not WARNING.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import psutil


logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

LOOPBACK_INTERFACES = frozenset({"lo", "lo0"})

# guest time is already included in user/nice on Linux
_DOUBLE_COUNTED_CPU_FIELDS = ("guest", "guest_nice")
_IDLE_CPU_FIELDS = ("idle", "iowait")


@dataclass(frozen=True)
class CpuTimes:
    """Cumulative CPU time across all categories, in seconds."""
    busy: float
    total: float


@dataclass(frozen=True)
class NetCounters:
    """Cumulative bytes across all non-loopback interfaces."""
    bytes_sent: int
    bytes_recv: int


@dataclass(frozen=True)
class MemoryUsage:
    ram_total_kb: int = 0
    ram_used_kb: int = 0
    swap_total_kb: int = 0
    swap_used_kb: int = 0


@dataclass(frozen=True)
class DiskUsage:
    total_bytes: int = 0
    used_bytes: int = 0
    usage_percent: float = 0.0


class SystemReader:
    """
    Reads host metrics from psutil and the filesystem.

    Paths are injectable so tests can point the file-based readers at
    fixtures under tmp_path.
    """

    def __init__(
        self,
        thermal_path: Union[str, Path] = "/sys/class/thermal/thermal_zone0/temp",
        os_release_path: Union[str, Path] = "/etc/os-release",
        proc_version_path: Union[str, Path] = "/proc/version",
        meminfo_path: Union[str, Path] = "/proc/meminfo",
    ):
        self.thermal_path = Path(thermal_path)
        self.os_release_path = Path(os_release_path)
        self.proc_version_path = Path(proc_version_path)
        self.meminfo_path = Path(meminfo_path)

    # ─────────────────────────────────────────────────────────────────────
    # CUMULATIVE COUNTERS (consumed by the sampler)
    # ─────────────────────────────────────────────────────────────────────

    def cpu_times(self) -> Optional[CpuTimes]:
        """
        Busy and total CPU time since boot.

        Busy is every category except idle and iowait; total is every
        category, minus guest time that the kernel also folds into user.
        """
        try:
            times = psutil.cpu_times()._asdict()
        except (OSError, psutil.Error) as e:
            logger.debug(f"CPU times unavailable: {e}")
            return None

        total = sum(
            value for name, value in times.items()
            if name not in _DOUBLE_COUNTED_CPU_FIELDS
        )
        idle = sum(times.get(name, 0.0) for name in _IDLE_CPU_FIELDS)
        return CpuTimes(busy=total - idle, total=total)

    def net_counters(self) -> Optional[NetCounters]:
        """Bytes sent/received summed over every interface except loopback."""
        try:
            per_nic = psutil.net_io_counters(pernic=True)
        except (OSError, psutil.Error) as e:
            logger.debug(f"Network counters unavailable: {e}")
            return None

        sent = recv = 0
        for name, counters in per_nic.items():
            if name in LOOPBACK_INTERFACES:
                continue
            sent += counters.bytes_sent
            recv += counters.bytes_recv
        return NetCounters(bytes_sent=sent, bytes_recv=recv)

    # ─────────────────────────────────────────────────────────────────────
    # POINT-IN-TIME VALUES (read per request)
    # ─────────────────────────────────────────────────────────────────────

    def uptime_seconds(self) -> int:
        """Whole seconds since boot."""
        try:
            boot = psutil.boot_time()
        except (OSError, psutil.Error) as e:
            logger.debug(f"Boot time unavailable: {e}")
            return 0
        return max(0, int(time.time() - boot))

    def memory(self) -> MemoryUsage:
        """
        RAM and swap in kB, from the meminfo file.

        RAM used is MemTotal - MemFree - Buffers - Cached. psutil folds
        SReclaimable into its "cached" figure, so the fields are read here
        directly to keep slab memory counted as used.
        """
        try:
            text = self.meminfo_path.read_text()
        except OSError as e:
            logger.debug(f"{self.meminfo_path} unavailable: {e}")
            return MemoryUsage()

        fields = parse_meminfo(text)
        total = fields.get("MemTotal", 0)
        ram_used = total - fields.get("MemFree", 0) - fields.get("Buffers", 0) - fields.get("Cached", 0)
        swap_total = fields.get("SwapTotal", 0)
        swap_used = swap_total - fields.get("SwapFree", 0)

        return MemoryUsage(
            ram_total_kb=total,
            ram_used_kb=max(0, ram_used),
            swap_total_kb=swap_total,
            swap_used_kb=max(0, swap_used),
        )

    def disk_usage(self, path: str) -> DiskUsage:
        """Usage of the filesystem holding path; zeros if it can't be queried."""
        try:
            usage = psutil.disk_usage(path)
        except (OSError, psutil.Error) as e:
            logger.debug(f"Disk usage for {path} unavailable: {e}")
            return DiskUsage()

        percent = usage.used / usage.total * 100.0 if usage.total > 0 else 0.0
        return DiskUsage(
            total_bytes=usage.total,
            used_bytes=usage.used,
            usage_percent=percent,
        )

    def cpu_temp_millicelsius(self) -> int:
        try:
            text = self.thermal_path.read_text()
        except OSError as e:
            logger.debug(f"Thermal zone {self.thermal_path} unavailable: {e}")
            return 0

        try:
            return int(text.split()[0])
        except (IndexError, ValueError):
            logger.debug(f"Unparseable temperature in {self.thermal_path}: {text!r}")
            return 0

    # ─────────────────────────────────────────────────────────────────────
    # OS IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    def kernel_version(self) -> str:
        """
        Kernel release from /proc/version.

        "Linux version 6.1.0-18-amd64 (debian-kernel@...) ..." -> "6.1.0-18-amd64".
        A line in any other shape is returned whole.
        """
        try:
            text = self.proc_version_path.read_text().strip()
        except OSError as e:
            logger.debug(f"{self.proc_version_path} unavailable: {e}")
            return UNKNOWN

        parts = text.split()
        if len(parts) >= 3 and parts[1] == "version":
            return parts[2]
        return text or UNKNOWN

    def distro_name(self) -> str:
        """PRETTY_NAME (falling back to NAME) from os-release."""
        try:
            text = self.os_release_path.read_text()
        except OSError as e:
            logger.debug(f"{self.os_release_path} unavailable: {e}")
            return UNKNOWN

        fields = parse_os_release(text)
        return fields.get("PRETTY_NAME") or fields.get("NAME") or UNKNOWN


def parse_os_release(text: str) -> dict:
    """
    Parse os-release KEY=value lines.

    Values may be double- or single-quoted. Comments, blank lines and lines
    without '=' are skipped.
    """
    fields = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        fields[key.strip()] = value
    return fields


def parse_meminfo(text: str) -> dict:
    """
    Parse meminfo "Key:   value kB" lines into key -> int (kB).

    Lines without a numeric value are skipped.
    """
    fields = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or not parts[0].endswith(":"):
            continue
        try:
            fields[parts[0][:-1]] = int(parts[1])
        except ValueError:
            continue
    return fields
