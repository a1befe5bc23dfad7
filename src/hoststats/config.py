"""
=============================================================================
MONITOR CONFIGURATION
=============================================================================

Centralized configuration for the telemetry server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m hoststats --port 4000                           │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HOSTSTATS_PORT=4000 python -m hoststats                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The defaults reproduce the classic deployment: port 3040, 4 workers,
a 100-slot job queue.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from . import __version__


OVERFLOW_POLICIES = ("block", "reject", "overwrite")


def _env_timeout(value: str) -> Optional[float]:
    """'none', 'off' or '0' mean no per-connection timeout."""
    if value.strip().lower() in ("", "none", "off", "0", "0.0"):
        return None
    return float(value)


@dataclass
class MonitorConfig:
    """
    Configuration for the telemetry server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK         host, port, backlog, buffer_size, read_timeout,
                    max_request_size
    CONCURRENCY     workers, queue_capacity, overflow_policy
    METRIC SOURCES  main_disk_path, usb_disk_path, thermal_path,
                    os_release_path, proc_version_path, meminfo_path
    LOGGING         log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Bind address. All interfaces by default."""

    port: int = 3040

    backlog: int = 128

    buffer_size: int = 4096
    """recv() chunk size in bytes."""

    read_timeout: Optional[float] = 30.0
    """
    Per-connection socket timeout in seconds.
    None = block forever: a silent client then holds a worker indefinitely,
    as in the classic deployment.
    """

    max_request_size: int = 64 * 1024
    """Cap on buffered request-head bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 4

    queue_capacity: int = 100

    overflow_policy: str = "block"
    """
    What the acceptor does when the job queue is full.
    - "block"     wait for a worker to free a slot
    - "reject"    close the new connection immediately
    - "overwrite" displace the oldest pending connection (closed, unanswered)
    """

    # ─────────────────────────────────────────────────────────────────────
    # METRIC SOURCES
    # ─────────────────────────────────────────────────────────────────────

    main_disk_path: str = "/"
    usb_disk_path: str = "/mnt/usb"
    thermal_path: str = "/sys/class/thermal/thermal_zone0/temp"
    os_release_path: str = "/etc/os-release"
    proc_version_path: str = "/proc/version"
    meminfo_path: str = "/proc/meminfo"

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    server_name: str = f"hoststats/{__version__}"

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HOSTSTATS_HOST            Bind address (default: 0.0.0.0)
        HOSTSTATS_PORT            Listening port (default: 3040)
        HOSTSTATS_WORKERS         Worker threads (default: 4)
        HOSTSTATS_QUEUE_CAPACITY  Job queue slots (default: 100)
        HOSTSTATS_OVERFLOW        block | reject | overwrite (default: block)
        HOSTSTATS_READ_TIMEOUT    Seconds, or "none" (default: 30)
        HOSTSTATS_MAIN_DISK       Main filesystem path (default: /)
        HOSTSTATS_USB_DISK        Secondary filesystem path (default: /mnt/usb)
        HOSTSTATS_THERMAL_PATH    Temperature file
        HOSTSTATS_LOG_LEVEL       Logging level (default: INFO)

        =====================================================================
        """
        defaults = cls()
        return cls(
            host=os.getenv("HOSTSTATS_HOST", defaults.host),
            port=int(os.getenv("HOSTSTATS_PORT", str(defaults.port))),
            workers=int(os.getenv("HOSTSTATS_WORKERS", str(defaults.workers))),
            queue_capacity=int(
                os.getenv("HOSTSTATS_QUEUE_CAPACITY", str(defaults.queue_capacity))
            ),
            overflow_policy=os.getenv("HOSTSTATS_OVERFLOW", defaults.overflow_policy).lower(),
            read_timeout=_env_timeout(
                os.getenv("HOSTSTATS_READ_TIMEOUT", str(defaults.read_timeout))
            ),
            main_disk_path=os.getenv("HOSTSTATS_MAIN_DISK", defaults.main_disk_path),
            usb_disk_path=os.getenv("HOSTSTATS_USB_DISK", defaults.usb_disk_path),
            thermal_path=os.getenv("HOSTSTATS_THERMAL_PATH", defaults.thermal_path),
            log_level=os.getenv("HOSTSTATS_LOG_LEVEL", defaults.log_level),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup so a bad value fails immediately, not on the
        first request.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.queue_capacity < 1:
            raise ValueError("queue_capacity must be >= 1")

        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(
                f"overflow_policy must be one of {', '.join(OVERFLOW_POLICIES)}, "
                f"got {self.overflow_policy!r}"
            )

        if self.buffer_size < 512:
            raise ValueError("buffer_size must be >= 512")

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0 (or None for no timeout)")
