"""
=============================================================================
HOSTSTATS CLI ENTRY POINT
=============================================================================

    # Defaults: 0.0.0.0:3040, 4 workers, 100-slot queue
    python -m hoststats

    # Custom port, more workers
    python -m hoststats --port 8000 --workers 8

    # Classic deployment: overwrite on a full queue, no timeouts
    python -m hoststats --overflow overwrite --read-timeout 0

    # Secondary disk elsewhere, different thermal zone
    python -m hoststats --usb-disk /media/backup \\
        --thermal-path /sys/class/thermal/thermal_zone2/temp

Every option can also come from a HOSTSTATS_* environment variable; an
option given on the command line wins.

=============================================================================
"""

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import MonitorConfig, OVERFLOW_POLICIES
from .middleware import LoggingMiddleware
from .server import StatsServer


logger = logging.getLogger("hoststats")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hoststats",
        description="Serve live host telemetry (CPU, memory, disk, network) as JSON over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Endpoints:
  GET /stats     metrics snapshot
  GET /distro    kernel version and distribution name

Examples:
  python -m hoststats                          # Run with defaults
  python -m hoststats --port 8000              # Custom port
  python -m hoststats --overflow reject        # Drop connections when saturated
        """
    )

    # Every default is None so only flags actually given override the
    # environment.

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        help="Host to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: 3040)"
    )

    parser.add_argument(
        "--read-timeout",
        type=float,
        help="Per-connection socket timeout in seconds, 0 for none (default: 30)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of worker threads (default: 4)"
    )

    parser.add_argument(
        "--queue-capacity",
        type=int,
        help="Pending connection slots (default: 100)"
    )

    parser.add_argument(
        "--overflow",
        choices=OVERFLOW_POLICIES,
        help="What to do when the queue is full (default: block)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # METRIC SOURCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--main-disk",
        help="Filesystem reported as main_disk_* (default: /)"
    )

    parser.add_argument(
        "--usb-disk",
        help="Filesystem reported as usb_disk_* (default: /mnt/usb)"
    )

    parser.add_argument(
        "--thermal-path",
        help="File holding the CPU temperature in millidegrees Celsius"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"hoststats {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    """Environment first, then whatever was given on the command line."""
    config = MonitorConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "workers": args.workers,
        "queue_capacity": args.queue_capacity,
        "overflow_policy": args.overflow,
        "main_disk_path": args.main_disk,
        "usb_disk_path": args.usb_disk,
        "thermal_path": args.thermal_path,
        "log_level": args.log_level,
    }
    overrides = {name: value for name, value in overrides.items() if value is not None}

    if args.read_timeout is not None:
        overrides["read_timeout"] = args.read_timeout if args.read_timeout > 0 else None

    return dataclasses.replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        server = StatsServer(config)
    except ValueError as e:
        parser.error(str(e))

    server.use(LoggingMiddleware())

    try:
        server.run()
    except OSError as e:
        logger.error(f"Server failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
