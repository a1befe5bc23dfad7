"""
Request handlers for the telemetry endpoints.

    handler = StatsHandler(snapshot, reader, config)
    router.add_route("/stats", handler.stats)
    router.add_route("/distro", handler.distro)
"""

from .stats import (
    StatsHandler,
    build_stats_payload,
    build_distro_payload,
    STATS_FIELDS,
    DISTRO_FIELDS,
)

__all__ = [
    "StatsHandler",
    "build_stats_payload",
    "build_distro_payload",
    "STATS_FIELDS",
    "DISTRO_FIELDS",
]
