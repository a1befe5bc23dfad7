"""
=============================================================================
HOSTSTATS
=============================================================================

Live host telemetry over a minimal HTTP API.

    GET /stats    CPU, memory, swap, temperature, network and disk figures
    GET /distro   kernel release and distribution name

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    hoststats/
    ├── __init__.py          This file
    ├── __main__.py          CLI entry point (python -m hoststats)
    ├── config.py            MonitorConfig
    ├── server.py            StatsServer, wires everything together
    │
    ├── core/                Acceptor → JobQueue → WorkerPool
    ├── metrics/             SystemReader, Sampler, MetricsSnapshot
    ├── http/                Request parsing, responses, routing
    ├── middleware/          Access logging
    └── handlers/            /stats and /distro

=============================================================================
"""

__version__ = "1.0.0"

from .server import StatsServer
from .config import MonitorConfig

__all__ = ["StatsServer", "MonitorConfig", "__version__"]
