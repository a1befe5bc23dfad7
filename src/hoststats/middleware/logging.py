"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One line per request on the "hoststats.access" logger.

    TEXT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 192.168.1.20 - - [19/Oct/2026:10:55:36 +0000] "GET /stats" 200 412 0.84ms │
    │ ip                  timestamp               request     status size time │
    └─────────────────────────────────────────────────────────────────────┘

    JSON:
    {"method": "GET", "path": "/stats", "client_ip": "192.168.1.20",
     "status_code": 200, "content_length": 412, "duration_ms": 0.84, ...}

The logger is separate from the application loggers so access lines can be
routed or silenced on their own:

    logging.getLogger("hoststats.access").setLevel(logging.WARNING)

=============================================================================
"""

from dataclasses import asdict, dataclass
from typing import Iterable, Optional
import json
import logging
import time

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("hoststats.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Apache-style line with the duration appended."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it first so its timing covers the
    whole chain.

    Args:
        log_format: "text" or "json".
        log_level: Level the access lines are emitted at.
        skip_paths: Paths that are handled but not logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown access log format: {log_format!r}")

        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if request.path in self.skip_paths or not logger.isEnabledFor(self.log_level):
            return response

        entry = RequestLog(
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] if request.client_address else "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
