"""
=============================================================================
HTTP RESPONSE
=============================================================================

Building and serializing responses.

    Handler returns          to_bytes()              Connection sends
    HTTPResponse    ─────►   serializes    ─────►    raw bytes, once
        │                       │
    HTTPResponse(            b"HTTP/1.1 200 OK\r\n
      status=200,              Content-Type: application/json\r\n
      headers={...},           Content-Length: 412\r\n
      body=b"{...}"            ...\r\n
    )                          \r\n
                               {"cpu_uptime_seconds": 5321, ...}"

=============================================================================
METRIC JSON
=============================================================================

The telemetry payloads render every float with exactly two decimals
(12.5 → 12.50), which json.dumps cannot do. encode_json() writes the flat
objects the API returns: string keys, and values that are str, int, float,
bool or None. Strings still go through json.dumps for escaping.

=============================================================================
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Use ResponseBuilder for a more convenient way to construct one.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def to_bytes(self, server_name: Optional[str] = None) -> bytes:
        """
        Serialize status line, headers and body.

        Content-Length is always recomputed from the body, so it matches the
        bytes actually written. Date and Server are added if absent.
        """
        response_headers = dict(self.headers)
        response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if server_name and "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"distro_name": "Debian GNU/Linux 12 (bookworm)"})
            .cors()
            .close_connection()
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def body(self, body: Union[str, bytes], content_type: Optional[str] = None) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        if content_type:
            self._headers["Content-Type"] = content_type
        return self

    def text(self, text: str) -> "ResponseBuilder":
        return self.body(text, TEXT_CONTENT_TYPE)

    def json(self, data: Mapping[str, Any]) -> "ResponseBuilder":
        """Body is encode_json(data), Content-Type application/json."""
        return self.body(encode_json(data), JSON_CONTENT_TYPE)

    def cors(self, origin: str = "*") -> "ResponseBuilder":
        """Open the response to cross-origin dashboards."""
        self._headers["Access-Control-Allow-Origin"] = origin
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# ENCODING HELPERS
# =============================================================================

def encode_value(value: Any) -> str:
    """Render one scalar as JSON text, floats with two decimals."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            value = 0.0
        return f"{value:.2f}"
    if isinstance(value, str):
        return json.dumps(value)
    raise TypeError(f"Cannot encode {type(value).__name__} as a metric value")


def encode_json(data: Mapping[str, Any]) -> str:
    """
    Encode a flat mapping as a JSON object, preserving key order.

        >>> encode_json({"cpu_usage_percent": 12.5, "ram_total_kb": 8000})
        '{"cpu_usage_percent": 12.50, "ram_total_kb": 8000}'
    """
    members = (
        f"{json.dumps(str(key))}: {encode_value(value)}"
        for key, value in data.items()
    )
    return "{" + ", ".join(members) + "}"


def format_http_date(dt: datetime) -> str:
    """
    RFC 7231 IMF-fixdate, e.g. "Sun, 06 Nov 1994 08:49:37 GMT".

    Built by hand because strftime's %a/%b follow the process locale.
    """
    weekdays = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{weekdays[dt.weekday()]}, {dt.day:02d} {months[dt.month - 1]} "
        f"{dt.year} {dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok_json(data: Mapping[str, Any]) -> HTTPResponse:
    """200 with a metric JSON body and the open CORS header."""
    return (ResponseBuilder()
        .json(data)
        .cors()
        .close_connection()
        .build())


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 with a plain-text body."""
    return (ResponseBuilder()
        .status(HTTPStatus.NOT_FOUND)
        .text(message)
        .close_connection()
        .build())
