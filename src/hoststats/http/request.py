"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw request head read by a Connection into an HTTPRequest.

The API is GET-only and ignores request bodies, so only two things matter:
the request line and the headers.

    GET /stats?x=1 HTTP/1.1\r\n        ← request line
    Host: pi.local:3040\r\n            ← headers
    User-Agent: curl/8.5.0\r\n
    \r\n                               ← end of head

REQUEST LINE FORMAT (RFC 7230)
──────────────────────────────

    METHOD SP REQUEST-URI SP HTTP-VERSION

    "GET /stats HTTP/1.1"
     ─┬─ ──┬─── ────┬───
    Method  URI   Version

Anything that doesn't fit raises HTTPParseError. The server answers those
with the same 404 as an unknown path.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qs, unquote, urlparse


class HTTPParseError(Exception):
    """Raised when HTTP request parsing fails. The server answers it with 404."""


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request head.

    Attributes:
        method: Uppercase method (GET, POST, ...).
        path: URL-decoded path without the query string.
        version: "HTTP/1.0" or "HTTP/1.1".
        headers: Header name → value, names lowercased.
        query_params: Parsed query string, name → list of values.
        client_address: (ip, port) of the client.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list] = field(default_factory=dict)
    client_address: tuple = ("", 0)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request-head bytes into HTTPRequest objects.

    Stateless; one instance is shared by every worker.
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    # Compiled once at class load time
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse a request head.

        Args:
            data: Bytes read from the socket. A missing blank-line
                  terminator is tolerated (client sent only a request line
                  and closed).
            client_address: Client's (ip, port), carried for logging.

        Raises:
            HTTPParseError: Empty input or malformed request line.
        """
        head = data.split(b"\r\n\r\n", 1)[0]
        text = head.decode("latin-1")
        lines = text.split("\r\n")

        if not lines or not lines[0].strip():
            raise HTTPParseError("Empty request")

        method, path, query_params, version = self._parse_request_line(lines[0].strip())
        headers = self._parse_headers(lines[1:])

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        """
        Split and validate the request line.

        Returns:
            (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:100]!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}")

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Parse "Name: value" lines. Names are lowercased, repeats are joined
        with ", ", malformed lines are skipped.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # Lenient

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
    """Parse with a throwaway RequestParser."""
    return RequestParser().parse(data, client_address)
