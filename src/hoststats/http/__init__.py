"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Just enough HTTP/1.x for a GET-only telemetry API:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw head bytes → HTTPRequest                        │
    │ response.py      HTTPResponse / ResponseBuilder → bytes,             │
    │                  two-decimal metric JSON                             │
    │ router.py        exact (method, path) → handler, else 404            │
    │ status_codes.py  HTTPStatus with reason phrases                      │
    └─────────────────────────────────────────────────────────────────────┘

Every response closes the connection: no keep-alive, no chunked encoding,
no pipelining.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    encode_json,
    ok_json,
    not_found,
)
from .router import Router, Route
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "encode_json",
    "ok_json",
    "not_found",

    # Routing
    "Router",
    "Route",

    "HTTPStatus",
]
