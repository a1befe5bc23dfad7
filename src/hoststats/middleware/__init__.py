"""
Middleware run around the router for every request.

Only access logging ships today; MiddlewarePipeline accepts any Middleware
subclass for embedding code that needs more.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
