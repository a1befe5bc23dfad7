"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler by exact match.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /stats                                                         │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌──────────────────────────────────────────────┐                  │
    │   │  Registered Routes:                           │                  │
    │   │    GET  /stats   → StatsHandler.stats  ← MATCH │                  │
    │   │    GET  /distro  → StatsHandler.distro         │                  │
    │   └──────────────────────────────────────────────┘                  │
    │        │                                                             │
    │        ▼                                                             │
    │   handler(request)                                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The API has two fixed paths and no parameters, so routes are a dict keyed
on (method, path). There is no 405: an unknown path and a known path with
the wrong method both get the same 404 "Not Found".

    /stats      → match
    /stats/     → 404
    /stats?x=1  → match (query string is stripped by the parser)

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .request import HTTPRequest
from .response import HTTPResponse, not_found


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A registered route."""

    path: str
    method: str
    handler: Handler
    name: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


class Router:
    """
    Exact-match request router.

        router = Router()

        @router.get("/stats")
        def stats(request):
            return ok_json({...})

        response = router.handle(request)
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], Route] = {}

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        name: Optional[str] = None,
        **meta: Any
    ) -> Route:
        """
        Register a route. Re-registering the same method and path replaces
        the earlier handler.
        """
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")

        route = Route(
            path=path,
            method=method.upper(),
            handler=handler,
            name=name or getattr(handler, "__name__", None),
            meta=meta,
        )
        self._routes[(route.method, route.path)] = route
        logger.debug(f"Registered route: {route.method} {route.path}")
        return route

    def match(self, method: str, path: str) -> Optional[Route]:
        return self._routes.get((method.upper(), path))

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Dispatch to the matching handler, or answer 404."""
        route = self.match(request.method, request.path)
        if route is None:
            return not_found()
        return route.handler(request)

    def get(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        """Decorator form of add_route(path, handler, "GET")."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, "GET", name, **meta)
            return handler
        return decorator

    @property
    def routes(self) -> List[Route]:
        return list(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)
