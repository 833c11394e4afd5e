"""
crudkit Backend — Per-Route CORS Middleware
============================================

What:  Starlette's CORSMiddleware configured from settings, plus the CORS
       policy each route declares (RouteDefinition.cors / cors_disable).
How:   Route paths are compiled once. A request (or a preflight, by its
       Access-Control-Request-Method) that matches a route is handled by a
       CORSMiddleware built for that route's policy; cors_disable routes
       get no CORS headers at all. Anything else (health, docs, unknown
       paths) uses the settings-wide policy.

A route policy can only narrow CORS_ORIGINS, never widen it:
    CORS_ORIGINS="*",                 route ["*"]        → any origin
    CORS_ORIGINS="*",                 route [A]          → A
    CORS_ORIGINS="A,B",               route ["*"] or [A] → A,B / A
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import compile_path
from starlette.types import ASGIApp, Receive, Scope, Send


class RouteCORSMiddleware(CORSMiddleware):
    """
    Args:
        routes:  Objects with `method`, `path` and `cors` (None = disabled),
                 i.e. normalized RouteDefinitions
        options: CORSMiddleware keyword arguments (the settings-wide policy)
    """

    def __init__(self, app: ASGIApp, routes: Iterable[Any] = (), **options: Any) -> None:
        super().__init__(app, **options)
        self.options = options
        self.routes: List[Tuple[str, Any, Optional[CORSMiddleware]]] = []
        for route in routes:
            regex, _, _ = compile_path(route.path)
            policy = None if route.cors is None else self._for_policy(route.cors)
            self.routes.append((route.method.upper(), regex, policy))

    def _for_policy(self, cors: Dict[str, Sequence[str]]) -> CORSMiddleware:
        configured = list(self.options.get("allow_origins", ()))
        requested = list(cors.get("origin", ["*"]))
        if "*" in requested:
            origins = configured
        elif "*" in configured:
            origins = requested
        else:
            origins = [origin for origin in requested if origin in configured]

        allow_headers = self.options.get("allow_headers", ())
        if "*" not in allow_headers:
            allow_headers = [*allow_headers, *cors.get("additional_headers", [])]

        options = dict(self.options, allow_origins=origins, allow_headers=allow_headers)
        return CORSMiddleware(self.app, **options)

    def _match(self, scope: Scope, headers: Headers) -> Tuple[bool, Optional[CORSMiddleware]]:
        method = scope["method"]
        if method == "OPTIONS" and "access-control-request-method" in headers:
            method = headers["access-control-request-method"].upper()
        path = scope["path"]
        for route_method, regex, policy in self.routes:
            if route_method == method and regex.match(path):
                return True, policy
        return False, None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        matched, policy = self._match(scope, headers)
        if not matched:
            await super().__call__(scope, receive, send)
        elif policy is None:
            await self.app(scope, receive, send)
        else:
            await policy(scope, receive, send)
