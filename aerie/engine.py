"""
Request Engine - minimal HTTP routing over Lambda proxy events.

Provides:
- Registration methods for GET/POST/PUT/PATCH/DELETE
- ``:name`` path parameters, trailing-slash tolerant matching
- Optional base path prefix
- Conversion of handler results and exceptions into proxy results
"""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Pattern

from .faults import (
    Fault,
    AuthenticationFault,
    ValidationFault,
    RouteNotFoundFault,
    MethodNotAllowedFault,
)
from .request import Request
from .response import Response, DEFAULT_CONTENT_TYPE, dumps


logger = logging.getLogger("aerie.engine")

Handler = Callable[[Request, Response], Awaitable[Any]]

_PARAM_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


async def safe_call(func: Any, *args, **kwargs) -> Any:
    """Call a function that may be sync or async."""
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


def join_paths(*parts: str) -> str:
    """Join path fragments with single slashes, keeping a trailing slash."""
    joined = "/".join(p.strip("/") for p in parts if p and p.strip("/"))
    trailing = bool(parts) and bool(parts[-1]) and parts[-1].endswith("/") and len(parts[-1]) > 1
    path = "/" + joined
    if trailing and path != "/":
        path += "/"
    return path


def compile_path(path: str) -> Pattern[str]:
    """Compile ``/items/:id`` into an anchored regex (trailing slash optional)."""
    trimmed = path.rstrip("/") or "/"
    pattern = ""
    last = 0
    for match in _PARAM_PATTERN.finditer(trimmed):
        pattern += re.escape(trimmed[last:match.start()])
        pattern += f"(?P<{match.group(1)}>[^/]+)"
        last = match.end()
    pattern += re.escape(trimmed[last:])
    if trimmed == "/":
        return re.compile(r"^/?$")
    return re.compile(f"^{pattern}/?$")


@dataclass
class Route:
    """One registered (method, path) pair."""
    method: str
    path: str
    handler: Handler
    pattern: Pattern[str] = field(init=False, repr=False)

    def __post_init__(self):
        self.pattern = compile_path(self.path)

    def match(self, path: str) -> Optional[Dict[str, str]]:
        m = self.pattern.match(path)
        return m.groupdict() if m else None


class RequestEngine:
    """
    Routes proxy events to registered async handlers.

    Handlers receive ``(request, response)``. A handler may write to the
    response itself or return a value, which is sent as the body.

    Example:
        ```python
        engine = RequestEngine(base="/api")

        async def hello(request, response):
            return {"hello": request.params["name"]}

        engine.get("/hello/:name", hello)
        result = await engine.run(event)
        ```
    """

    def __init__(self, *, base: str = "", default_content_type: str = DEFAULT_CONTENT_TYPE):
        self.base = "/" + base.strip("/") if base and base.strip("/") else ""
        self.default_content_type = default_content_type
        self.routes: List[Route] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def route(self, method: str, path: str, handler: Handler) -> Route:
        full = join_paths(self.base, path) if self.base else "/" + (path or "").lstrip("/")
        route = Route(method.upper(), full, handler)
        self.routes.append(route)
        logger.debug("Registered route %s %s", route.method, route.path)
        return route

    def get(self, path: str, handler: Handler) -> Route:
        return self.route("GET", path, handler)

    def post(self, path: str, handler: Handler) -> Route:
        return self.route("POST", path, handler)

    def put(self, path: str, handler: Handler) -> Route:
        return self.route("PUT", path, handler)

    def patch(self, path: str, handler: Handler) -> Route:
        return self.route("PATCH", path, handler)

    def delete(self, path: str, handler: Handler) -> Route:
        return self.route("DELETE", path, handler)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def resolve(self, method: str, path: str) -> tuple[Route, Dict[str, str]]:
        allowed = []
        for route in self.routes:
            params = route.match(path)
            if params is None:
                continue
            if route.method == method:
                return route, params
            allowed.append(route.method)

        if allowed:
            raise MethodNotAllowedFault(path, method, allowed)
        raise RouteNotFoundFault(path, method)

    async def run(self, event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
        """Process one proxy event and return the proxy result."""
        request = Request.from_event(event, context)
        response = Response(default_content_type=self.default_content_type)

        try:
            route, params = self.resolve(request.method, request.path)
            request.params = params
            result = await safe_call(route.handler, request, response)
            if not response.sent:
                response.send(result)
        except Exception as exc:
            response = self.error_response(request, exc)

        return response.to_event()

    def error_response(self, request: Request, exc: BaseException) -> Response:
        """Map an exception to a JSON error response."""
        response = Response(default_content_type="application/json")
        status = exc.status if isinstance(exc, Fault) else 500
        message = exc.message if isinstance(exc, Fault) else str(exc)
        payload: Dict[str, Any] = {"error": message}

        if isinstance(exc, ValidationFault):
            payload["messages"] = exc.messages
        if isinstance(exc, AuthenticationFault) and exc.scheme:
            response.header("WWW-Authenticate", exc.scheme)

        if status >= 500:
            logger.error(
                "Request %s %s failed: %s", request.method, request.path, message,
                exc_info=exc,
            )
        else:
            logger.info(
                "Request %s %s rejected with %s: %s", request.method, request.path, status, message,
            )

        response.status(status).send(dumps(payload))
        return response
