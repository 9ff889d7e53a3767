"""
Server - binds registered endpoints to a RequestEngine and serves the
generated OpenAPI document.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .config import AppConfig
from .controller.endpoint import Endpoint, default_factory, ControllerFactory, InterceptorFactory
from .controller.registry import MetadataRegistry
from .engine import RequestEngine
from .middleware import MiddlewareRegistry
from .openapi.generator import OpenApiGenerator, FORMATS
from .request import Request
from .response import Response


logger = logging.getLogger("aerie.server")

SPEC_PATHS = {
    "open-api": FORMATS,
    "swagger": FORMATS,
}


class Server:
    """
    Route binder and OpenAPI endpoint host.

    Example:
        ```python
        server = Server(registry, middleware, config)
        server.discover_and_build_routes()
        result = await server.process_event(event)
        ```
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        middleware: MiddlewareRegistry,
        config: Optional[AppConfig] = None,
        *,
        controller_factory: ControllerFactory = default_factory,
        interceptor_factory: InterceptorFactory = default_factory,
    ):
        self.registry = registry
        self.middleware = middleware
        self.config = config or AppConfig()
        self.controller_factory = controller_factory
        self.interceptor_factory = interceptor_factory
        self.engine = RequestEngine(base=self.config.base or "")
        self.generator = OpenApiGenerator(registry, middleware, self.config)
        self.endpoints: Dict[str, Endpoint] = {}
        self._built = False

    def discover_and_build_routes(self) -> None:
        """Bind every registered endpoint (once)."""
        if self._built:
            return

        if self.config.open_api.enabled:
            self._register_open_api_endpoints()

        for identity, info in self.registry.endpoints.items():
            endpoint = Endpoint(
                info,
                self.middleware,
                controller_factory=self.controller_factory,
                interceptor_factory=self.interceptor_factory,
            )
            endpoint.register(self.engine)
            self.endpoints[identity] = endpoint

        self._built = True
        logger.info("Bound %d endpoint(s)", len(self.endpoints))

    def _register_open_api_endpoints(self) -> None:
        use_authentication = self.config.open_api.use_authentication

        for stem, formats in SPEC_PATHS.items():
            for fmt in formats:
                path = f"/{stem}.{fmt}"
                self.engine.get(path, self._spec_handler(fmt, use_authentication))
                logger.debug("Serving OpenAPI %s at %s", fmt, path)

    def _spec_handler(self, fmt: str, use_authentication: bool):
        async def serve_spec(request: Request, response: Response) -> None:
            if use_authentication and self.middleware.authentication_enabled:
                await self.middleware.authenticate(request)
            response.header("Content-Type", f"application/{fmt}")
            response.send(self.generator.export(fmt))

        return serve_spec

    async def process_event(self, event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
        if not self._built:
            self.discover_and_build_routes()
        return await self.engine.run(event, context)
