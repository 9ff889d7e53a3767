"""
Application entry points.

ApiApp loads controllers into a registry, builds the server once and
dispatches events through it. ApiLambdaApp adds a synchronous handler
for the AWS Lambda runtime.

Example:
    ```python
    app = ApiLambdaApp(["controllers"], load_config("aerie.yml"))
    app.middleware_registry.add_auth_filter(MyBasicFilter())

    def handler(event, context):
        return app.handle(event, context)
    ```
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from .config import AppConfig
from .controller.endpoint import ControllerFactory, InterceptorFactory, default_factory
from .controller.registry import MetadataRegistry
from .loader import ControllerLoader, Source
from .log import configure_logging, timed
from .middleware import MiddlewareRegistry
from .server import Server


logger = logging.getLogger("aerie.app")


class ApiApp:
    """Holds configuration, registries and the server for one API."""

    def __init__(
        self,
        controllers: Iterable[Source] = (),
        config: Optional[AppConfig] = None,
        *,
        registry: Optional[MetadataRegistry] = None,
        middleware_registry: Optional[MiddlewareRegistry] = None,
        controller_factory: ControllerFactory = default_factory,
        interceptor_factory: InterceptorFactory = default_factory,
    ):
        self.controllers = list(controllers)
        self.config = config or AppConfig()
        self.registry = registry or MetadataRegistry()
        self.middleware_registry = middleware_registry or MiddlewareRegistry()
        self.controller_factory = controller_factory
        self.interceptor_factory = interceptor_factory
        self.server: Optional[Server] = None

        configure_logging(self.config.server_logger)

    @timed
    async def initialise_controllers(self) -> Server:
        """Load, register and bind controllers; later calls are no-ops."""
        if self.server is not None:
            return self.server

        for cls in ControllerLoader().load(self.controllers):
            self.registry.register(cls)
        self.registry.freeze()

        server = Server(
            self.registry,
            self.middleware_registry,
            self.config,
            controller_factory=self.controller_factory,
            interceptor_factory=self.interceptor_factory,
        )
        server.discover_and_build_routes()
        self.server = server
        logger.info("Initialised %s", self.config.name or "app")
        return server

    async def run(self, event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
        server = await self.initialise_controllers()
        return await server.process_event(event, context)


class ApiLambdaApp(ApiApp):
    """ApiApp with a synchronous Lambda handler."""

    def handle(self, event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
        return asyncio.run(self.run(event, context))
