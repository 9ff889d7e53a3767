"""
Endpoint - binds one endpoint descriptor to the request engine and runs
the per-request dispatch pipeline.

Stages, in order:

    Authenticate -> Authorize -> ResolveController -> NegotiateContentType
        -> ExtractParameters -> Invoke -> DetectResponse

An exception raised by ExtractParameters or Invoke goes to a single error
interceptor (endpoint binding, then controller binding, then the first
matching registered interceptor). Authentication, authorization and
missing-response faults go straight to the engine.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from ..engine import RequestEngine, safe_call
from ..faults import MissingResponseFault, UnrecognizedMethodFault
from ..log import timed
from ..middleware import MiddlewareRegistry
from ..request import Request
from ..response import Response
from .interceptors import ApiError, ErrorInterceptor
from .metadata import EndpointInfo


logger = logging.getLogger("aerie.controller.endpoint")

ControllerFactory = Callable[[type], Any]
InterceptorFactory = Callable[[type], ErrorInterceptor]

_ENGINE_METHODS = {
    "GET": "get",
    "POST": "post",
    "PUT": "put",
    "PATCH": "patch",
    "DELETE": "delete",
}


def default_factory(cls: type) -> Any:
    return cls()


def produced_response(result: Any, response: Response) -> bool:
    """True when an endpoint returned a non-empty value or sent the response."""
    if response.sent:
        return True
    if result is None:
        return False
    return not (isinstance(result, (str, bytes)) and len(result) == 0)


class Endpoint:
    """Dispatch pipeline for one endpoint descriptor."""

    def __init__(
        self,
        info: EndpointInfo,
        middleware: MiddlewareRegistry,
        *,
        controller_factory: ControllerFactory = default_factory,
        interceptor_factory: InterceptorFactory = default_factory,
    ):
        self.info = info
        self.middleware = middleware
        self.controller_factory = controller_factory
        self.interceptor_factory = interceptor_factory

    # ------------------------------------------------------------------
    # Route binding
    # ------------------------------------------------------------------

    def register(self, engine: RequestEngine) -> None:
        """
        Bind this endpoint to the engine at its full path.

        Raises:
            UnrecognizedMethodFault: method is not GET/POST/PUT/PATCH/DELETE
        """
        method = (self.info.http_method or "").upper()
        binding = _ENGINE_METHODS.get(method)
        if binding is None:
            raise UnrecognizedMethodFault(str(self.info.http_method), self.info.identity)

        getattr(engine, binding)(self.info.full_path, self.invoke)
        logger.info("Bound %s %s -> %s", method, self.info.full_path, self.info.identity)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    @timed
    async def invoke(self, request: Request, response: Response) -> Any:
        info = self.info

        principal = None
        if not info.authentication_disabled:
            if self.middleware.authentication_enabled:
                principal = await self.middleware.authenticate(request)
            await self.middleware.authorize(principal, info.allowed_roles, info.identity)

        controller = await safe_call(self.controller_factory, info.controller.cls)

        content_type = info.response_content_type
        if content_type:
            response.remove_header("Content-Type")
            response.header("Content-Type", content_type)

        if callable(getattr(controller, "set_request", None)):
            controller.set_request(request)
        if callable(getattr(controller, "set_response", None)):
            controller.set_response(response)

        arguments: List[Any] = []
        try:
            arguments = await self.extract_parameters(request, response, principal)
            result = await info.invoke(controller, arguments)
        except Exception as exc:
            return await self.intercept_error(exc, arguments, controller, request, response)

        if not produced_response(result, response):
            logger.error("Endpoint %s produced no response", info.identity)
            raise MissingResponseFault(info.full_path, info.identity)

        return result

    async def extract_parameters(self, request: Request, response: Response, principal: Any) -> List[Any]:
        arguments = []
        for extractor in self.info.parameter_extractors:
            if extractor is None:
                arguments.append(None)
            else:
                arguments.append(await extractor.extract(request, response, principal))
        return arguments

    # ------------------------------------------------------------------
    # Error interception
    # ------------------------------------------------------------------

    async def resolve_interceptor(self) -> Optional[ErrorInterceptor]:
        binding = self.info.interceptor_binding
        if binding is not None:
            return await safe_call(self.interceptor_factory, binding)
        return self.middleware.find_error_interceptor(
            self.info.controller.identity, self.info.identity,
        )

    async def intercept_error(
        self,
        error: Exception,
        arguments: List[Any],
        controller: Any,
        request: Request,
        response: Response,
    ) -> Any:
        interceptor = await self.resolve_interceptor()
        if interceptor is None:
            raise error

        logger.debug("Error in %s handed to %r", self.info.identity, interceptor)
        result = await safe_call(
            interceptor.intercept,
            ApiError(
                error=error,
                endpoint_method_parameters=arguments,
                endpoint_method=self.info.function,
                endpoint_controller=controller,
                request=request,
                response=response,
            ),
        )

        if produced_response(result, response):
            return result
        raise error
