"""
Controller Declarations

Class and method decorators that describe controllers and endpoints.
Decorators only record declarations on the decorated object; nothing is
registered until ``MetadataRegistry.register(cls)`` replays them, so
importing a controller module has no side effects.

Example:
    ```python
    @controller("/orders")
    @controller_produces("application/json")
    class OrdersController(Controller):

        @GET("/:id")
        @path_param("id", arg="order_id")
        @roles_allowed("CLERK")
        async def get_order(self, order_id):
            return {"id": order_id}
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Type, TypeVar

from ..faults import RegistrationFault
from ..openapi.models import ApiBody, ApiParam, ApiOperation
from .metadata import ControllerInfo, EndpointInfo
from .parameters import (
    ParameterExtractor,
    PathParameterExtractor,
    QueryParameterExtractor,
    HeaderParameterExtractor,
    RawBodyParameterExtractor,
    BodyParameterExtractor,
    RequestParameterExtractor,
    ResponseParameterExtractor,
    PrincipalParameterExtractor,
)
from .registry import (
    CONTROLLER_MARKER,
    CLASS_DECLARATIONS,
    METHOD_DECLARATIONS,
    method_arguments,
)


F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)


@dataclass(frozen=True)
class ControllerMarker:
    """Attached to a class by ``@controller``."""
    path: str = ""
    identity: Optional[str] = None


def _declare(func: F, declaration: Callable[[EndpointInfo], None]) -> F:
    if not callable(func):
        raise RegistrationFault(f"Endpoint declarations apply to functions, got {func!r}")
    if not hasattr(func, METHOD_DECLARATIONS):
        func.__aerie_declarations__ = []
    func.__aerie_declarations__.append(declaration)
    return func


def _declare_class(cls: C, declaration: Callable[[ControllerInfo], None]) -> C:
    if not isinstance(cls, type):
        raise RegistrationFault(f"Controller declarations apply to classes, got {cls!r}")
    if CLASS_DECLARATIONS not in cls.__dict__:
        setattr(cls, CLASS_DECLARATIONS, [])
    cls.__dict__[CLASS_DECLARATIONS].append(declaration)
    return cls


def _check_roles(roles: tuple) -> list:
    if not roles or not all(isinstance(r, str) and r for r in roles):
        raise RegistrationFault(f"roles_allowed expects one or more role names, got {roles!r}")
    return list(roles)


def _api_body(content_type, type, shape, example, description) -> ApiBody:
    return ApiBody(
        content_type=content_type, type=type, shape=shape,
        example=example, description=description,
    )


# ============================================================================
# Controllers
# ============================================================================

def controller(path: str = "", *, identity: Optional[str] = None) -> Callable[[C], C]:
    """
    Mark a class as a controller rooted at ``path``.

    Args:
        path: Root path prepended to every endpoint path
        identity: Registry key, defaults to the class name. Give one
                  explicitly when two controllers share a class name.
    """
    if not isinstance(path, str):
        raise RegistrationFault(f"Controller path must be a string, got {path!r}")

    def decorator(cls: C) -> C:
        if not isinstance(cls, type):
            raise RegistrationFault(f"@controller applies to classes, got {cls!r}")
        setattr(cls, CONTROLLER_MARKER, ControllerMarker(path, identity))
        return cls

    return decorator


def controller_produces(content_type: str) -> Callable[[C], C]:
    def set_produces(info: ControllerInfo) -> None:
        info.produces = content_type
    return lambda cls: _declare_class(cls, set_produces)


def controller_consumes(content_type: str) -> Callable[[C], C]:
    def set_consumes(info: ControllerInfo) -> None:
        info.consumes = content_type
    return lambda cls: _declare_class(cls, set_consumes)


def controller_no_auth(cls: C) -> C:
    """Skip authentication for every endpoint of the controller."""
    def set_no_auth(info: ControllerInfo) -> None:
        info.no_auth = True
    return _declare_class(cls, set_no_auth)


def controller_roles_allowed(*roles: str) -> Callable[[C], C]:
    role_list = _check_roles(roles)

    def set_roles(info: ControllerInfo) -> None:
        info.roles = list(role_list)
    return lambda cls: _declare_class(cls, set_roles)


def controller_error_interceptor(interceptor: type) -> Callable[[C], C]:
    def set_interceptor(info: ControllerInfo) -> None:
        info.error_interceptor = interceptor
    return lambda cls: _declare_class(cls, set_interceptor)


def api(name: str, description: Optional[str] = None) -> Callable[[C], C]:
    """Name (and describe) the OpenAPI tag for a controller."""
    def set_api(info: ControllerInfo) -> None:
        info.api_name = name
        info.api_description = description
    return lambda cls: _declare_class(cls, set_api)


def api_ignore_controller(cls: C) -> C:
    def set_ignored(info: ControllerInfo) -> None:
        info.api_ignore = True
    return _declare_class(cls, set_ignored)


def controller_api_response(
    status: int,
    *,
    content_type: Optional[str] = None,
    type: Optional[str] = None,
    shape: Optional[Type] = None,
    example: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable[[C], C]:
    """Document a response shared by every endpoint of the controller."""
    body = _api_body(content_type, type, shape, example, description)

    def set_response(info: ControllerInfo) -> None:
        info.api_operation.responses[str(status)] = body
    return lambda cls: _declare_class(cls, set_response)


# ============================================================================
# Endpoints
# ============================================================================

class RouteDecorator:
    """
    Base route decorator.

    Records the HTTP method and path segment of an endpoint.
    """

    method: Optional[str] = None

    def __init__(self, path: str = ""):
        if not isinstance(path, str):
            raise RegistrationFault(f"Endpoint path must be a string, got {path!r}")
        self.path = path

    def __call__(self, func: F) -> F:
        method, path = self.method, self.path

        def set_route(info: EndpointInfo) -> None:
            info.http_method = method
            info.path = path
        return _declare(func, set_route)


class GET(RouteDecorator):
    """GET request decorator."""
    method = "GET"


class POST(RouteDecorator):
    """POST request decorator."""
    method = "POST"


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = "PUT"


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = "PATCH"


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = "DELETE"


def produces(content_type: str) -> Callable[[F], F]:
    def set_produces(info: EndpointInfo) -> None:
        info.produces = content_type
    return lambda func: _declare(func, set_produces)


def consumes(content_type: str) -> Callable[[F], F]:
    def set_consumes(info: EndpointInfo) -> None:
        info.consumes = content_type
    return lambda func: _declare(func, set_consumes)


def no_auth(func: F) -> F:
    """Skip authentication (and authorization) for this endpoint."""
    def set_no_auth(info: EndpointInfo) -> None:
        info.no_auth = True
    return _declare(func, set_no_auth)


def roles_allowed(*roles: str) -> Callable[[F], F]:
    role_list = _check_roles(roles)

    def set_roles(info: EndpointInfo) -> None:
        info.roles = list(role_list)
    return lambda func: _declare(func, set_roles)


def error_interceptor(interceptor: type) -> Callable[[F], F]:
    def set_interceptor(info: EndpointInfo) -> None:
        info.error_interceptor = interceptor
    return lambda func: _declare(func, set_interceptor)


def api_operation(name: Optional[str] = None, description: Optional[str] = None) -> Callable[[F], F]:
    def set_operation(info: EndpointInfo) -> None:
        info.api_operation = info.api_operation.merge(ApiOperation(name=name, description=description))
    return lambda func: _declare(func, set_operation)


def api_request(
    *,
    content_type: Optional[str] = None,
    type: Optional[str] = None,
    shape: Optional[Type] = None,
    example: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable[[F], F]:
    body = _api_body(content_type, type, shape, example, description)

    def set_request(info: EndpointInfo) -> None:
        info.api_operation.request = body
    return lambda func: _declare(func, set_request)


def api_response(
    status: int,
    *,
    content_type: Optional[str] = None,
    type: Optional[str] = None,
    shape: Optional[Type] = None,
    example: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable[[F], F]:
    body = _api_body(content_type, type, shape, example, description)

    def set_response(info: EndpointInfo) -> None:
        info.api_operation.responses[str(status)] = body
    return lambda func: _declare(func, set_response)


def api_ignore(func: F) -> F:
    """Leave this endpoint out of the OpenAPI document."""
    def set_ignored(info: EndpointInfo) -> None:
        info.api_ignore = True
    return _declare(func, set_ignored)


# ============================================================================
# Parameters
# ============================================================================

def _bind(arg: str, extractor: ParameterExtractor) -> Callable[[F], F]:
    def bind(info: EndpointInfo) -> None:
        arguments = method_arguments(info.function)
        if arg not in arguments:
            raise RegistrationFault(
                f"Endpoint '{info.identity}' has no parameter named '{arg}'",
                code="PARAMETER_UNKNOWN",
            )
        index = arguments.index(arg)
        current = info.parameter_extractors[index]
        if current is not None and current is not extractor:
            raise RegistrationFault(
                f"Parameter '{arg}' of endpoint '{info.identity}' is already bound to {current!r}",
                code="PARAMETER_REBOUND",
            )
        info.parameter_extractors[index] = extractor

    return lambda func: _declare(func, bind)


def _named(kind: type, name: str, arg: Optional[str], api_param: Optional[ApiParam]) -> Callable[[F], F]:
    if not isinstance(name, str) or not name:
        raise RegistrationFault(f"{kind.kind} parameter name must be a non-empty string, got {name!r}")
    return _bind(arg or name, kind(name, api_param))


def path_param(name: str, *, arg: Optional[str] = None, api_param: Optional[ApiParam] = None):
    """Bind path segment ``:name`` to argument ``arg`` (defaults to ``name``)."""
    return _named(PathParameterExtractor, name, arg, api_param)


def query_param(name: str, *, arg: Optional[str] = None, api_param: Optional[ApiParam] = None):
    return _named(QueryParameterExtractor, name, arg, api_param)


def header(name: str, *, arg: Optional[str] = None, api_param: Optional[ApiParam] = None):
    return _named(HeaderParameterExtractor, name, arg, api_param)


def body(arg: str = "body", *, shape: Optional[Type] = None, forbid_unknown: bool = True):
    """
    Bind the request body to ``arg``.

    With ``shape`` the body is validated into that pydantic model or
    dataclass before the endpoint runs.
    """
    return _bind(arg, BodyParameterExtractor(shape, forbid_unknown=forbid_unknown))


def raw_body(arg: str = "raw"):
    return _bind(arg, RawBodyParameterExtractor())


def request(arg: str = "request"):
    return _bind(arg, RequestParameterExtractor())


def response(arg: str = "response"):
    return _bind(arg, ResponseParameterExtractor())


def principal(arg: str = "principal"):
    return _bind(arg, PrincipalParameterExtractor())


# ============================================================================
# Security schemes
# ============================================================================

def api_security(name: str, scheme: dict) -> Callable[[C], C]:
    """
    Describe the OpenAPI security scheme an auth filter class implements.

    Example:
        ```python
        @api_security("bearer", {"type": "http", "scheme": "bearer"})
        class TokenFilter(AuthFilter):
            ...
        ```
    """
    from ..auth.core import SecuritySchemeInfo

    def decorator(cls: C) -> C:
        cls.__aerie_security__ = SecuritySchemeInfo(name, dict(scheme))
        return cls

    return decorator
