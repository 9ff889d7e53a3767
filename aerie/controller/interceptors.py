"""
Error interceptors.

An interceptor gets a chance to turn an exception raised while extracting
parameters or running an endpoint into a response. At most one
interceptor runs per error, chosen by precedence:

1. the interceptor bound to the endpoint
2. the interceptor bound to the controller
3. the first registered interceptor whose targets match
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from ..request import Request
from ..response import Response


WILDCARD = "*"


@dataclass
class ApiError:
    """Everything an interceptor may need to know about a failed call."""
    error: BaseException
    endpoint_method_parameters: List[Any] = field(default_factory=list)
    endpoint_method: Optional[Callable[..., Any]] = None
    endpoint_controller: Any = None
    request: Optional[Request] = None
    response: Optional[Response] = None


class ErrorInterceptor:
    """
    Base class for error interceptors.

    ``endpoint_target`` matches an endpoint identity
    (``"Controller::method"``), ``controller_target`` a controller
    identity; either may be ``"*"``. An interceptor with neither target
    set matches everything.

    ``intercept`` returns the replacement response body, or ``None`` to let
    the original error through. It may also write to ``api_error.response``.
    """

    endpoint_target: Optional[str] = None
    controller_target: Optional[str] = None

    def __init__(self, *, endpoint_target: Optional[str] = None, controller_target: Optional[str] = None):
        if endpoint_target is not None:
            self.endpoint_target = endpoint_target
        if controller_target is not None:
            self.controller_target = controller_target

    def should_intercept(self, controller: str, endpoint: str) -> bool:
        if self.endpoint_target is None and self.controller_target is None:
            return True
        if WILDCARD in (self.endpoint_target, self.controller_target):
            return True
        return endpoint == self.endpoint_target or controller == self.controller_target

    async def intercept(self, api_error: ApiError) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(endpoint_target={self.endpoint_target!r}, "
            f"controller_target={self.controller_target!r})"
        )
