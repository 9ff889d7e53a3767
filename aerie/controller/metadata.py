"""
Controller and endpoint descriptors.

A ControllerInfo holds the defaults shared by every endpoint of one
controller class; an EndpointInfo holds the per-method overrides and
resolves the effective value of each setting.

Precedence (endpoint wins over controller):
- response/request content type
- error interceptor binding
- authentication (either flag disables it)
- allowed roles are combined, endpoint roles first
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..engine import safe_call
from ..openapi.models import ApiOperation

if TYPE_CHECKING:
    from .parameters import ParameterExtractor


@dataclass(eq=False)
class ControllerInfo:
    """Descriptor for one controller class, keyed by ``identity``."""
    identity: str
    cls: Optional[type] = None
    path: str = ""
    produces: Optional[str] = None
    consumes: Optional[str] = None
    no_auth: bool = False
    roles: List[str] = field(default_factory=list)
    error_interceptor: Optional[type] = None
    api_name: Optional[str] = None
    api_description: Optional[str] = None
    api_operation: ApiOperation = field(default_factory=ApiOperation)
    api_ignore: bool = False
    endpoints: Dict[str, "EndpointInfo"] = field(default_factory=dict)

    @property
    def tag(self) -> str:
        """OpenAPI tag name: ``api_name`` or the identity minus ``Controller``."""
        if self.api_name:
            return self.api_name
        if self.identity.endswith("Controller") and self.identity != "Controller":
            return self.identity[: -len("Controller")]
        return self.identity

    def __repr__(self) -> str:
        return f"ControllerInfo(identity={self.identity!r}, path={self.path!r})"


@dataclass(eq=False)
class EndpointInfo:
    """Descriptor for one endpoint method, keyed by ``Controller::method``."""
    controller: ControllerInfo
    method_name: str
    function: Callable[..., Any]
    parameter_extractors: List[Optional["ParameterExtractor"]]
    http_method: Optional[str] = None
    path: str = ""
    produces: Optional[str] = None
    consumes: Optional[str] = None
    no_auth: bool = False
    roles: List[str] = field(default_factory=list)
    error_interceptor: Optional[type] = None
    api_operation: ApiOperation = field(default_factory=ApiOperation)
    api_ignore: bool = False

    @property
    def identity(self) -> str:
        return f"{self.controller.identity}::{self.method_name}"

    @property
    def full_path(self) -> str:
        return f"{self.controller.path}{self.path}"

    @property
    def response_content_type(self) -> Optional[str]:
        return self.produces or self.controller.produces

    @property
    def request_content_type(self) -> Optional[str]:
        return self.consumes or self.controller.consumes

    @property
    def authentication_disabled(self) -> bool:
        return self.no_auth or self.controller.no_auth

    @property
    def allowed_roles(self) -> List[str]:
        merged: List[str] = []
        for role in [*self.roles, *self.controller.roles]:
            if role not in merged:
                merged.append(role)
        return merged

    @property
    def interceptor_binding(self) -> Optional[type]:
        return self.error_interceptor or self.controller.error_interceptor

    @property
    def ignored(self) -> bool:
        return self.api_ignore or self.controller.api_ignore

    @property
    def operation(self) -> ApiOperation:
        """Controller-level operation info overlaid with the endpoint's."""
        return self.controller.api_operation.merge(self.api_operation)

    async def invoke(self, instance: Any, args: List[Any]) -> Any:
        """Call the endpoint function bound to ``instance``."""
        return await safe_call(self.function, instance, *args)

    def __repr__(self) -> str:
        return f"EndpointInfo({self.http_method} {self.full_path!r} -> {self.identity})"
