"""
Aerie Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults (configuration and middleware registration)
- REGISTRY faults (controller/endpoint declarations)
- ROUTING faults (binding and matching)
- FLOW faults (endpoint execution)
- SECURITY faults (authentication and authorization)
- VALIDATION faults (typed request bodies)
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            metadata=metadata,
        )


class MiddlewareRegistrationFault(ConfigFault):
    """A null filter, authorizer or interceptor was handed to the middleware registry."""

    def __init__(self, kind: str):
        super().__init__(
            code="MIDDLEWARE_NULL_ENTRY",
            message=f"Null or undefined {kind} passed to MiddlewareRegistry::add_{kind}",
            metadata={"kind": kind},
        )


# ============================================================================
# REGISTRY Faults
# ============================================================================

class RegistrationFault(Fault):
    """Base class for declaration faults raised while controllers load."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "REGISTRATION_INVALID",
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.REGISTRY,
            severity=Severity.FATAL,
            metadata=metadata,
        )


class ControllerIdentityFault(RegistrationFault):
    """Two different classes claimed the same controller identity."""

    def __init__(self, identity: str, existing: type, incoming: type):
        super().__init__(
            f"Controller identity '{identity}' is already bound to "
            f"{existing.__module__}.{existing.__qualname__}, cannot rebind to "
            f"{incoming.__module__}.{incoming.__qualname__}",
            code="CONTROLLER_IDENTITY_COLLISION",
            metadata={"identity": identity},
        )


class MethodLookupFault(RegistrationFault):
    """Endpoint method could not be resolved on its owning controller type."""

    def __init__(self, identity: str, method_name: str):
        super().__init__(
            f"Unable to read method parameters for '{identity}::{method_name}', "
            f"this can happen when two controllers share the same identity",
            code="METHOD_LOOKUP_FAILED",
            metadata={"identity": identity, "method": method_name},
        )


class RegistryFrozenFault(RegistrationFault):
    """Declaration attempted after the registry was frozen."""

    def __init__(self, target: str):
        super().__init__(
            f"Metadata registry is frozen, cannot declare '{target}'",
            code="REGISTRY_FROZEN",
            metadata={"target": target},
        )


# ============================================================================
# ROUTING Faults
# ============================================================================

class RoutingFault(Fault):
    """Base class for routing faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status: int = 500,
        public: bool = False,
        severity: Severity = Severity.ERROR,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.ROUTING,
            severity=severity,
            status=status,
            public=public,
            metadata=metadata,
        )


class UnrecognizedMethodFault(RoutingFault):
    """Route binder refused an unsupported HTTP method token."""

    def __init__(self, method: str, identity: str):
        super().__init__(
            code="UNRECOGNISED_HTTP_METHOD",
            message=f"Unrecognised HTTP method: {method} (endpoint: {identity})",
            severity=Severity.FATAL,
            metadata={"method": method, "endpoint": identity},
        )


class RouteNotFoundFault(RoutingFault):
    """No route matches the request path."""

    def __init__(self, path: str, method: str):
        super().__init__(
            code="ROUTE_NOT_FOUND",
            message="Route not found",
            status=404,
            public=True,
            severity=Severity.INFO,
            metadata={"path": path, "method": method},
        )


class MethodNotAllowedFault(RoutingFault):
    """Path matches but not for this HTTP method."""

    def __init__(self, path: str, method: str, allowed: list[str]):
        super().__init__(
            code="METHOD_NOT_ALLOWED",
            message="Method not allowed",
            status=405,
            public=True,
            severity=Severity.INFO,
            metadata={"path": path, "method": method, "allowed": allowed},
        )


# ============================================================================
# FLOW Faults
# ============================================================================

class MissingResponseFault(Fault):
    """Endpoint neither returned a value nor sent a response."""

    def __init__(self, full_path: str, identity: str):
        super().__init__(
            code="MISSING_RESPONSE",
            message=(
                "no content was set in response or returned by endpoint method, "
                f"path: {full_path} | endpoint: {identity}"
            ),
            domain=FaultDomain.FLOW,
            metadata={"path": full_path, "endpoint": identity},
        )


# ============================================================================
# VALIDATION Faults
# ============================================================================

class ValidationFault(Fault):
    """Typed request body failed validation."""

    status = 400

    def __init__(self, messages: list[str], *, message: str = "Request body validation failed"):
        super().__init__(
            code="VALIDATION_FAILED",
            message=message,
            domain=FaultDomain.VALIDATION,
            public=True,
            metadata={"messages": list(messages)},
        )
        self.messages = list(messages)


# ============================================================================
# SECURITY Faults
# ============================================================================

class SecurityFault(Fault):
    """Base class for security faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status: int,
        public: bool = True,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.SECURITY,
            status=status,
            public=public,
            metadata=metadata,
        )


class AuthenticationFault(SecurityFault):
    """Request carried no usable credentials or they were rejected."""

    def __init__(self, reason: str = "Unauthorized", *, scheme: Optional[str] = None):
        super().__init__(
            code="AUTHENTICATION_FAILED",
            message=reason,
            status=401,
            metadata={"scheme": scheme} if scheme else None,
        )
        self.scheme = scheme


class AuthorizationFault(SecurityFault):
    """Principal holds none of the roles the endpoint requires."""

    def __init__(self, principal: Optional[str], roles: list[str]):
        super().__init__(
            code="AUTHORIZATION_FAILED",
            message="Forbidden",
            status=403,
            metadata={"principal": principal, "roles": list(roles)},
        )


class AuthorizerMissingFault(SecurityFault):
    """Endpoint declares roles but no authorizer has been registered."""

    def __init__(self, identity: str, roles: list[str]):
        super().__init__(
            code="AUTHORIZER_MISSING",
            message=f"Endpoint '{identity}' requires roles {roles} but no authorizer is registered",
            status=500,
            public=False,
            metadata={"endpoint": identity, "roles": list(roles)},
        )
