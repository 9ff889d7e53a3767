"""
Aerie Faults - structured exceptions for every failure the framework raises.
"""

from .core import Fault, FaultDomain, Severity, DOMAIN_DEFAULTS
from .domains import (
    ConfigFault,
    MiddlewareRegistrationFault,
    RegistrationFault,
    ControllerIdentityFault,
    MethodLookupFault,
    RegistryFrozenFault,
    RoutingFault,
    UnrecognizedMethodFault,
    RouteNotFoundFault,
    MethodNotAllowedFault,
    MissingResponseFault,
    ValidationFault,
    SecurityFault,
    AuthenticationFault,
    AuthorizationFault,
    AuthorizerMissingFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",
    "ConfigFault",
    "MiddlewareRegistrationFault",
    "RegistrationFault",
    "ControllerIdentityFault",
    "MethodLookupFault",
    "RegistryFrozenFault",
    "RoutingFault",
    "UnrecognizedMethodFault",
    "RouteNotFoundFault",
    "MethodNotAllowedFault",
    "MissingResponseFault",
    "ValidationFault",
    "SecurityFault",
    "AuthenticationFault",
    "AuthorizationFault",
    "AuthorizerMissingFault",
]
