"""
Authentication - filters, authorizers and the Principal they produce.
"""

from .core import (
    Principal,
    SecuritySchemeInfo,
    security_scheme_of,
    AuthFilter,
    BasicAuth,
    BasicAuthFilter,
    Authorizer,
    PrincipalRolesAuthorizer,
)

__all__ = [
    "Principal",
    "SecuritySchemeInfo",
    "security_scheme_of",
    "AuthFilter",
    "BasicAuth",
    "BasicAuthFilter",
    "Authorizer",
    "PrincipalRolesAuthorizer",
]
