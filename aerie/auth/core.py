"""
Authentication and authorization primitives.

Auth filters turn request credentials into a Principal; authorizers decide
whether a Principal holds a role. Both may be sync or async.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..faults import AuthenticationFault


# ============================================================================
# Principal
# ============================================================================

@dataclass(frozen=True)
class Principal:
    """
    Authenticated identity.

    Immutable once created. ``attributes`` carries whatever the auth filter
    knows about the caller (roles, tenant, claims).
    """
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def get_attribute(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def has_role(self, role: str) -> bool:
        return role in self.attributes.get("roles", ())


# ============================================================================
# Security schemes
# ============================================================================

@dataclass(frozen=True)
class SecuritySchemeInfo:
    """OpenAPI security scheme declared for an auth filter class."""
    name: str
    scheme: dict[str, Any]


def security_scheme_of(auth_filter: Any) -> Optional[SecuritySchemeInfo]:
    """Scheme declared on the filter's class (or inherited), if any."""
    return getattr(type(auth_filter), "__aerie_security__", None)


# ============================================================================
# Filters
# ============================================================================

class AuthFilter:
    """
    Authenticates requests.

    ``extract_auth_data`` returns ``None`` when the request carries nothing
    this filter understands. ``authenticate`` returns a Principal, or
    ``None`` / raises AuthenticationFault when the credentials are rejected.
    """

    authentication_scheme_name: str = "Bearer"
    name: str = "AuthFilter"

    async def extract_auth_data(self, request: Any) -> Optional[Any]:
        raise NotImplementedError

    async def authenticate(self, data: Any) -> Optional[Principal]:
        raise NotImplementedError


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str


class BasicAuthFilter(AuthFilter):
    """
    HTTP Basic authentication; subclasses implement ``authenticate``.

    Example:
        ```python
        class StaticUserFilter(BasicAuthFilter):
            async def authenticate(self, auth: BasicAuth):
                if auth.username == "luke" and auth.password == "vaderismydad":
                    return Principal("luke")
        ```
    """

    authentication_scheme_name = "Basic"
    name = "BasicAuthFilter"
    __aerie_security__ = SecuritySchemeInfo("basic", {"type": "http", "scheme": "Basic"})

    async def extract_auth_data(self, request: Any) -> Optional[BasicAuth]:
        credentials = request.auth
        if credentials.type == "none":
            return None
        if credentials.type != "Basic":
            raise AuthenticationFault(
                f"Expected Basic credentials, got {credentials.type}",
                scheme=self.authentication_scheme_name,
            )
        if credentials.username is None:
            raise AuthenticationFault("Malformed Basic credentials", scheme=self.authentication_scheme_name)
        return BasicAuth(credentials.username, credentials.password or "")


# ============================================================================
# Authorizers
# ============================================================================

class Authorizer:
    """Decides whether a Principal holds a role."""

    name: str = "Authorizer"

    async def authorize(self, principal: Principal, role: str) -> bool:
        raise NotImplementedError


class PrincipalRolesAuthorizer(Authorizer):
    """Grants roles listed in ``principal.attributes["roles"]``."""

    name = "PrincipalRolesAuthorizer"

    async def authorize(self, principal: Principal, role: str) -> bool:
        return principal.has_role(role)
