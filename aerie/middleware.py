"""
Middleware registry - auth filters, authorizers and error interceptors.

All three are append-only ordered lists populated at startup. Every
chain is first-match:

- auth filters: the first filter that produces a Principal wins
- authorizers: the first authorizer that grants a role wins
- error interceptors: the first interceptor whose targets match wins
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from .auth.core import AuthFilter, Authorizer, Principal
from .controller.interceptors import ErrorInterceptor
from .engine import safe_call
from .faults import (
    AuthenticationFault,
    AuthorizationFault,
    AuthorizerMissingFault,
    MiddlewareRegistrationFault,
)


logger = logging.getLogger("aerie.middleware")


class MiddlewareRegistry:
    """Ordered collections of auth filters, authorizers and error interceptors."""

    def __init__(self):
        self.auth_filters: List[AuthFilter] = []
        self.authorizers: List[Authorizer] = []
        self.error_interceptors: List[ErrorInterceptor] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_auth_filter(self, auth_filter: AuthFilter) -> None:
        if auth_filter is None:
            raise MiddlewareRegistrationFault("auth_filter")
        self.auth_filters.append(auth_filter)
        logger.debug("Added auth filter %s", getattr(auth_filter, "name", type(auth_filter).__name__))

    def add_authorizer(self, authorizer: Authorizer) -> None:
        if authorizer is None:
            raise MiddlewareRegistrationFault("authorizer")
        self.authorizers.append(authorizer)
        logger.debug("Added authorizer %s", getattr(authorizer, "name", type(authorizer).__name__))

    def add_error_interceptor(self, interceptor: ErrorInterceptor) -> None:
        if interceptor is None:
            raise MiddlewareRegistrationFault("error_interceptor")
        self.error_interceptors.append(interceptor)
        logger.debug("Added error interceptor %r", interceptor)

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    @property
    def authentication_enabled(self) -> bool:
        return bool(self.auth_filters)

    async def authenticate(self, request: Any) -> Principal:
        """
        Run the auth filters in order and return the first Principal.

        A filter that finds no credentials or rejects them with
        AuthenticationFault hands over to the next one. Any other exception
        propagates.

        Raises:
            AuthenticationFault: no filter authenticated the request
        """
        for auth_filter in self.auth_filters:
            filter_name = getattr(auth_filter, "name", type(auth_filter).__name__)
            try:
                data = await safe_call(auth_filter.extract_auth_data, request)
                if data is None:
                    logger.debug("Auth filter %s found no credentials", filter_name)
                    continue
                principal = await safe_call(auth_filter.authenticate, data)
            except AuthenticationFault as fault:
                logger.debug("Auth filter %s rejected request: %s", filter_name, fault.message)
                continue

            if principal is not None:
                logger.debug("Auth filter %s authenticated %s", filter_name, principal.name)
                return principal

        scheme = self.auth_filters[0].authentication_scheme_name if self.auth_filters else None
        raise AuthenticationFault("Unauthorized", scheme=scheme)

    async def authorize(self, principal: Optional[Principal], roles: Sequence[str], identity: str) -> None:
        """
        Check that ``principal`` holds at least one of ``roles``.

        Raises:
            AuthorizerMissingFault: roles are required but no authorizer exists
            AuthorizationFault: no authorizer granted any role
        """
        if not roles:
            return
        if not self.authorizers:
            raise AuthorizerMissingFault(identity, list(roles))
        if principal is None:
            raise AuthorizationFault(None, list(roles))

        for role in roles:
            for authorizer in self.authorizers:
                if await safe_call(authorizer.authorize, principal, role):
                    logger.debug(
                        "Authorizer %s granted role %s to %s",
                        getattr(authorizer, "name", type(authorizer).__name__), role, principal.name,
                    )
                    return

        raise AuthorizationFault(principal.name, list(roles))

    def find_error_interceptor(self, controller: str, endpoint: str) -> Optional[ErrorInterceptor]:
        for interceptor in self.error_interceptors:
            if interceptor.should_intercept(controller, endpoint):
                return interceptor
        return None

    def __repr__(self) -> str:
        return (
            f"MiddlewareRegistry(auth_filters={len(self.auth_filters)}, "
            f"authorizers={len(self.authorizers)}, "
            f"error_interceptors={len(self.error_interceptors)})"
        )
