"""
Shared test fixtures and helpers for the Aerie test suite.
"""

import json
import logging
from typing import Any, Dict, Optional

import pytest

from aerie.app import ApiApp
from aerie.auth import BasicAuth, BasicAuthFilter, Principal, PrincipalRolesAuthorizer
from aerie.config import AppConfig
from aerie.controller.registry import MetadataRegistry
from aerie.middleware import MiddlewareRegistry
from aerie.request import Request
from aerie.response import Response
from aerie.testing import RequestBuilder


# ============================================================================
# Auth Helpers
# ============================================================================

USERS = {
    "luke": ("vaderismydad", ["JEDI"]),
    "han": ("falcon", ["SMUGGLER"]),
}


class StaticUserFilter(BasicAuthFilter):
    """Authenticates the users in ``USERS``; roles go into principal attributes."""

    name = "StaticUserFilter"

    async def authenticate(self, auth: BasicAuth) -> Optional[Principal]:
        entry = USERS.get(auth.username)
        if entry is None or entry[0] != auth.password:
            return None
        return Principal(auth.username, {"roles": list(entry[1])})


# ============================================================================
# Request Helpers
# ============================================================================

def make_request(
    method: str = "GET",
    path: str = "/",
    *,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, str]] = None,
    body: Any = None,
) -> Request:
    """Build a Request the way the engine does, from a proxy event."""
    builder = RequestBuilder.do(method, path)
    for name, value in (headers or {}).items():
        builder.header(name, value)
    for name, value in (query or {}).items():
        builder.query(name, value)
    if body is not None:
        builder.body(body)
    return Request.from_event(builder.build())


def json_body(result: Dict[str, Any]) -> Any:
    """Decode the JSON body of a proxy result."""
    return json.loads(result["body"])


def content_type(result: Dict[str, Any]) -> Optional[str]:
    for name, value in result["headers"].items():
        if name.lower() == "content-type":
            return value
    return None


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def registry():
    return MetadataRegistry()


@pytest.fixture
def middleware():
    return MiddlewareRegistry()


@pytest.fixture
def response():
    return Response()


@pytest.fixture
def make_app():
    """Factory for an ApiApp over a fresh registry and middleware registry."""

    def factory(*controllers, config: Optional[AppConfig] = None, auth: bool = False, **kwargs) -> ApiApp:
        app = ApiApp(list(controllers), config or AppConfig(), registry=MetadataRegistry(), **kwargs)
        if auth:
            app.middleware_registry.add_auth_filter(StaticUserFilter())
            app.middleware_registry.add_authorizer(PrincipalRolesAuthorizer())
        return app

    return factory


@pytest.fixture(autouse=True)
def restore_aerie_logger():
    """Apps reconfigure the ``aerie`` logger; put it back after each test."""
    logger = logging.getLogger("aerie")
    handlers = list(logger.handlers)
    level = logger.level
    disabled = logger.disabled
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.disabled = disabled
