"""
Request Engine (engine.py)

Tests path compilation, route resolution, base prefixes and the mapping
of handler results and exceptions onto proxy results.
"""

import json
import logging

import pytest

from aerie.engine import RequestEngine, compile_path, join_paths, safe_call
from aerie.faults import (
    AuthenticationFault,
    AuthorizationFault,
    MethodNotAllowedFault,
    RouteNotFoundFault,
    ValidationFault,
)
from aerie.testing import RequestBuilder


# ============================================================================
# Helpers
# ============================================================================

class TestSafeCall:

    @pytest.mark.asyncio
    async def test_sync(self):
        assert await safe_call(lambda x: x + 1, 1) == 2

    @pytest.mark.asyncio
    async def test_async(self):
        async def double(x):
            return x * 2

        assert await safe_call(double, 4) == 8

    @pytest.mark.asyncio
    async def test_sync_returning_awaitable(self):
        async def inner():
            return "done"

        assert await safe_call(lambda: inner()) == "done"


class TestPaths:

    def test_join(self):
        assert join_paths("/api", "orders") == "/api/orders"
        assert join_paths("/api/", "/orders/") == "/api/orders/"
        assert join_paths("", "") == "/"

    def test_compile_params(self):
        pattern = compile_path("/items/:id")
        assert pattern.match("/items/42").groupdict() == {"id": "42"}
        assert pattern.match("/items/42/")
        assert not pattern.match("/items/42/extra")
        assert not pattern.match("/items")

    def test_compile_root(self):
        pattern = compile_path("/")
        assert pattern.match("/")
        assert pattern.match("")
        assert not pattern.match("/x")

    def test_trailing_slash_declared(self):
        pattern = compile_path("/orders/")
        assert pattern.match("/orders")
        assert pattern.match("/orders/")

    def test_literal_escaped(self):
        assert not compile_path("/open-api.json").match("/open-apiXjson")


# ============================================================================
# Resolution
# ============================================================================

async def ok(request, response):
    return {"ok": True}


class TestResolve:

    def test_match(self):
        engine = RequestEngine()
        engine.get("/items/:id", ok)
        route, params = engine.resolve("GET", "/items/7")
        assert route.handler is ok
        assert params == {"id": "7"}

    def test_not_found(self):
        engine = RequestEngine()
        with pytest.raises(RouteNotFoundFault):
            engine.resolve("GET", "/missing")

    def test_method_not_allowed(self):
        engine = RequestEngine()
        engine.get("/items", ok)
        engine.put("/items", ok)
        with pytest.raises(MethodNotAllowedFault) as exc_info:
            engine.resolve("DELETE", "/items")
        assert exc_info.value.metadata["allowed"] == ["GET", "PUT"]

    def test_base_prefix(self):
        engine = RequestEngine(base="api/v1/")
        route = engine.post("/orders", ok)
        assert route.path == "/api/v1/orders"
        with pytest.raises(RouteNotFoundFault):
            engine.resolve("POST", "/orders")

    def test_path_without_leading_slash(self):
        engine = RequestEngine()
        assert engine.patch("orders", ok).path == "/orders"
        assert engine.delete("", ok).path == "/"


# ============================================================================
# Run
# ============================================================================

class TestRun:

    @pytest.mark.asyncio
    async def test_return_value_sent(self):
        engine = RequestEngine()
        engine.get("/items/:id", lambda req, res: {"id": req.params["id"]})

        result = await engine.run(RequestBuilder.get("/items/5").build())

        assert result["statusCode"] == 200
        assert json.loads(result["body"]) == {"id": "5"}
        assert result["headers"]["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_handler_sends_itself(self):
        async def handler(request, response):
            response.status(202).header("Content-Type", "text/plain").send("accepted")
            return "ignored"

        engine = RequestEngine()
        engine.post("/jobs", handler)
        result = await engine.run(RequestBuilder.post("/jobs").build())

        assert result["statusCode"] == 202
        assert result["body"] == "accepted"

    @pytest.mark.asyncio
    async def test_not_found(self):
        result = await RequestEngine().run(RequestBuilder.get("/nope").build())
        assert result["statusCode"] == 404
        assert json.loads(result["body"]) == {"error": "Route not found"}

    @pytest.mark.asyncio
    async def test_unexpected_error(self, caplog):
        async def boom(request, response):
            raise RuntimeError("kaboom")

        engine = RequestEngine()
        engine.get("/boom", boom)
        with caplog.at_level(logging.ERROR, logger="aerie.engine"):
            result = await engine.run(RequestBuilder.get("/boom").build())

        assert result["statusCode"] == 500
        assert json.loads(result["body"]) == {"error": "kaboom"}
        assert any("kaboom" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_validation_messages(self):
        async def invalid(request, response):
            raise ValidationFault(["name: Field required"])

        engine = RequestEngine()
        engine.post("/things", invalid)
        result = await engine.run(RequestBuilder.post("/things").build())

        assert result["statusCode"] == 400
        assert json.loads(result["body"]) == {
            "error": "Request body validation failed",
            "messages": ["name: Field required"],
        }

    @pytest.mark.asyncio
    async def test_authentication_challenge(self):
        async def protected(request, response):
            raise AuthenticationFault(scheme="Basic")

        engine = RequestEngine()
        engine.get("/secret", protected)
        result = await engine.run(RequestBuilder.get("/secret").build())

        assert result["statusCode"] == 401
        assert result["headers"]["WWW-Authenticate"] == "Basic"
        assert json.loads(result["body"]) == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_client_errors_logged_at_info(self, caplog):
        async def forbidden(request, response):
            raise AuthorizationFault("han", ["JEDI"])

        engine = RequestEngine()
        engine.get("/jedi", forbidden)
        with caplog.at_level(logging.INFO, logger="aerie.engine"):
            result = await engine.run(RequestBuilder.get("/jedi").build())

        assert result["statusCode"] == 403
        levels = {r.levelno for r in caplog.records if r.name == "aerie.engine"}
        assert logging.ERROR not in levels
