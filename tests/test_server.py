"""
Server and application (server.py, app.py)

Tests route binding, the OpenAPI endpoints, base paths, one-time
initialisation and the synchronous Lambda handler.
"""

import json
from unittest.mock import patch

import pytest
import yaml

from aerie.app import ApiApp, ApiLambdaApp
from aerie.config import AppConfig, OpenApiConfig
from aerie.controller import Controller, controller, GET, POST, no_auth
from aerie.controller.registry import MetadataRegistry
from aerie.faults import RegistryFrozenFault, UnrecognizedMethodFault
from aerie.middleware import MiddlewareRegistry
from aerie.server import Server
from aerie.testing import RequestBuilder

from tests.conftest import StaticUserFilter, content_type, json_body


@controller("/greetings")
class GreetingController(Controller):

    @GET("/:name")
    def greet(self):
        return {"hello": self.request.params["name"]}

    @POST()
    @no_auth
    def create(self):
        return "created"


def open_api_config(**kwargs) -> AppConfig:
    return AppConfig(name="greeter", version="2.0", open_api=OpenApiConfig(enabled=True, **kwargs))


# ============================================================================
# Server
# ============================================================================

class TestServer:

    def test_binds_every_endpoint_once(self, registry, middleware):
        registry.register(GreetingController)
        server = Server(registry, middleware)
        server.discover_and_build_routes()
        server.discover_and_build_routes()

        assert set(server.endpoints) == {"GreetingController::greet", "GreetingController::create"}
        assert [(r.method, r.path) for r in server.engine.routes] == [
            ("GET", "/greetings/:name"),
            ("POST", "/greetings"),
        ]

    def test_base_path(self, registry, middleware):
        registry.register(GreetingController)
        server = Server(registry, middleware, AppConfig(base="/api/v1"))
        server.discover_and_build_routes()
        assert server.engine.routes[0].path == "/api/v1/greetings/:name"

    def test_open_api_routes(self, registry, middleware):
        server = Server(registry, middleware, open_api_config())
        server.discover_and_build_routes()
        assert [r.path for r in server.engine.routes] == [
            "/open-api.json",
            "/open-api.yml",
            "/swagger.json",
            "/swagger.yml",
        ]

    def test_open_api_disabled(self, registry, middleware):
        server = Server(registry, middleware)
        server.discover_and_build_routes()
        assert server.engine.routes == []

    def test_endpoint_without_method(self, registry, middleware):
        @controller("/broken")
        class BrokenController(Controller):
            @no_auth
            def orphan(self):
                return "x"

        registry.register(BrokenController)
        with pytest.raises(UnrecognizedMethodFault):
            Server(registry, middleware).discover_and_build_routes()

    @pytest.mark.asyncio
    async def test_process_event_builds_routes(self, registry, middleware):
        registry.register(GreetingController)
        server = Server(registry, middleware)
        result = await server.process_event(RequestBuilder.get("/greetings/leia").build())
        assert json_body(result) == {"hello": "leia"}


# ============================================================================
# OpenAPI endpoints
# ============================================================================

class TestOpenApiEndpoints:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stem", ["open-api", "swagger"])
    async def test_json(self, make_app, stem):
        app = make_app(GreetingController, config=open_api_config())
        result = await app.run(RequestBuilder.get(f"/{stem}.json").build())

        assert result["statusCode"] == 200
        assert content_type(result) == "application/json"
        spec = json.loads(result["body"])
        assert spec["info"] == {"title": "greeter", "version": "2.0"}
        assert set(spec["paths"]) == {"/greetings/:name", "/greetings"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stem", ["open-api", "swagger"])
    async def test_yml(self, make_app, stem):
        app = make_app(GreetingController, config=open_api_config())
        result = await app.run(RequestBuilder.get(f"/{stem}.yml").build())

        assert result["statusCode"] == 200
        assert content_type(result) == "application/yml"
        assert yaml.safe_load(result["body"])["openapi"] == "3.0.3"

    @pytest.mark.asyncio
    async def test_open_without_authentication(self, make_app):
        app = make_app(GreetingController, config=open_api_config(), auth=True)
        result = await app.run(RequestBuilder.get("/open-api.json").build())
        assert result["statusCode"] == 200

    @pytest.mark.asyncio
    async def test_requires_authentication(self, make_app):
        app = make_app(GreetingController, config=open_api_config(use_authentication=True), auth=True)

        denied = await app.run(RequestBuilder.get("/open-api.json").build())
        allowed = await app.run(
            RequestBuilder.get("/open-api.json").basic_auth("luke", "vaderismydad").build()
        )

        assert denied["statusCode"] == 401
        assert allowed["statusCode"] == 200

    @pytest.mark.asyncio
    async def test_authentication_needs_filters(self, make_app):
        app = make_app(GreetingController, config=open_api_config(use_authentication=True))
        result = await app.run(RequestBuilder.get("/open-api.yml").build())
        assert result["statusCode"] == 200

    @pytest.mark.asyncio
    async def test_not_served_when_disabled(self, make_app):
        result = await make_app(GreetingController).run(RequestBuilder.get("/open-api.json").build())
        assert result["statusCode"] == 404

    @pytest.mark.asyncio
    async def test_base_path(self, make_app):
        config = open_api_config()
        config.base = "/api"
        app = make_app(GreetingController, config=config)

        result = await app.run(RequestBuilder.get("/api/open-api.json").build())

        assert result["statusCode"] == 200
        assert json.loads(result["body"])["servers"] == [{"url": "/api"}]


# ============================================================================
# App
# ============================================================================

class TestApiApp:

    @pytest.mark.asyncio
    async def test_initialises_once(self, make_app):
        app = make_app(GreetingController)
        first = await app.initialise_controllers()
        second = await app.initialise_controllers()

        assert first is second
        assert app.registry.frozen
        assert len(app.registry) == 2

    @pytest.mark.asyncio
    async def test_registry_frozen_after_start(self, make_app):
        app = make_app(GreetingController)
        await app.initialise_controllers()

        @controller("/late")
        class LateController(Controller):
            @GET()
            def late(self):
                return "late"

        with pytest.raises(RegistryFrozenFault):
            app.registry.register(LateController)

    @pytest.mark.asyncio
    async def test_defaults(self):
        app = ApiApp([GreetingController])
        assert isinstance(app.registry, MetadataRegistry)
        assert isinstance(app.middleware_registry, MiddlewareRegistry)
        assert app.config == AppConfig()

        result = await app.run(RequestBuilder.post("/greetings").build())
        assert result["body"] == "created"

    @pytest.mark.asyncio
    async def test_shared_middleware_registry(self):
        middleware = MiddlewareRegistry()
        middleware.add_auth_filter(StaticUserFilter())
        app = ApiApp([GreetingController], middleware_registry=middleware)

        result = await app.run(RequestBuilder.get("/greetings/luke").build())

        assert result["statusCode"] == 401

    def test_configures_logging(self):
        config = AppConfig()
        with patch("aerie.app.configure_logging") as configure:
            ApiApp([], config)
        configure.assert_called_once_with(config.server_logger)


class TestApiLambdaApp:

    def test_handle(self):
        app = ApiLambdaApp([GreetingController], registry=MetadataRegistry())
        result = app.handle(RequestBuilder.get("/greetings/han").build(), context=object())
        assert result["statusCode"] == 200
        assert json_body(result) == {"hello": "han"}

    def test_handle_not_found(self):
        app = ApiLambdaApp([GreetingController], registry=MetadataRegistry())
        result = app.handle(RequestBuilder.get("/nowhere").build())
        assert result["statusCode"] == 404
