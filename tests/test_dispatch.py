"""
Dispatch pipeline (controller/endpoint.py)

End-to-end behaviour of one request through an ApiApp: authentication,
authorization, content negotiation, parameter extraction, invocation,
error interception and missing-response detection.
"""

from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from aerie.auth import Principal
from aerie.controller import (
    Controller,
    ErrorInterceptor,
    controller,
    controller_produces,
    controller_roles_allowed,
    controller_error_interceptor,
    GET,
    POST,
    PUT,
    DELETE,
    produces,
    no_auth,
    roles_allowed,
    error_interceptor,
    path_param,
    query_param,
    header,
    body,
    raw_body,
    principal,
    response,
)
from aerie.controller.endpoint import Endpoint, produced_response
from aerie.controller.registry import MetadataRegistry
from aerie.engine import RequestEngine
from aerie.faults import UnrecognizedMethodFault
from aerie.response import Response
from aerie.testing import RequestBuilder

from tests.conftest import content_type, json_body


class Item(BaseModel):
    name: str
    price: float


class Teapot(Exception):
    pass


class TeapotInterceptor(ErrorInterceptor):
    async def intercept(self, api_error):
        if isinstance(api_error.error, Teapot):
            api_error.response.status(418)
            return {"teapot": api_error.endpoint_method.__name__}
        return None


class ItemsInterceptor(ErrorInterceptor):
    async def intercept(self, api_error):
        return {"handled_by": "items", "args": api_error.endpoint_method_parameters}


@controller("/items")
@controller_produces("text/plain")
class ItemsController(Controller):

    @GET("/text")
    def text(self):
        return "plain words"

    @POST()
    @body(shape=Item)
    @produces("application/json")
    async def create(self, body):
        self.response.status(201)
        return {"name": body.name, "price": body.price}

    @PUT("/raw")
    @raw_body()
    def echo_raw(self, raw):
        return raw.decode("utf-8").upper()

    @GET("/sent")
    @response("res")
    def sends_itself(self, res):
        res.status(202).send("sent directly")

    @GET("/context")
    @produces("application/json")
    def context(self):
        return {"path": self.request.path, "status": self.response.status_code}

    @GET("/empty")
    def empty(self):
        return ""

    @GET("/nothing")
    def nothing(self):
        return None

    @DELETE("/:id")
    @path_param("id")
    def boom(self, id):
        raise ValueError(f"cannot delete {id}")

    @GET("/teapot")
    @error_interceptor(TeapotInterceptor)
    def teapot(self):
        raise Teapot()

    @GET("/not-a-teapot")
    @error_interceptor(TeapotInterceptor)
    def not_a_teapot(self):
        raise RuntimeError("kettle")

    # Routes match first-registered first, so the parameterised path comes last
    @GET("/:id")
    @path_param("id", arg="item_id")
    @query_param("verbose")
    @header("X-Tenant", arg="tenant")
    @produces("application/json")
    def get_item(self, item_id, verbose, tenant):
        return {"id": item_id, "verbose": verbose, "tenant": tenant}


@controller("/vault")
@controller_roles_allowed("JEDI")
class VaultController(Controller):

    @GET()
    @principal("user")
    @produces("application/json")
    def open(self, user):
        return {"user": user.name}

    @GET("/public")
    @no_auth
    def public(self):
        return "welcome"

    @GET("/smugglers")
    @roles_allowed("SMUGGLER")
    @principal("user")
    def smugglers(self, user):
        return user.name


@controller("/orders")
@controller_error_interceptor(ItemsInterceptor)
class OrdersController(Controller):

    @GET("/:id")
    @path_param("id")
    def get(self, id):
        raise KeyError(id)


# ============================================================================
# Helpers
# ============================================================================

class TestProducedResponse:

    def test_values(self):
        assert produced_response({"a": 1}, Response())
        assert produced_response(0, Response())
        assert produced_response(False, Response())
        assert not produced_response(None, Response())
        assert not produced_response("", Response())
        assert not produced_response(b"", Response())
        assert produced_response(None, Response().send("x"))


class TestRegisterRoute:

    def test_unrecognised_method(self):
        registry = MetadataRegistry()
        info = registry.register(ItemsController)
        endpoint_info = info.endpoints["text"]
        endpoint_info.http_method = "TRACE"

        with pytest.raises(UnrecognizedMethodFault):
            Endpoint(endpoint_info, MagicMock()).register(RequestEngine())


# ============================================================================
# Pipeline
# ============================================================================

class TestInvocation:

    @pytest.mark.asyncio
    async def test_parameters_and_content_type(self, make_app):
        app = make_app(ItemsController)
        event = RequestBuilder.get("/items/42").query("verbose", "yes").header("X-Tenant", "acme").build()

        result = await app.run(event)

        assert result["statusCode"] == 200
        assert content_type(result) == "application/json"
        assert json_body(result) == {"id": "42", "verbose": "yes", "tenant": "acme"}

    @pytest.mark.asyncio
    async def test_controller_content_type(self, make_app):
        result = await make_app(ItemsController).run(RequestBuilder.get("/items/text").build())
        assert content_type(result) == "text/plain"
        assert result["body"] == "plain words"

    @pytest.mark.asyncio
    async def test_typed_body(self, make_app):
        event = RequestBuilder.post("/items").body({"name": "lamp", "price": 9.5}).build()
        result = await make_app(ItemsController).run(event)
        assert result["statusCode"] == 201
        assert json_body(result) == {"name": "lamp", "price": 9.5}

    @pytest.mark.asyncio
    async def test_typed_body_invalid(self, make_app):
        event = RequestBuilder.post("/items").body({"name": "lamp", "price": "cheap", "x": 1}).build()
        result = await make_app(ItemsController).run(event)
        assert result["statusCode"] == 400
        payload = json_body(result)
        assert payload["error"] == "Request body validation failed"
        assert sorted(m.split(":")[0] for m in payload["messages"]) == ["price", "x"]

    @pytest.mark.asyncio
    async def test_typed_body_nested_unknown_field(self, make_app):
        class Shelf(BaseModel):
            item: Item

        @controller("/shelves")
        class ShelvesController(Controller):
            @POST()
            @body(shape=Shelf)
            def stock(self, body):
                return {"stocked": body.item.name}

        app = make_app(ShelvesController)
        rejected = await app.run(
            RequestBuilder.post("/shelves").body({"item": {"name": "lamp", "price": 9.5, "bogus": 2}}).build()
        )
        accepted = await app.run(
            RequestBuilder.post("/shelves").body({"item": {"name": "lamp", "price": 9.5}}).build()
        )

        assert rejected["statusCode"] == 400
        assert json_body(rejected)["messages"] == ["item.bogus: Extra inputs are not permitted"]
        assert json_body(accepted) == {"stocked": "lamp"}

    @pytest.mark.asyncio
    async def test_raw_body(self, make_app):
        event = RequestBuilder.put("/items/raw").binary_body(b"shout").build()
        result = await make_app(ItemsController).run(event)
        assert result["body"] == "SHOUT"

    @pytest.mark.asyncio
    async def test_endpoint_sends_response(self, make_app):
        result = await make_app(ItemsController).run(RequestBuilder.get("/items/sent").build())
        assert result["statusCode"] == 202
        assert result["body"] == "sent directly"

    @pytest.mark.asyncio
    async def test_request_response_on_controller(self, make_app):
        result = await make_app(ItemsController).run(RequestBuilder.get("/items/context").build())
        assert json_body(result) == {"path": "/items/context", "status": 200}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/items/empty", "/items/nothing"])
    async def test_missing_response(self, make_app, path):
        result = await make_app(ItemsController).run(RequestBuilder.get(path).build())
        assert result["statusCode"] == 500
        assert json_body(result)["error"].startswith(
            f"no content was set in response or returned by endpoint method, path: {path}"
        )

    @pytest.mark.asyncio
    async def test_controller_factory(self, make_app):
        instances = []

        def factory(cls):
            instance = cls()
            instances.append(instance)
            return instance

        app = make_app(ItemsController, controller_factory=factory)
        await app.run(RequestBuilder.get("/items/text").build())
        await app.run(RequestBuilder.get("/items/text").build())
        assert len(instances) == 2
        assert all(isinstance(i, ItemsController) for i in instances)

    @pytest.mark.asyncio
    async def test_unhandled_error(self, make_app):
        result = await make_app(ItemsController).run(RequestBuilder.delete("/items/7").build())
        assert result["statusCode"] == 500
        assert json_body(result) == {"error": "cannot delete 7"}


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_credentials(self, make_app):
        result = await make_app(VaultController, auth=True).run(RequestBuilder.get("/vault").build())
        assert result["statusCode"] == 401
        assert result["headers"]["WWW-Authenticate"] == "Basic"

    @pytest.mark.asyncio
    async def test_authorised(self, make_app):
        event = RequestBuilder.get("/vault").basic_auth("luke", "vaderismydad").build()
        result = await make_app(VaultController, auth=True).run(event)
        assert result["statusCode"] == 200
        assert json_body(result) == {"user": "luke"}

    @pytest.mark.asyncio
    async def test_forbidden(self, make_app):
        event = RequestBuilder.get("/vault").basic_auth("han", "falcon").build()
        result = await make_app(VaultController, auth=True).run(event)
        assert result["statusCode"] == 403
        assert json_body(result) == {"error": "Forbidden"}

    @pytest.mark.asyncio
    async def test_endpoint_roles_extend_controller_roles(self, make_app):
        event = RequestBuilder.get("/vault/smugglers").basic_auth("han", "falcon").build()
        result = await make_app(VaultController, auth=True).run(event)
        assert result["statusCode"] == 200
        assert result["body"] == "han"

    @pytest.mark.asyncio
    async def test_no_auth_skips_filters_and_authorizers(self, make_app):
        result = await make_app(VaultController, auth=True).run(RequestBuilder.get("/vault/public").build())
        assert result["statusCode"] == 200
        assert result["body"] == "welcome"

    @pytest.mark.asyncio
    async def test_roles_without_authorizer(self, make_app):
        result = await make_app(VaultController).run(RequestBuilder.get("/vault").build())
        assert result["statusCode"] == 500

    @pytest.mark.asyncio
    async def test_authorizer_denies(self, make_app):
        app = make_app(VaultController)
        authorizer = MagicMock()
        authorizer.authorize.return_value = False
        app.middleware_registry.add_authorizer(authorizer)

        result = await app.run(RequestBuilder.get("/vault").build())

        assert result["statusCode"] == 403

    @pytest.mark.asyncio
    async def test_authenticated_principal_without_roles(self, make_app):
        app = make_app(ItemsController, auth=True)
        event = RequestBuilder.get("/items/text").basic_auth("han", "falcon").build()
        result = await app.run(event)
        assert result["statusCode"] == 200


class TestErrorInterception:

    @pytest.mark.asyncio
    async def test_endpoint_interceptor(self, make_app):
        result = await make_app(ItemsController).run(RequestBuilder.get("/items/teapot").build())
        assert result["statusCode"] == 418
        assert result["body"] == '{"teapot": "teapot"}'

    @pytest.mark.asyncio
    async def test_interceptor_declines(self, make_app):
        result = await make_app(ItemsController).run(RequestBuilder.get("/items/not-a-teapot").build())
        assert result["statusCode"] == 500
        assert json_body(result) == {"error": "kettle"}

    @pytest.mark.asyncio
    async def test_controller_interceptor(self, make_app):
        result = await make_app(OrdersController).run(RequestBuilder.get("/orders/9").build())
        assert result["statusCode"] == 200
        assert json_body(result) == {"handled_by": "items", "args": ["9"]}

    @pytest.mark.asyncio
    async def test_registered_interceptor_by_controller(self, make_app):
        class OrdersOnly(ErrorInterceptor):
            async def intercept(self, api_error):
                return {"controller": type(api_error.endpoint_controller).__name__}

        app = make_app(ItemsController)
        app.middleware_registry.add_error_interceptor(OrdersOnly(controller_target="OrdersController"))
        app.middleware_registry.add_error_interceptor(OrdersOnly(controller_target="ItemsController"))

        result = await app.run(RequestBuilder.delete("/items/3").build())

        assert json_body(result) == {"controller": "ItemsController"}

    @pytest.mark.asyncio
    async def test_registered_interceptor_by_endpoint(self, make_app):
        calls = []

        class Recorder(ErrorInterceptor):
            async def intercept(self, api_error):
                calls.append(api_error)
                api_error.response.status(409).send("conflict")

        app = make_app(ItemsController)
        app.middleware_registry.add_error_interceptor(Recorder(endpoint_target="ItemsController::boom"))

        result = await app.run(RequestBuilder.delete("/items/3").build())

        assert result["statusCode"] == 409
        assert result["body"] == "conflict"
        assert isinstance(calls[0].error, ValueError)
        assert calls[0].endpoint_method_parameters == ["3"]

    @pytest.mark.asyncio
    async def test_auth_errors_not_intercepted(self, make_app):
        app = make_app(VaultController, auth=True)
        interceptor = MagicMock(spec=ErrorInterceptor)
        interceptor.should_intercept.return_value = True
        app.middleware_registry.add_error_interceptor(interceptor)

        result = await app.run(RequestBuilder.get("/vault").build())

        assert result["statusCode"] == 401
        interceptor.intercept.assert_not_called()

    @pytest.mark.asyncio
    async def test_interceptor_factory(self, make_app):
        created = []

        def factory(cls):
            created.append(cls)
            return cls()

        app = make_app(ItemsController, interceptor_factory=factory)
        await app.run(RequestBuilder.get("/items/teapot").build())
        assert created == [TeapotInterceptor]


class TestPrincipalInjection:

    @pytest.mark.asyncio
    async def test_principal_is_none_without_filters(self, make_app):
        @controller("/whoami")
        class WhoAmIController(Controller):
            @GET()
            @principal()
            def whoami(self, principal):
                return "anonymous" if principal is None else principal.name

        result = await make_app(WhoAmIController).run(RequestBuilder.get("/whoami").build())
        assert result["body"] == "anonymous"

    @pytest.mark.asyncio
    async def test_principal_attributes(self, make_app):
        @controller("/whoami")
        class WhoAmIController(Controller):
            @GET()
            @principal()
            @produces("application/json")
            def whoami(self, principal: Principal):
                return principal.attributes

        event = RequestBuilder.get("/whoami").basic_auth("luke", "vaderismydad").build()
        result = await make_app(WhoAmIController, auth=True).run(event)
        assert json_body(result) == {"roles": ["JEDI"]}
