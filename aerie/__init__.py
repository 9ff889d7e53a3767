"""
Aerie - decorator-driven controllers for AWS Lambda HTTP APIs.

Declare controllers and endpoints on ordinary classes, dispatch proxy
events through authentication, parameter extraction and error
interception, and generate an OpenAPI document from the same metadata.

Usage:
    from aerie import ApiLambdaApp, Controller, controller, GET, path_param

    @controller("/orders")
    class OrdersController(Controller):

        @GET("/:id")
        @path_param("id", arg="order_id")
        async def get_order(self, order_id):
            return {"id": order_id}

    app = ApiLambdaApp([OrdersController])

    def handler(event, context):
        return app.handle(event, context)
"""

__version__ = "0.1.0"

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    RegistrationFault,
    ControllerIdentityFault,
    MethodLookupFault,
    UnrecognizedMethodFault,
    MissingResponseFault,
    MiddlewareRegistrationFault,
    ValidationFault,
    AuthenticationFault,
    AuthorizationFault,
    AuthorizerMissingFault,
)
from .config import AppConfig, OpenApiConfig, LoggerConfig, ConfigLoader, ConfigError, load_config
from .request import Request, AuthCredentials
from .response import Response
from .engine import RequestEngine
from .auth import (
    Principal,
    AuthFilter,
    BasicAuth,
    BasicAuthFilter,
    Authorizer,
    PrincipalRolesAuthorizer,
)
from .controller import (
    Controller,
    ControllerInfo,
    EndpointInfo,
    MetadataRegistry,
    ApiError,
    ErrorInterceptor,
    controller,
    controller_produces,
    controller_consumes,
    controller_no_auth,
    controller_roles_allowed,
    controller_error_interceptor,
    controller_api_response,
    api,
    api_ignore_controller,
    GET,
    POST,
    PUT,
    PATCH,
    DELETE,
    produces,
    consumes,
    no_auth,
    roles_allowed,
    error_interceptor,
    api_operation,
    api_request,
    api_response,
    api_ignore,
    api_security,
    path_param,
    query_param,
    header,
    body,
    raw_body,
    principal,
)
from .controller.endpoint import Endpoint
from .middleware import MiddlewareRegistry
from .openapi import ApiBody, ApiParam, ApiOperation
from .openapi.generator import OpenApiGenerator
from .server import Server
from .app import ApiApp, ApiLambdaApp
from .loader import ControllerLoader
from .log import configure_logging, timed
from .testing import RequestBuilder

__all__ = [
    "__version__",
    "Fault",
    "FaultDomain",
    "Severity",
    "RegistrationFault",
    "ControllerIdentityFault",
    "MethodLookupFault",
    "UnrecognizedMethodFault",
    "MissingResponseFault",
    "MiddlewareRegistrationFault",
    "ValidationFault",
    "AuthenticationFault",
    "AuthorizationFault",
    "AuthorizerMissingFault",
    "AppConfig",
    "OpenApiConfig",
    "LoggerConfig",
    "ConfigLoader",
    "ConfigError",
    "load_config",
    "Request",
    "AuthCredentials",
    "Response",
    "RequestEngine",
    "Principal",
    "AuthFilter",
    "BasicAuth",
    "BasicAuthFilter",
    "Authorizer",
    "PrincipalRolesAuthorizer",
    "Controller",
    "ControllerInfo",
    "EndpointInfo",
    "MetadataRegistry",
    "ApiError",
    "ErrorInterceptor",
    "controller",
    "controller_produces",
    "controller_consumes",
    "controller_no_auth",
    "controller_roles_allowed",
    "controller_error_interceptor",
    "controller_api_response",
    "api",
    "api_ignore_controller",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "produces",
    "consumes",
    "no_auth",
    "roles_allowed",
    "error_interceptor",
    "api_operation",
    "api_request",
    "api_response",
    "api_ignore",
    "api_security",
    "path_param",
    "query_param",
    "header",
    "body",
    "raw_body",
    "principal",
    "Endpoint",
    "MiddlewareRegistry",
    "ApiBody",
    "ApiParam",
    "ApiOperation",
    "OpenApiGenerator",
    "Server",
    "ApiApp",
    "ApiLambdaApp",
    "ControllerLoader",
    "configure_logging",
    "timed",
    "RequestBuilder",
]
