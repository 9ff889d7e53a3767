"""
Controllers - declarations, descriptors and the metadata registry.

The dispatch pipeline lives in ``aerie.controller.endpoint``.
"""

from .base import Controller
from .metadata import ControllerInfo, EndpointInfo
from .registry import MetadataRegistry
from .interceptors import ApiError, ErrorInterceptor
from .parameters import (
    ParameterExtractor,
    PathParameterExtractor,
    QueryParameterExtractor,
    HeaderParameterExtractor,
    RawBodyParameterExtractor,
    BodyParameterExtractor,
    RequestParameterExtractor,
    ResponseParameterExtractor,
    PrincipalParameterExtractor,
)
from .decorators import (
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
    request,
    response,
    principal,
)

__all__ = [
    "Controller",
    "ControllerInfo",
    "EndpointInfo",
    "MetadataRegistry",
    "ApiError",
    "ErrorInterceptor",
    "ParameterExtractor",
    "PathParameterExtractor",
    "QueryParameterExtractor",
    "HeaderParameterExtractor",
    "RawBodyParameterExtractor",
    "BodyParameterExtractor",
    "RequestParameterExtractor",
    "ResponseParameterExtractor",
    "PrincipalParameterExtractor",
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
    "request",
    "response",
    "principal",
]
