"""
OpenAPI 3 generation from registered controller metadata.

Read-only pass over a MetadataRegistry:
- info/servers from AppConfig
- one security scheme per distinct auth filter scheme
- tags from controller ``api(...)`` declarations
- one path item per endpoint (trailing slash trimmed), skipping ignored
  controllers and endpoints
- parameters from path/query/header extractors
- request/response schemas from primitive type names or example shapes
"""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, TypeAdapter

from ..auth.core import security_scheme_of
from ..config import AppConfig
from ..controller.metadata import ControllerInfo, EndpointInfo
from ..controller.parameters import VIRTUAL, BodyParameterExtractor
from ..controller.registry import MetadataRegistry
from ..log import timed
from ..middleware import MiddlewareRegistry
from ..response import dumps as to_json
from .models import ApiBody, ApiParam, PRIMITIVE_TYPES


logger = logging.getLogger("aerie.openapi")

OPENAPI_VERSION = "3.0.3"
FORMATS = ("json", "yml")
DEFAULT_CONTENT_TYPE = "application/json"

# ─── Primitive type names → JSON Schema ──────────────────────────────────────

_SCHEMA_TYPES: Dict[str, str] = {
    name: ("array" if name.endswith("array") else name)
    for name in PRIMITIVE_TYPES
}
_SCHEMA_TYPES.update({"double": "number", "file": "string", "int": "number"})

_TYPE_EXAMPLES: Dict[str, Any] = {
    "array": [],
    "array-array": [[], [], []],
    "boolean": True,
    "boolean-array": [True, False, True],
    "double": 1.1,
    "double-array": [1.1, 2.2, 3.3],
    "int": 1,
    "int-array": [1, 2, 3],
    "number": 1.1,
    "number-array": [1.1, 2.2, 3.3],
    "object": {},
    "object-array": [{}, {}, {}],
    "string": "a string",
    "string-array": ["1st string", "2nd string", "3rd string"],
}

_FORBIDDEN_HEADER_PARAMS = ("accept", "content-type", "authorization")
_PATH_PARAM_STYLES = ("simple", "label", "matrix")
_QUERY_OBJECT_PARAM_STYLES = ("form", "deepObject")
_SUPPORTED_INSTANCE_TYPES = ("array", "boolean", "number", "object", "string")


def instance_type(value: Any) -> Optional[str]:
    """JSON Schema type of an example value, or None when unsupported."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, type) or callable(value):
        return None
    if hasattr(value, "model_dump") or dataclasses.is_dataclass(value) or hasattr(value, "__dict__"):
        return "object"
    return None


def instance_properties(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return dict(value)
    if hasattr(value, "model_dump"):
        return {name: getattr(value, name) for name in type(value).model_fields}
    return {k: v for k, v in vars(value).items() if not k.startswith("_")}


def trim_path(path: str) -> str:
    if len(path) > 1 and path.endswith("/"):
        return path[:-1]
    return path or "/"


class OpenApiGenerator:
    """
    Builds OpenAPI documents for the endpoints in a registry.

    Example:
        ```python
        generator = OpenApiGenerator(registry, middleware, config)
        spec = generator.build_spec()
        text = generator.export("yml")
        ```
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        middleware: Optional[MiddlewareRegistry] = None,
        config: Optional[AppConfig] = None,
    ):
        self.registry = registry
        self.middleware = middleware or MiddlewareRegistry()
        self.config = config or AppConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @timed
    def build_spec(self) -> Dict[str, Any]:
        logger.debug("Building OpenAPI spec")

        spec: Dict[str, Any] = {
            "openapi": OPENAPI_VERSION,
            "info": {
                "title": self.config.name or "app",
                "version": self.config.version or "version",
            },
        }

        if self.config.base:
            spec["servers"] = [{"url": self.config.base}]

        schemes = self._security_schemes()
        if schemes:
            spec["components"] = {"securitySchemes": schemes}
            spec["security"] = [{name: []} for name in schemes]

        tags: Dict[str, Dict[str, str]] = {}
        paths: Dict[str, Dict[str, Any]] = {}

        for endpoint in self.registry.endpoints.values():
            if endpoint.ignored or not endpoint.http_method:
                continue
            self._add_tag(tags, endpoint.controller)
            self._add_endpoint(paths, endpoint)

        if tags:
            spec["tags"] = list(tags.values())
        spec["paths"] = paths
        return spec

    @timed
    def export(self, fmt: str = "json") -> str:
        """Render the OpenAPI document as ``json`` or ``yml``."""
        spec = self.build_spec()
        if fmt == "json":
            logger.debug("Exporting OpenAPI spec as JSON")
            return json.dumps(spec, indent=2)
        if fmt in ("yml", "yaml"):
            logger.debug("Exporting OpenAPI spec as YAML")
            return yaml.safe_dump(spec, sort_keys=False)
        raise ValueError(f"Unsupported OpenAPI format '{fmt}', expected one of {FORMATS}")

    # ------------------------------------------------------------------
    # Document sections
    # ------------------------------------------------------------------

    def _security_schemes(self) -> Dict[str, Dict[str, Any]]:
        schemes: Dict[str, Dict[str, Any]] = {}
        for auth_filter in self.middleware.auth_filters:
            info = security_scheme_of(auth_filter)
            if info is None:
                logger.debug("Auth filter %r declares no security scheme", auth_filter)
                continue
            if info.name not in schemes:
                schemes[info.name] = dict(info.scheme)
        return schemes

    def _add_tag(self, tags: Dict[str, Dict[str, str]], controller: ControllerInfo) -> None:
        if not controller.api_name or controller.api_name in tags:
            return
        tags[controller.api_name] = {
            "name": controller.api_name,
            "description": controller.api_description or "",
        }

    def _add_endpoint(self, paths: Dict[str, Dict[str, Any]], endpoint: EndpointInfo) -> None:
        path = trim_path(endpoint.full_path)
        method = endpoint.http_method.lower()
        operation_info = endpoint.operation
        response_type = endpoint.response_content_type or DEFAULT_CONTENT_TYPE
        operation: Dict[str, Any] = {"responses": {}}

        logger.debug("Adding OpenAPI path %s %s for %s", method, path, endpoint.identity)

        if method not in ("get", "delete"):
            self._set_request_body(operation, endpoint, operation_info.request)

        operation["responses"]["default"] = {
            "description": "",
            "content": {response_type: {}},
        }

        if not operation_info.is_empty():
            operation["summary"] = operation_info.name or ""
            operation["description"] = operation_info.description or ""
            for status, body in operation_info.responses.items():
                operation["responses"][status] = self._response_object(body, response_type)

        operation["parameters"] = self._parameters(endpoint)
        operation["tags"] = [endpoint.controller.tag]

        if endpoint.authentication_disabled:
            operation["security"] = []

        paths.setdefault(path, {})[method] = operation

    # ------------------------------------------------------------------
    # Bodies
    # ------------------------------------------------------------------

    def _set_request_body(
        self,
        operation: Dict[str, Any],
        endpoint: EndpointInfo,
        request_info: Optional[ApiBody],
    ) -> None:
        if request_info is None:
            request_info = self._inferred_request(endpoint)

        content_type = None
        if request_info is not None:
            content_type = request_info.content_type or endpoint.request_content_type or DEFAULT_CONTENT_TYPE
        content_type = content_type or endpoint.request_content_type
        if not content_type:
            return

        content_type = content_type.lower()
        media: Dict[str, Any] = {}
        operation["requestBody"] = {
            "description": (request_info.description or "") if request_info else "",
            "content": {content_type: media},
        }

        if request_info is None or (not request_info.type and not request_info.shape):
            return

        if request_info.type:
            schema = self._primitive_schema(request_info.type, content_type)
            if schema is not None:
                media["schema"] = schema
        else:
            self._add_shape(media, request_info.shape, content_type)

        self._set_example(media, request_info.example)

    @staticmethod
    def _inferred_request(endpoint: EndpointInfo) -> Optional[ApiBody]:
        for extractor in endpoint.parameter_extractors:
            if isinstance(extractor, BodyParameterExtractor) and extractor.shape is not None:
                return ApiBody(shape=extractor.shape)
        return None

    def _response_object(self, body: ApiBody, default_type: str) -> Dict[str, Any]:
        content_type = (body.content_type or default_type).lower()
        media: Dict[str, Any] = {}

        if body.type:
            schema = self._primitive_schema(body.type, content_type)
            if schema is not None:
                media["schema"] = schema
        elif body.shape:
            self._add_shape(media, body.shape, content_type)

        self._set_example(media, body.example)

        return {
            "description": body.description or "",
            "content": {content_type: media},
        }

    @staticmethod
    def _set_example(media: Dict[str, Any], example: Optional[str]) -> None:
        if example:
            media["example"] = example
        elif isinstance(media.get("schema"), dict) and "example" in media["schema"]:
            media["example"] = media["schema"]["example"]

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def _primitive_schema(self, type_name: str, content_type: Optional[str]) -> Optional[Dict[str, Any]]:
        name = type_name.lower()
        if name not in _SCHEMA_TYPES:
            logger.debug("Skipping unknown body type '%s'", type_name)
            return None

        schema_type = _SCHEMA_TYPES[name]
        if name == "file":
            return {"type": schema_type, "format": "binary"}

        schema: Dict[str, Any] = {"type": schema_type}
        if schema_type == "array":
            item_type = _SCHEMA_TYPES[name.replace("-array", "")]
            schema["items"] = {"type": item_type}
            if item_type == "object":
                schema["items"]["additionalProperties"] = True
            elif item_type == "array":
                schema["items"]["items"] = {"type": "object", "additionalProperties": True}

        if schema_type in ("array", "object") and (content_type or "").lower() != DEFAULT_CONTENT_TYPE:
            return schema

        schema["example"] = to_json(_TYPE_EXAMPLES[name])
        return schema

    def _example_instance(self, shape: type) -> Any:
        """Example value for ``shape``, or None when it cannot be built without arguments."""
        factory = getattr(shape, "example", None)
        if callable(factory):
            return factory()
        try:
            return shape()
        except TypeError as exc:
            logger.debug("Ignoring shape %s, no example() and no default construction: %s", shape.__name__, exc)
            return None

    @staticmethod
    def _declared_schema(shape: type) -> Optional[Dict[str, Any]]:
        """JSON Schema of a pydantic model or dataclass that offers no example()."""
        if callable(getattr(shape, "example", None)):
            return None
        if isinstance(shape, type) and issubclass(shape, BaseModel):
            return shape.model_json_schema()
        if dataclasses.is_dataclass(shape):
            return TypeAdapter(shape).json_schema()
        return None

    def _add_shape(self, media: Dict[str, Any], shape: type, content_type: Optional[str]) -> None:
        declared = self._declared_schema(shape)
        if declared is not None:
            media["schema"] = declared
            return

        instance = self._example_instance(shape)

        kind = "object" if isinstance(instance, shape) else instance_type(instance)
        if kind not in _SUPPORTED_INSTANCE_TYPES:
            logger.debug("Ignoring shape %s, example is of unsupported type", shape.__name__)
            return

        schema: Dict[str, Any] = {"type": kind}
        media["schema"] = schema

        if (content_type or "").lower() == DEFAULT_CONTENT_TYPE:
            example = to_json(instance)
            media["example"] = example
            schema["example"] = example

        if kind == "object":
            self._add_properties(schema, instance)
        elif kind == "array":
            if not instance or not self._add_array(schema, instance):
                logger.debug("Ignoring shape %s, example array is empty or untyped", shape.__name__)
                del media["schema"]
        else:
            schema["example"] = instance
            media["example"] = instance

    def _add_properties(self, schema: Dict[str, Any], instance: Any) -> None:
        for name, value in instance_properties(instance).items():
            kind = instance_type(value)
            if kind is None:
                logger.debug("Ignoring property '%s' of unsupported type", name)
                continue

            property_schema: Dict[str, Any] = {"type": kind}
            if kind == "object":
                property_schema["example"] = to_json(value)
                self._add_properties(property_schema, value)
            elif kind == "array":
                if not value or not self._add_array(property_schema, value):
                    continue
            else:
                property_schema["example"] = value

            schema.setdefault("properties", {})[name] = property_schema

    def _add_array(self, schema: Dict[str, Any], items: Any) -> bool:
        first = items[0]
        kind = instance_type(first)
        if kind is None:
            return False

        schema["example"] = to_json(items)
        schema["items"] = {"type": kind}

        if kind == "object":
            schema["items"]["example"] = to_json(first)
            self._add_properties(schema["items"], first)
        elif kind == "array":
            if first:
                self._add_array(schema["items"], first)
        else:
            schema["items"]["example"] = first

        return True

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def _parameters(self, endpoint: EndpointInfo) -> List[Dict[str, Any]]:
        parameters = []

        for extractor in endpoint.parameter_extractors:
            if extractor is None or extractor.source == VIRTUAL:
                continue
            if extractor.source == "header" and extractor.name.lower() in _FORBIDDEN_HEADER_PARAMS:
                logger.debug("Header parameter '%s' is not allowed in OpenAPI", extractor.name)
                continue

            param: Dict[str, Any] = {
                "in": extractor.source,
                "name": extractor.name,
                "schema": {},
            }

            if extractor.api_param is not None:
                self._add_parameter_info(param, extractor.api_param)

            if extractor.source == "path":
                param["required"] = True

            parameters.append(param)

        return parameters

    def _add_parameter_info(self, param: Dict[str, Any], info: ApiParam) -> None:
        del param["schema"]
        media: Dict[str, Any] = {}

        if info.content_type:
            param["content"] = {info.content_type: media}

        if info.type:
            schema = self._primitive_schema(info.type, info.content_type)
            if schema is not None:
                media["schema"] = schema
            if info.type.endswith("array"):
                self._set_style(param, info)
        elif info.shape:
            self._add_shape(media, info.shape, info.content_type)
            self._set_style(param, info)
        else:
            media["schema"] = self._primitive_schema("string", info.content_type)

        if info.example:
            media["example"] = info.example

        if "content" not in param:
            if "schema" in media:
                param["schema"] = media["schema"]
            if "example" in media:
                param["example"] = media["example"]
        elif "example" in media:
            param["example"] = media["example"]

        if info.required is not None:
            param["required"] = info.required
        if info.description:
            param["description"] = info.description

    def _set_style(self, param: Dict[str, Any], info: ApiParam) -> None:
        if "content" in param:
            return

        if info.explode is not None:
            param["explode"] = info.explode

        style = info.style
        if not style:
            return
        if param["in"] == "header" and style != "simple":
            logger.debug("Header parameters only support the simple style, '%s' ignored", style)
            return
        if param["in"] == "path" and style not in _PATH_PARAM_STYLES:
            logger.debug("'%s' is not a valid path param style", style)
            return
        if param["in"] == "query":
            if not info.shape and style == "deepObject":
                logger.debug("'deepObject' style is only supported for object query parameters")
                return
            if info.shape and style not in _QUERY_OBJECT_PARAM_STYLES:
                logger.debug("'%s' is not a valid style for object query parameters", style)
                return

        param["style"] = style
