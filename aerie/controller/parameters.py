"""
Parameter extractors.

Each endpoint method argument bound by a declaration gets one extractor.
At dispatch time every slot is evaluated in order with
``extract(request, response, principal)``; the results become the
positional arguments of the method.

``source`` classifies the extractor for OpenAPI: ``path``, ``query`` and
``header`` become operation parameters, everything else is ``virtual``.
"""

from __future__ import annotations

import dataclasses
import json as stdlib_json
import types
from typing import (
    Annotated, Any, Dict, List, Optional, Sequence, Tuple, Type, Union,
    get_args, get_origin, get_type_hints,
)

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from ..faults import RegistrationFault, ValidationFault
from ..openapi.models import ApiParam


VIRTUAL = "virtual"


class ParameterExtractor:
    """Base extractor; subclasses set ``kind`` and ``source``."""

    kind: str = "abstract"
    source: str = VIRTUAL

    def __init__(self, name: Optional[str] = None, api_param: Optional[ApiParam] = None):
        self.name = name
        self.api_param = api_param

    async def extract(self, request: Any, response: Any, principal: Any) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        if self.name:
            return f"{self.__class__.__name__}({self.name!r})"
        return f"{self.__class__.__name__}()"


# ============================================================================
# Request facets
# ============================================================================

class PathParameterExtractor(ParameterExtractor):
    kind = "path"
    source = "path"

    async def extract(self, request, response, principal):
        return request.params.get(self.name)


class QueryParameterExtractor(ParameterExtractor):
    kind = "query"
    source = "query"

    async def extract(self, request, response, principal):
        return request.query.get(self.name)


class HeaderParameterExtractor(ParameterExtractor):
    kind = "header"
    source = "header"

    async def extract(self, request, response, principal):
        return request.headers.get(self.name)


class RawBodyParameterExtractor(ParameterExtractor):
    kind = "raw_body"

    async def extract(self, request, response, principal):
        return request.raw_body


# ============================================================================
# Body
# ============================================================================

def _location(parts: Sequence[Any]) -> str:
    return ".".join(str(part) for part in parts) or "body"


def _format_errors(exc: ValidationError) -> List[str]:
    return [
        f"{_location(error.get('loc', ()))}: {error.get('msg', 'invalid value')}"
        for error in exc.errors()
    ]


def _shape_fields(shape: Any) -> Optional[Dict[str, Any]]:
    """Field name/alias -> annotation for a pydantic model or dataclass."""
    if isinstance(shape, type) and issubclass(shape, BaseModel):
        fields: Dict[str, Any] = {}
        for name, info in shape.model_fields.items():
            fields[name] = info.annotation
            for alias in (info.alias, info.validation_alias):
                if isinstance(alias, str):
                    fields[alias] = info.annotation
        return fields
    if isinstance(shape, type) and dataclasses.is_dataclass(shape):
        hints = get_type_hints(shape)
        return {f.name: hints.get(f.name, f.type) for f in dataclasses.fields(shape)}
    return None


def unknown_fields(annotation: Any, data: Any, location: Tuple[Any, ...] = ()) -> List[str]:
    """
    Messages for keys in ``data`` that ``annotation`` does not declare.

    Walks nested models and dataclasses through Optional/Union, lists,
    tuples, sets and dict values. A union reports only when no member
    accepts the data without unknown keys.
    """
    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        return unknown_fields(args[0], data, location)

    if origin is Union or origin is types.UnionType:
        candidates = [
            unknown_fields(arg, data, location) for arg in args if arg is not type(None)
        ]
        if candidates and all(candidates):
            return candidates[0]
        return []

    if origin in (list, set, frozenset, tuple) and isinstance(data, list):
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            item_types = list(args)
        else:
            item_types = [args[0] if args else Any] * len(data)
        messages = []
        for index, (item_type, item) in enumerate(zip(item_types, data)):
            messages.extend(unknown_fields(item_type, item, location + (index,)))
        return messages

    if origin is dict and isinstance(data, dict):
        if len(args) != 2:
            return []
        messages = []
        for key, value in data.items():
            messages.extend(unknown_fields(args[1], value, location + (key,)))
        return messages

    fields = _shape_fields(annotation)
    if fields is None or not isinstance(data, dict):
        return []

    messages = []
    for key, value in data.items():
        if key not in fields:
            messages.append(f"{_location(location + (key,))}: Extra inputs are not permitted")
        else:
            messages.extend(unknown_fields(fields[key], value, location + (key,)))
    return messages


class BodyParameterExtractor(ParameterExtractor):
    """
    Returns the decoded request body.

    With a ``shape`` (pydantic model or dataclass) the body is coerced into
    that shape and validated; unknown fields at any depth are rejected
    unless ``forbid_unknown`` is False. Failures raise ValidationFault with
    one message per offending field.
    """

    kind = "body"

    def __init__(self, shape: Optional[Type] = None, *, forbid_unknown: bool = True):
        super().__init__()
        self.shape = shape
        self.forbid_unknown = forbid_unknown
        self._model: Optional[Type[BaseModel]] = None
        self._adapter: Optional[TypeAdapter] = None

        if shape is None:
            return
        if isinstance(shape, type) and issubclass(shape, BaseModel):
            self._model = self._strict_model(shape) if forbid_unknown else shape
        elif dataclasses.is_dataclass(shape):
            self._adapter = TypeAdapter(shape)
        else:
            raise RegistrationFault(
                f"Body shape must be a pydantic model or dataclass, got {shape!r}",
                code="BODY_SHAPE_INVALID",
            )

    @staticmethod
    def _strict_model(shape: Type[BaseModel]) -> Type[BaseModel]:
        if shape.model_config.get("extra") == "forbid":
            return shape

        class Strict(shape):
            model_config = ConfigDict(extra="forbid")

        Strict.__name__ = shape.__name__
        Strict.__qualname__ = shape.__qualname__
        return Strict

    async def extract(self, request, response, principal):
        body = request.body
        if self.shape is None:
            return body
        if isinstance(body, str):
            try:
                body = stdlib_json.loads(body)
            except ValueError:
                raise ValidationFault(["body: request body is not valid JSON"])
        if body is None:
            raise ValidationFault(["body: request body is required"])
        return self.validate(body)

    def validate(self, data: Any) -> Any:
        # Nested unknown keys are only caught by walking the shape.
        unknown = unknown_fields(self.shape, data) if self.forbid_unknown else []

        try:
            if self._model is not None:
                value = self._model.model_validate(data)
            else:
                value = self._adapter.validate_python(data)
        except ValidationError as exc:
            messages = _format_errors(exc)
            raise ValidationFault(messages + [m for m in unknown if m not in messages])

        if unknown:
            raise ValidationFault(unknown)
        return value


# ============================================================================
# Ambient objects
# ============================================================================

class RequestParameterExtractor(ParameterExtractor):
    kind = "request"

    async def extract(self, request, response, principal):
        return request


class ResponseParameterExtractor(ParameterExtractor):
    kind = "response"

    async def extract(self, request, response, principal):
        return response


class PrincipalParameterExtractor(ParameterExtractor):
    kind = "principal"

    async def extract(self, request, response, principal):
        return principal


EXTRACTORS: Dict[str, Type[ParameterExtractor]] = {
    cls.kind: cls
    for cls in (
        PathParameterExtractor,
        QueryParameterExtractor,
        HeaderParameterExtractor,
        RawBodyParameterExtractor,
        BodyParameterExtractor,
        RequestParameterExtractor,
        ResponseParameterExtractor,
        PrincipalParameterExtractor,
    )
}
