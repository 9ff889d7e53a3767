"""
OpenAPI declaration models.

These are the values the ``api_*`` decorators attach to controllers,
endpoints and parameters. The generator turns them into OpenAPI objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


PRIMITIVE_TYPES = (
    "array", "array-array",
    "boolean", "boolean-array",
    "double", "double-array",
    "file",
    "int", "int-array",
    "number", "number-array",
    "object", "object-array",
    "string", "string-array",
)


@dataclass
class ApiBody:
    """
    Describes the body of a request or response.

    Attributes:
        content_type: MIME type, defaults to the endpoint's content type
        type: One of ``PRIMITIVE_TYPES``; takes precedence over ``shape``
        shape: Class whose ``example()`` classmethod (or default
            constructor) yields an instance to derive a schema from
        example: Literal example, used instead of a generated one
        description: Free text
    """
    content_type: Optional[str] = None
    type: Optional[str] = None
    shape: Optional[type] = None
    example: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ApiParam(ApiBody):
    """ApiBody plus the parameter-only OpenAPI fields."""
    required: Optional[bool] = None
    style: Optional[str] = None
    explode: Optional[bool] = None


@dataclass
class ApiOperation:
    """Summary, description, request body and responses of one operation."""
    name: Optional[str] = None
    description: Optional[str] = None
    request: Optional[ApiBody] = None
    responses: Dict[str, ApiBody] = field(default_factory=dict)

    def merge(self, other: Optional["ApiOperation"]) -> "ApiOperation":
        """
        Return a new operation with ``other`` layered on top of this one.

        Scalar values from ``other`` win when set; response maps are
        unioned by status code with ``other`` winning on a shared code.
        """
        if other is None:
            return replace(self, responses=dict(self.responses))
        return ApiOperation(
            name=other.name if other.name is not None else self.name,
            description=other.description if other.description is not None else self.description,
            request=other.request if other.request is not None else self.request,
            responses={**self.responses, **other.responses},
        )

    def is_empty(self) -> bool:
        return (
            self.name is None
            and self.description is None
            and self.request is None
            and not self.responses
        )
