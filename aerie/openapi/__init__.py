"""
OpenAPI declarations and document generation.

``aerie.openapi.generator`` is imported explicitly by callers; it depends
on the controller package, which itself depends on these models.
"""

from .models import ApiBody, ApiParam, ApiOperation, PRIMITIVE_TYPES

__all__ = ["ApiBody", "ApiParam", "ApiOperation", "PRIMITIVE_TYPES"]
