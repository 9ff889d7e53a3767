"""
Request - wrapper over an API Gateway / ALB proxy event.

Provides:
- Case-insensitive headers and multi-value query parameters
- Path parameters filled in by the engine's router
- Lazily decoded body (JSON for JSON content types, text otherwise)
- Raw body bytes honoring the ``isBase64Encoded`` flag
- Parsed ``Authorization`` credentials (Basic, Bearer, other)
"""

from __future__ import annotations

import base64
import binascii
import json as stdlib_json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ._datastructures import Headers, MultiDict, media_type
from .faults import Fault, FaultDomain, Severity


# ============================================================================
# Request Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for request-related faults."""
    domain = FaultDomain.VALIDATION
    severity = Severity.INFO
    status = 400


class InvalidJSON(RequestFault):
    """Invalid JSON payload (400)."""
    code = "INVALID_JSON"
    message = "Invalid JSON"

    def __init__(self, message: str = None, **metadata):
        super().__init__(
            code=self.code,
            message=message or self.message,
            public=True,
            metadata=metadata,
        )


# ============================================================================
# Credentials
# ============================================================================

@dataclass
class AuthCredentials:
    """
    Credentials parsed from the ``Authorization`` header.

    ``type`` is ``"Basic"``, ``"Bearer"``, the raw scheme for anything
    else, or ``"none"`` when the header is absent or malformed.
    """
    type: str = "none"
    value: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


def parse_authorization(header: Optional[str]) -> AuthCredentials:
    """
    Parse an Authorization header value.

    Examples:
        "Bearer token123" -> AuthCredentials("Bearer", "token123")
        "Basic dXNlcjpwYXNz" -> AuthCredentials("Basic", ..., "user", "pass")
    """
    if not header:
        return AuthCredentials()

    parts = header.strip().split(None, 1)
    if len(parts) != 2:
        return AuthCredentials()

    scheme, value = parts
    if scheme.lower() == "basic":
        try:
            decoded = base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return AuthCredentials(type="Basic", value=value)
        username, _, password = decoded.partition(":")
        return AuthCredentials(type="Basic", value=value, username=username, password=password)
    if scheme.lower() == "bearer":
        return AuthCredentials(type="Bearer", value=value)
    return AuthCredentials(type=scheme, value=value)


# ============================================================================
# Request
# ============================================================================

_UNSET = object()


class Request:
    """
    Incoming HTTP request.

    Built from the proxy event dictionary:
    ``{httpMethod, path, headers, multiValueHeaders, queryStringParameters,
    multiValueQueryStringParameters, body, isBase64Encoded}``.
    """

    def __init__(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Headers] = None,
        query: Optional[MultiDict] = None,
        body: Optional[str] = None,
        is_base64_encoded: bool = False,
        event: Optional[Mapping[str, Any]] = None,
        context: Any = None,
    ):
        self.method = method.upper()
        self.path = path or "/"
        self.headers = headers or Headers()
        self.query = query or MultiDict()
        self.params: Dict[str, str] = {}
        self.is_base64_encoded = is_base64_encoded
        self.event = event or {}
        self.context = context
        self._text = body
        self._body: Any = _UNSET
        self._auth: Optional[AuthCredentials] = None

    @classmethod
    def from_event(cls, event: Mapping[str, Any], context: Any = None) -> "Request":
        """Create a request from a Lambda proxy/ALB event."""
        headers = Headers(event.get("multiValueHeaders") or event.get("headers") or {})

        query = MultiDict(event.get("multiValueQueryStringParameters") or {})
        for key, value in (event.get("queryStringParameters") or {}).items():
            if key not in query and value is not None:
                query.add(key, value)

        return cls(
            event.get("httpMethod", "GET"),
            event.get("path", "/"),
            headers=headers,
            query=query,
            body=event.get("body"),
            is_base64_encoded=bool(event.get("isBase64Encoded", False)),
            event=event,
            context=context,
        )

    @property
    def content_type(self) -> str:
        return media_type(self.headers.get("content-type"))

    @property
    def raw_body(self) -> bytes:
        """Body as bytes, base64-decoded when the event says so."""
        if self._text is None:
            return b""
        if self.is_base64_encoded:
            return base64.b64decode(self._text)
        return self._text.encode("utf-8")

    @property
    def body(self) -> Any:
        """
        Decoded body.

        JSON content types are parsed; everything else is returned as text.
        An empty body decodes to ``None``.
        """
        if self._body is _UNSET:
            raw = self.raw_body
            if not raw:
                self._body = None
            elif self.content_type == "application/json" or self.content_type.endswith("+json"):
                try:
                    self._body = stdlib_json.loads(raw.decode("utf-8"))
                except (ValueError, UnicodeDecodeError) as exc:
                    raise InvalidJSON(f"Invalid JSON: {exc}")
            else:
                self._body = raw.decode("utf-8", errors="replace")
        return self._body

    @property
    def auth(self) -> AuthCredentials:
        if self._auth is None:
            self._auth = parse_authorization(self.headers.get("authorization"))
        return self._auth

    def __repr__(self) -> str:
        return f"Request({self.method} {self.path})"
