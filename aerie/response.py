"""
Response - mutable response handle passed through the dispatch pipeline.

Endpoints may either return a value (the engine sends it) or write to the
response themselves; ``sent`` tells the two apart.
"""

from __future__ import annotations

import base64
import json as stdlib_json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from ._datastructures import Headers, media_type


DEFAULT_CONTENT_TYPE = "application/json"


def _json_default_serializer(o):
    """Fallback serializer for types the json module does not handle."""
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, Enum):
        return o.value
    if isinstance(o, (set, frozenset)):
        return list(o)
    if hasattr(o, "model_dump"):
        return o.model_dump()
    if callable(o):
        return None
    if hasattr(o, "__dict__"):
        return {k: v for k, v in vars(o).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    return stdlib_json.dumps(payload, default=_json_default_serializer)


class ResponseAlreadySent(RuntimeError):
    """Raised when a sent response is written to again."""


class Response:
    """
    Outgoing HTTP response.

    Attributes:
        status_code: HTTP status, defaults to 200
        headers: Case-insensitive, multi-value headers
    """

    def __init__(self, *, default_content_type: str = DEFAULT_CONTENT_TYPE):
        self.status_code = 200
        self.headers = Headers()
        self.headers.set("Content-Type", default_content_type)
        self._body: str = ""
        self._is_base64 = False
        self._sent = False

    # ------------------------------------------------------------------
    # Headers / status
    # ------------------------------------------------------------------

    def status(self, code: int) -> "Response":
        self.status_code = int(code)
        return self

    def header(self, name: str, value: str) -> "Response":
        self._check_open(f"set header '{name}'")
        self.headers.set(name, value)
        return self

    def get_header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    def remove_header(self, name: str) -> "Response":
        self._check_open(f"remove header '{name}'")
        self.headers.remove(name)
        return self

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    @property
    def sent(self) -> bool:
        return self._sent

    def send(self, body: Any = None) -> "Response":
        """
        Serialize ``body`` and mark the response as sent.

        Strings are written verbatim, bytes are base64 encoded and
        anything else is JSON encoded.
        """
        self._check_open("send body")
        if body is None:
            self._body = ""
        elif isinstance(body, (bytes, bytearray)):
            self._body = base64.b64encode(bytes(body)).decode("ascii")
            self._is_base64 = True
        elif isinstance(body, str):
            self._body = body
        else:
            self._body = dumps(body)
        self._sent = True
        return self

    def json(self, payload: Any) -> "Response":
        self.headers.set("Content-Type", "application/json")
        return self.send(payload if isinstance(payload, str) else dumps(payload))

    def send_file(self, data: bytes, content_type: Optional[str] = None) -> "Response":
        if content_type:
            self.headers.set("Content-Type", content_type)
        return self.send(bytes(data))

    @property
    def body(self) -> str:
        return self._body

    @property
    def content_type(self) -> str:
        return media_type(self.headers.get("Content-Type"))

    def _check_open(self, action: str) -> None:
        if self._sent:
            raise ResponseAlreadySent(f"Cannot {action}, response already sent")

    # ------------------------------------------------------------------
    # Event
    # ------------------------------------------------------------------

    def to_event(self) -> Dict[str, Any]:
        """Render as a Lambda proxy result."""
        return {
            "statusCode": self.status_code,
            "headers": self.headers.to_single(),
            "multiValueHeaders": self.headers.to_multi(),
            "body": self._body,
            "isBase64Encoded": self._is_base64,
        }

    def __repr__(self) -> str:
        return f"Response(status={self.status_code}, sent={self._sent})"
