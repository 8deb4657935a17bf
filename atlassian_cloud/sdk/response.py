"""Response envelope returned by every API call."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx


@dataclass(frozen=True)
class Response:
    """A completed HTTP exchange.

    The body is always buffered, even for error statuses, so callers can
    decode it into their own schema or log it for diagnostics.

    Attributes
    ----------
    raw : httpx.Response
        The underlying (already closed) httpx response
    code : int
        HTTP status code
    endpoint : str
        Effective URL of the request, after redirects
    method : str
        Effective HTTP method of the request
    content : bytes
        Raw response body
    data : Any
        Decoded body when a destination type was requested, else None
    """

    raw: httpx.Response
    code: int
    endpoint: str
    method: str
    content: bytes = b""
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the buffered body as plain JSON."""
        return json.loads(self.content)
