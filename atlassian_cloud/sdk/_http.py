"""Internal HTTP helpers for the Atlassian Cloud SDK.

This module defines the one-method capability every injected HTTP client
must provide, and builds the default httpx client a Client owns when the
caller does not inject one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx


@runtime_checkable
class HTTPClient(Protocol):
    """Anything that can execute a built request.

    ``httpx.AsyncClient`` satisfies this protocol, as does the OAuth2
    transport and any pooling, tracing or test double a caller injects.
    """

    async def send(self, request: httpx.Request) -> httpx.Response: ...


@dataclass
class TimeoutConfig:
    """Configuration for HTTP request timeouts."""

    read: float = 30.0
    connect: float = 10.0
    write: float = 30.0
    pool: float = 30.0


def build_default_client(timeout_config: TimeoutConfig | None = None) -> httpx.AsyncClient:
    """Create the pooled httpx client used when none is injected."""
    cfg = timeout_config or TimeoutConfig()
    timeout = httpx.Timeout(
        read=cfg.read,
        connect=cfg.connect,
        write=cfg.write,
        pool=cfg.pool,
    )
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


async def read_body(response: httpx.Response) -> bytes:
    """Buffer the whole body and release the connection."""
    try:
        return await response.aread()
    finally:
        await response.aclose()


def build_multipart(files: Mapping[str, Any], data: Mapping[str, Any] | None = None) -> tuple[bytes, str]:
    """Encode a multipart/form-data body.

    Returns the body bytes and the content type (including the boundary),
    ready to hand to ``Client.new_request`` for attachment uploads.
    """
    # httpx only needs a URL to build the request; it is never sent.
    request = httpx.Request("POST", "http://multipart.invalid/", files=files, data=data)
    return request.read(), request.headers["Content-Type"]
