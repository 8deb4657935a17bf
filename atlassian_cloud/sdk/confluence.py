"""Confluence Cloud REST API bindings."""

from __future__ import annotations

from typing import BinaryIO

import httpx

from ._http import build_multipart
from .client import Client
from .models import Content, ContentPage
from .response import Response


class ConfluenceClient(Client):
    """Client for the Confluence Cloud REST API (``wiki/rest/api``)."""

    def _init_services(self) -> None:
        self.content = ContentService(self)


class ContentService:
    def __init__(self, client: Client):
        self._client = client
        self.attachment = AttachmentService(client)

    async def get(
        self,
        content_id: str,
        expand: list[str] | None = None,
        version: int = 0,
    ) -> tuple[Content, Response]:
        """Fetch a piece of content.

        GET /wiki/rest/api/content/{id}
        """
        if not content_id:
            raise ValueError("no content id set")

        params = {}
        if expand:
            params["expand"] = ",".join(expand)
        if version:
            params["version"] = str(version)

        endpoint = f"wiki/rest/api/content/{content_id}"
        if params:
            endpoint += "?" + str(httpx.QueryParams(params))

        request = self._client.new_request("GET", endpoint)
        response = await self._client.call(request, Content)
        return response.data, response

    async def create(self, payload: Content) -> tuple[Content, Response]:
        """Create a page or blog post.

        POST /wiki/rest/api/content
        """
        request = self._client.new_request("POST", "wiki/rest/api/content", payload=payload)
        response = await self._client.call(request, Content)
        return response.data, response


class AttachmentService:
    def __init__(self, client: Client):
        self._client = client

    async def create(
        self,
        content_id: str,
        filename: str,
        file: bytes | BinaryIO,
        status: str = "current",
    ) -> tuple[ContentPage, Response]:
        """Upload a file as an attachment of ``content_id``.

        POST /wiki/rest/api/content/{id}/child/attachment
        """
        if not content_id:
            raise ValueError("no content id set")
        if not filename:
            raise ValueError("no attachment filename set")

        body, content_type = build_multipart({"file": (filename, file)})

        endpoint = f"wiki/rest/api/content/{content_id}/child/attachment"
        endpoint += "?" + str(httpx.QueryParams({"status": status}))

        request = self._client.new_request("POST", endpoint, content_type=content_type, payload=body)
        response = await self._client.call(request, ContentPage)
        return response.data, response
