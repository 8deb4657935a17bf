"""Jira Cloud platform REST API bindings."""

from __future__ import annotations

from typing import Any

import httpx

from .client import Client
from .exceptions import ConfigurationError
from .models import Issue, User
from .response import Response

DEFAULT_VERSION = "3"
SUPPORTED_VERSIONS = ("2", "3")


class JiraClient(Client):
    """Client for the Jira Cloud platform REST API.

    Accepts everything :class:`Client` accepts, plus ``version`` ("2" or
    "3", default "3") selecting ``rest/api/<version>``.
    """

    def __init__(self, site: str, http_client=None, *options, version: str = DEFAULT_VERSION, **kwargs: Any):
        if version not in SUPPORTED_VERSIONS:
            raise ConfigurationError(f"jira: unsupported api version {version!r}")
        self.version = version
        super().__init__(site, http_client, *options, **kwargs)

    def _init_services(self) -> None:
        self.myself = MySelfService(self, self.version)
        self.issue = IssueService(self, self.version)


class MySelfService:
    def __init__(self, client: Client, version: str):
        self._client = client
        self._version = version

    async def details(self, expand: list[str] | None = None) -> tuple[User, Response]:
        """Return the user the client is authenticated as.

        GET /rest/api/{version}/myself
        """
        endpoint = f"rest/api/{self._version}/myself"
        if expand:
            endpoint += "?" + str(httpx.QueryParams({"expand": ",".join(expand)}))

        request = self._client.new_request("GET", endpoint)
        response = await self._client.call(request, User)
        return response.data, response


class IssueService:
    def __init__(self, client: Client, version: str):
        self._client = client
        self._version = version

    async def get(
        self,
        issue_key_or_id: str,
        fields: list[str] | None = None,
        expand: list[str] | None = None,
    ) -> tuple[Issue, Response]:
        """Fetch one issue.

        GET /rest/api/{version}/issue/{issueIdOrKey}

        Raises
        ------
        ValueError
            If no issue key or id is given
        """
        if not issue_key_or_id:
            raise ValueError("no issue key or id set")

        params = {}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["expand"] = ",".join(expand)

        endpoint = f"rest/api/{self._version}/issue/{issue_key_or_id}"
        if params:
            endpoint += "?" + str(httpx.QueryParams(params))

        request = self._client.new_request("GET", endpoint)
        response = await self._client.call(request, Issue)
        return response.data, response
