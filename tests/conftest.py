"""Pytest configuration and fixtures."""

import json

import httpx
import pytest

from atlassian_cloud.sdk.client import Client
from atlassian_cloud.sdk.oauth2 import OAuth2Config, OAuth2Token


SITE = "https://example.atlassian.net"


class InMemoryTokenStore:
    """Token store double that records every call."""

    def __init__(self, token=None, refresh_token=None, fail_on_set=False):
        self.token = token
        self.refresh_token = refresh_token
        self.fail_on_set = fail_on_set
        self.saved_tokens = []
        self.saved_refresh_tokens = []

    async def get_token(self):
        return self.token

    async def set_token(self, token):
        if self.fail_on_set:
            raise OSError("disk full")
        self.saved_tokens.append(token)
        self.token = token

    async def get_refresh_token(self):
        return self.refresh_token

    async def set_refresh_token(self, refresh_token):
        self.saved_refresh_tokens.append(refresh_token)
        self.refresh_token = refresh_token


class Recorder:
    """httpx.MockTransport handler recording the requests it serves."""

    def __init__(self, status_code=200, body=b"", headers=None):
        self.requests = []
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}

    def __call__(self, request):
        self.requests.append(request)
        content = self.body if isinstance(self.body, bytes) else json.dumps(self.body).encode()
        return httpx.Response(self.status_code, content=content, headers=self.headers)

    @property
    def last(self):
        return self.requests[-1]


@pytest.fixture
def site():
    return SITE


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def http_client(recorder):
    """Async httpx client answering from the recorder."""
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


@pytest.fixture
def client(site, http_client):
    """Client with a mocked HTTP transport."""
    return Client(site, http_client)


@pytest.fixture
def oauth_config():
    return OAuth2Config(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="https://example.com/callback",
    )


@pytest.fixture
def expiring_token():
    """Token inside the renewal margin, so the next request refreshes it."""
    return OAuth2Token(
        access_token="old-access-token",
        token_type="Bearer",
        expires_in=60,
        refresh_token="old-refresh-token",
        scope="read:jira-work offline_access",
    )


@pytest.fixture
def fresh_token():
    return OAuth2Token(
        access_token="valid-access-token",
        token_type="Bearer",
        expires_in=3600,
        refresh_token="valid-refresh-token",
    )


@pytest.fixture
def token_store():
    return InMemoryTokenStore()
