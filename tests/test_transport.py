"""Test request execution and the response envelope."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import BaseModel

from atlassian_cloud.sdk.client import Client
from atlassian_cloud.sdk.exceptions import (
    BadRequestError,
    ConnectionError,
    DecodeError,
    HTTPError,
    InternalError,
    InvalidStatusCodeError,
    NotFoundError,
    UnauthorizedError,
)


class Item(BaseModel):
    id: str


class TestCall:
    """Test Client.call."""

    @pytest.mark.asyncio
    async def test_success_decodes_into_model(self, client, recorder):
        """Test a 2xx body is decoded into the destination."""
        recorder.body = b'{"id":"1"}'
        request = client.new_request("GET", "rest/api/content/1")

        response = await client.call(request, Item)

        assert response.code == 200
        assert response.data == Item(id="1")
        assert response.data.id == "1"
        assert response.content == b'{"id":"1"}'
        assert response.method == "GET"
        assert response.endpoint == "https://example.atlassian.net/rest/api/content/1"

    @pytest.mark.asyncio
    async def test_success_without_destination(self, client, recorder):
        """Test the body is buffered when no destination is given."""
        recorder.body = b'{"id":"1"}'
        response = await client.call(client.new_request("DELETE", "rest/api/content/1"))

        assert response.ok
        assert response.data is None
        assert response.json() == {"id": "1"}

    @pytest.mark.asyncio
    async def test_no_content_with_destination(self, client, recorder):
        """Test an empty 2xx body leaves the destination unset."""
        recorder.status_code = 204
        response = await client.call(client.new_request("PUT", "rest/api/content/1"), Item)

        assert response.code == 204
        assert response.data is None

    @pytest.mark.asyncio
    async def test_generic_destination(self, client, recorder):
        """Test generic destination types are decoded."""
        recorder.body = b'[{"id":"1"},{"id":"2"}]'
        response = await client.call(client.new_request("GET", "items"), list[Item])

        assert [item.id for item in response.data] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_not_found_keeps_envelope(self, client, recorder):
        """Test a 404 error carries the response envelope."""
        recorder.status_code = 404
        destination = Item(id="untouched")

        with pytest.raises(NotFoundError) as exc_info:
            await client.call(client.new_request("GET", "rest/api/content/404"), Item)

        envelope = exc_info.value.response
        assert envelope.code == 404
        assert envelope.content == b""
        assert envelope.data is None
        assert destination.id == "untouched"

    @pytest.mark.asyncio
    async def test_error_body_is_buffered(self, client, recorder):
        """Test an error body is available on the exception."""
        recorder.status_code = 400
        recorder.body = {"errorMessages": ["Field 'summary' is required"]}

        with pytest.raises(BadRequestError) as exc_info:
            await client.call(client.new_request("POST", "rest/api/3/issue", payload={}), Item)

        assert exc_info.value.status_code == 400
        assert "summary" in exc_info.value.body
        assert exc_info.value.response.json() == {"errorMessages": ["Field 'summary' is required"]}

    @pytest.mark.parametrize(
        "status_code,error_cls",
        [
            (400, BadRequestError),
            (401, UnauthorizedError),
            (403, InvalidStatusCodeError),
            (404, NotFoundError),
            (409, InvalidStatusCodeError),
            (429, InvalidStatusCodeError),
            (500, InternalError),
            (503, InvalidStatusCodeError),
            (302, InvalidStatusCodeError),
        ],
    )
    @pytest.mark.asyncio
    async def test_status_classification(self, client, recorder, status_code, error_cls):
        """Test each status maps to its error class."""
        recorder.status_code = status_code

        with pytest.raises(error_cls) as exc_info:
            await client.call(client.new_request("GET", "anything"))

        assert type(exc_info.value) is error_cls
        assert isinstance(exc_info.value, HTTPError)
        assert exc_info.value.response.code == status_code

    @pytest.mark.parametrize("status_code", [200, 201, 202, 204, 299])
    @pytest.mark.asyncio
    async def test_success_range(self, client, recorder, status_code):
        """Test every 2xx status succeeds."""
        recorder.status_code = status_code
        response = await client.call(client.new_request("GET", "anything"))
        assert response.code == status_code

    @pytest.mark.asyncio
    async def test_malformed_json_raises_decode_error(self, client, recorder):
        """Test an undecodable body raises DecodeError."""
        recorder.body = b"<html>not json</html>"

        with pytest.raises(DecodeError) as exc_info:
            await client.call(client.new_request("GET", "rest/api/content/1"), Item)

        assert exc_info.value.response.code == 200
        assert exc_info.value.response.content == b"<html>not json</html>"

    @pytest.mark.asyncio
    async def test_network_error_has_no_envelope(self, site):
        """Test a network failure raises ConnectionError without an envelope."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = Client(site, httpx.AsyncClient(transport=httpx.MockTransport(refuse)))

        with pytest.raises(ConnectionError) as exc_info:
            await client.call(client.new_request("GET", "rest/api/3/myself"))

        assert isinstance(exc_info.value.original_error, httpx.ConnectError)
        assert exc_info.value.url == "https://example.atlassian.net/rest/api/3/myself"
        assert not hasattr(exc_info.value, "response")

    @pytest.mark.asyncio
    async def test_timeout_is_connection_error(self, site):
        """Test a timeout raises ConnectionError."""
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = Client(site, httpx.AsyncClient(transport=httpx.MockTransport(slow)))

        with pytest.raises(ConnectionError):
            await client.call(client.new_request("GET", "rest/api/3/myself"))

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, site):
        """Test cancelling the caller cancels the request."""
        started = asyncio.Event()

        async def hang(request):
            started.set()
            await asyncio.sleep(60)

        client = Client(site, httpx.AsyncClient(transport=httpx.MockTransport(hang)))
        task = asyncio.create_task(client.call(client.new_request("GET", "rest/api/3/myself")))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_effective_url_after_redirect(self, site):
        """Test the envelope records the URL after redirects."""
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.atlassian.net/new"})
            return httpx.Response(200, json={"id": "moved"})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        client = Client(site, http)

        response = await client.call(client.new_request("GET", "old"), Item)

        assert response.endpoint == "https://example.atlassian.net/new"
        assert response.data.id == "moved"

    @pytest.mark.asyncio
    async def test_response_is_closed(self, site):
        """Test the response is closed after a success."""
        raw = httpx.Response(200, content=b'{"id":"1"}')
        raw.aclose = AsyncMock()
        http = AsyncMock()
        http.send = AsyncMock(return_value=raw)
        client = Client(site, http)

        response = await client.call(client.new_request("GET", "x"), Item)

        raw.aclose.assert_awaited_once()
        assert response.endpoint == "https://example.atlassian.net/x"
        assert response.method == "GET"

    @pytest.mark.asyncio
    async def test_response_closed_on_error_status(self, site):
        """Test the response is closed after an error status."""
        raw = httpx.Response(500, content=b"oops")
        raw.aclose = AsyncMock()
        http = AsyncMock()
        http.send = AsyncMock(return_value=raw)
        client = Client(site, http)

        with pytest.raises(InternalError):
            await client.call(client.new_request("GET", "x"))

        raw.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_observer_sees_every_envelope(self, site, recorder, http_client):
        """Test the observer sees successes and failures."""
        seen = []
        client = Client(site, http_client, observer=seen.append)

        await client.call(client.new_request("GET", "a"))
        recorder.status_code = 404
        with pytest.raises(NotFoundError):
            await client.call(client.new_request("GET", "b"))

        assert [(r.code, r.endpoint) for r in seen] == [
            (200, "https://example.atlassian.net/a"),
            (404, "https://example.atlassian.net/b"),
        ]


class TestLifecycle:
    """Test client shutdown."""

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, site):
        """Test closing the client closes the default httpx client."""
        async with Client(site) as client:
            http = client.http
        assert http.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, site, http_client):
        """Test an injected httpx client is left open."""
        async with Client(site, http_client):
            pass
        assert not http_client.is_closed
