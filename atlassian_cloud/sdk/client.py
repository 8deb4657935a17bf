"""Shared async transport for the Atlassian Cloud REST APIs."""

from __future__ import annotations

import asyncio
import base64
import dataclasses
import functools
import io
from typing import TYPE_CHECKING, Any, Callable

import httpx
from pydantic import TypeAdapter, ValidationError

from ._http import HTTPClient, TimeoutConfig, build_default_client, read_body
from .auth import AuthenticationService
from .exceptions import (
    ConfigurationError,
    ConnectionError,
    DecodeError,
    RequestConstructionError,
    raise_for_status,
)
from .oauth2 import (
    OAuth2Config,
    OAuth2Service,
    OAuth2Token,
    OAuth2Transport,
    TokenCallback,
    TokenStore,
    as_token_callback,
    setup_token_sources,
    unwrap_transport,
)
from .response import Response

if TYPE_CHECKING:
    from .config import SDKConfig

ClientOption = Callable[["Client"], None]

# Strong references to close tasks scheduled from a failed constructor.
_pending_closes: set[asyncio.Task] = set()


class Client:
    """Async client for the Atlassian Cloud REST APIs.

    Builds authenticated requests relative to a site, executes them through
    an injected HTTP client, and returns a :class:`Response` envelope. The
    Jira and Confluence clients subclass it and attach their resource
    services.

    Parameters
    ----------
    site : str
        Base URL of the cloud site (e.g., "https://example.atlassian.net").
        A trailing "/" is appended when missing
    http_client : HTTPClient, optional
        Anything with an async ``send(request)``. When omitted, the client
        creates and owns an ``httpx.AsyncClient``
    *options : ClientOption
        Configuration callables applied in order, e.g. :func:`with_oauth`
    timeout_config : TimeoutConfig, optional
        Timeouts for the default client; ignored when ``http_client`` is given
    observer : callable, optional
        Called with every response envelope before status classification,
        for tracing or metrics

    Raises
    ------
    ConfigurationError
        If the site is empty or not an absolute URL, or an option fails
    """

    def __init__(
        self,
        site: str,
        http_client: HTTPClient | None = None,
        *options: ClientOption,
        timeout_config: TimeoutConfig | None = None,
        observer: Callable[[Response], None] | None = None,
    ):
        if not site:
            raise ConfigurationError("client: no atlassian site set")
        if not site.endswith("/"):
            site += "/"
        try:
            site_url = httpx.URL(site)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"client: invalid site {site!r}: {exc}") from exc
        if not site_url.scheme or not site_url.host:
            raise ConfigurationError(f"client: site must be an absolute URL, got {site!r}")

        self._owned_http: httpx.AsyncClient | None = None
        if http_client is None:
            http_client = self._owned_http = build_default_client(timeout_config)

        self.site = site_url
        self.http: HTTPClient = http_client
        self.auth = AuthenticationService()
        self.oauth: OAuth2Service | None = None
        self.token_store: TokenStore | None = None
        self.token_callback: TokenCallback | None = None
        self.observer = observer

        self._init_services()

        try:
            for option in options:
                option(self)
        except BaseException:
            self._discard_owned_http()
            raise

    def _discard_owned_http(self) -> None:
        """Close the default client of a client whose construction failed."""
        owned, self._owned_http = self._owned_http, None
        if owned is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(owned.aclose())
            return
        task = loop.create_task(owned.aclose())
        _pending_closes.add(task)
        task.add_done_callback(_pending_closes.discard)

    def _init_services(self) -> None:
        """Attach resource services. Overridden by product clients."""

    @classmethod
    def from_config(cls, config: SDKConfig, http_client: HTTPClient | None = None, *options: ClientOption, **kwargs: Any):
        """Create a client from an :class:`SDKConfig`.

        Options derived from the config are applied before ``options``.
        """
        kwargs.setdefault("timeout_config", config.timeout_config())
        return cls(config.site, http_client, *config.client_options(), *options, **kwargs)

    # ---------------- Request construction -----------------

    def new_request(
        self,
        method: str,
        endpoint: str,
        *,
        content_type: str | None = None,
        payload: Any = None,
    ) -> httpx.Request:
        """Build an authenticated request for ``endpoint``.

        Parameters
        ----------
        method : str
            HTTP method (GET, POST, etc.)
        endpoint : str
            Path relative to the site, or an absolute URL which replaces it
        content_type : str, optional
            Explicit content type for form/file uploads. Also disables the
            XSRF check with ``X-Atlassian-Token: no-check``
        payload : Any, optional
            Value encoded as JSON, or ``bytes``/``io.BytesIO`` sent verbatim

        Returns
        -------
        httpx.Request
            The request, ready for :meth:`call`

        Raises
        ------
        RequestConstructionError
            If the method is empty, the endpoint is not a valid URL, or the
            payload cannot be encoded as JSON
        """
        if not method:
            raise RequestConstructionError("request: no http method set")

        try:
            url = self.site.join(endpoint)
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise RequestConstructionError(f"request: invalid endpoint {endpoint!r}: {exc}") from exc

        body = _encode_payload(payload) if payload is not None else None

        headers = {"Accept": "application/json"}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        if content_type:
            headers["Content-Type"] = content_type
            headers["X-Atlassian-Token"] = "no-check"

        if self.auth.has_basic_auth():
            headers["Authorization"] = _basic_auth_header(*self.auth.get_basic_auth())
        elif self.auth.get_bearer_token():
            headers["Authorization"] = f"Bearer {self.auth.get_bearer_token()}"

        if self.auth.has_experimental_flag():
            headers["X-ExperimentalApi"] = "opt-in"

        if self.auth.has_user_agent():
            headers["User-Agent"] = self.auth.get_user_agent()

        try:
            return httpx.Request(method.upper(), url, headers=headers, content=body)
        except (httpx.InvalidURL, ValueError) as exc:
            raise RequestConstructionError(f"request: {exc}") from exc

    # ---------------- Execution -----------------

    async def call(self, request: httpx.Request, into: Any = None) -> Response:
        """Execute ``request`` and wrap the result in a :class:`Response`.

        Parameters
        ----------
        request : httpx.Request
            A request built by :meth:`new_request`
        into : type, optional
            Destination type (pydantic model, ``list[Model]``, ``dict``...).
            On success the body is decoded into it and stored as
            ``Response.data``

        Returns
        -------
        Response
            The envelope, with the buffered body

        Raises
        ------
        HTTPError
            A classified subclass for any status outside 200-299; the
            envelope is available as ``exc.response``
        DecodeError
            If a successful body does not match ``into``
        ConnectionError
            If no response was received (DNS, TCP, TLS, timeout)
        """
        try:
            raw = await self.http.send(request)
            content = await read_body(raw)
        except httpx.TransportError as exc:
            raise ConnectionError(str(request.url), exc) from exc

        sent = _effective_request(raw, request)
        response = Response(
            raw=raw,
            code=raw.status_code,
            endpoint=str(sent.url),
            method=sent.method,
            content=content,
        )

        if self.observer is not None:
            self.observer(response)

        raise_for_status(response)

        if into is None or not content:
            return response

        try:
            data = _adapter(into).validate_json(content)
        except ValidationError as exc:
            raise DecodeError(response, exc) from exc
        return dataclasses.replace(response, data=data)

    async def aclose(self) -> None:
        """Close the HTTP client, if this client created it."""
        if self._owned_http is not None:
            await self._owned_http.aclose()
            self._owned_http = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _encode_payload(payload: Any) -> bytes:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, io.BytesIO):
        return payload.getvalue()
    try:
        return _adapter(Any).dump_json(payload, by_alias=True, exclude_none=True)
    except (TypeError, ValueError) as exc:
        raise RequestConstructionError(f"request: cannot encode payload as JSON: {exc}") from exc


@functools.lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def _basic_auth_header(username: str, password: str) -> str:
    credentials = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def _effective_request(raw: httpx.Response, fallback: httpx.Request) -> httpx.Request:
    # Test doubles may hand back responses that were never bound to a request.
    try:
        return raw.request
    except RuntimeError:
        return fallback


# ---------------- Client options -----------------


def with_basic_auth(username: str, password: str) -> ClientOption:
    """Authenticate with an account email and API token."""

    def option(client: Client) -> None:
        client.auth.set_basic_auth(username, password)

    return option


def with_bearer_token(token: str) -> ClientOption:
    """Authenticate with a static bearer token."""

    def option(client: Client) -> None:
        client.auth.set_bearer_token(token)

    return option


def with_user_agent(user_agent: str) -> ClientOption:
    def option(client: Client) -> None:
        client.auth.set_user_agent(user_agent)

    return option


def with_experimental_api() -> ClientOption:
    def option(client: Client) -> None:
        client.auth.set_experimental_flag()

    return option


def with_oauth(config: OAuth2Config) -> ClientOption:
    """Configure OAuth 2.0 (3LO) support on the client."""

    def option(client: Client) -> None:
        if config is None:
            raise ConfigurationError("oauth config cannot be None")
        client.oauth = OAuth2Service(unwrap_transport(client.http), config)

    return option


def with_auto_renewal_token(token: OAuth2Token) -> ClientOption:
    """Keep ``token`` fresh automatically for every request.

    Requires :func:`with_oauth` to be applied first. Applying it again
    replaces the previous renewal transport instead of stacking another one.
    """

    def option(client: Client) -> None:
        if token is None:
            raise ConfigurationError("token cannot be None for auto-renewal")
        if client.oauth is None:
            raise ConfigurationError(
                "OAuth must be configured before enabling auto-renewal (use with_oauth first)"
            )

        _, reuse = setup_token_sources(
            token,
            client.oauth,
            store=client.token_store,
            callback=client.token_callback,
        )
        base = unwrap_transport(client.http)
        client.http = OAuth2Transport(reuse, base, client.auth)
        client.auth.set_bearer_token(token.access_token)

    return option


def with_oauth_with_auto_renewal(config: OAuth2Config, token: OAuth2Token) -> ClientOption:
    """Shortcut for :func:`with_oauth` followed by :func:`with_auto_renewal_token`."""

    def option(client: Client) -> None:
        with_oauth(config)(client)
        with_auto_renewal_token(token)(client)

    return option


def with_token_store(store: TokenStore) -> ClientOption:
    """Persist refreshed tokens to ``store``."""

    def option(client: Client) -> None:
        if store is None:
            raise ConfigurationError("token store cannot be None")
        client.token_store = store
        if isinstance(client.http, OAuth2Transport):
            client.http.source.store = store
            client.http.source.source.store = store

    return option


def with_token_callback(callback: TokenCallback | Callable[..., Any]) -> ClientOption:
    """Call ``callback`` with ``(old_token, new_token)`` after each refresh."""

    def option(client: Client) -> None:
        if callback is None:
            raise ConfigurationError("token callback cannot be None")
        client.token_callback = as_token_callback(callback)
        if isinstance(client.http, OAuth2Transport):
            client.http.source.source.callback = client.token_callback

    return option
