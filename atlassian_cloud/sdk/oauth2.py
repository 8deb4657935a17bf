"""OAuth 2.0 (3LO) support for Atlassian Cloud.

The pieces compose from the bottom up:

- :class:`OAuth2Service` talks to ``auth.atlassian.com``: authorization
  URLs, code exchange, refresh and accessible resources.
- :class:`RefreshTokenSource` performs one refresh exchange per call and
  persists/announces the result.
- :class:`ReuseTokenSource` caches the current token and only asks the
  refresh source for a new one when the cached token is about to expire.
  Concurrent callers share a single in-flight refresh.
- :class:`OAuth2Transport` decorates an HTTP client so every request goes
  out with a fresh bearer token.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

import httpx
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ._http import HTTPClient, read_body
from .auth import AuthenticationService
from .exceptions import ConfigurationError, ConnectionError, OAuth2Error, TokenRefreshError

logger = logging.getLogger(__name__)

AUTHORIZATION_URL = "https://auth.atlassian.com/authorize"
TOKEN_URL = "https://auth.atlassian.com/oauth/token"
RESOURCES_URL = "https://api.atlassian.com/oauth/token/accessible-resources"
AUDIENCE = "api.atlassian.com"

# Tokens are renewed this many seconds before they actually expire.
EXPIRY_MARGIN = 300.0


class OAuth2Config(BaseModel):
    """Credentials of a registered OAuth 2.0 (3LO) app."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    redirect_uri: str


class OAuth2Token(BaseModel):
    """Token pair returned by the Atlassian authorization server."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_token: str = ""
    scope: str = ""
    # Absolute expiry (epoch seconds); takes precedence over expires_in.
    expires_at: float | None = None

    def resolve_expiry(self, received_at: float) -> float:
        """Return the absolute expiry time of the access token.

        Uses ``expires_at`` when known, otherwise ``expires_in`` counted from
        ``received_at``, otherwise the ``exp`` claim of the access token.
        An unknown expiry is treated as already expired.
        """
        if self.expires_at is not None:
            return self.expires_at
        if self.expires_in > 0:
            return received_at + self.expires_in
        exp = _jwt_expiry(self.access_token)
        return exp if exp is not None else received_at


class AccessibleResource(BaseModel):
    """A site the access token can reach."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    name: str = ""
    scopes: list[str] = Field(default_factory=list)
    avatar_url: str = Field(default="", alias="avatarUrl")


def _jwt_expiry(access_token: str) -> float | None:
    try:
        claims = jwt.get_unverified_claims(access_token)
    except JWTError:
        return None
    exp = claims.get("exp")
    return float(exp) if isinstance(exp, (int, float)) else None


@runtime_checkable
class TokenStore(Protocol):
    """External persistence for OAuth2 tokens."""

    async def get_token(self) -> OAuth2Token | None: ...

    async def set_token(self, token: OAuth2Token) -> None: ...

    async def get_refresh_token(self) -> str | None: ...

    async def set_refresh_token(self, refresh_token: str) -> None: ...


@runtime_checkable
class TokenCallback(Protocol):
    """Notified after every successful refresh. May be sync or async."""

    def on_token_refreshed(
        self, old_token: OAuth2Token | None, new_token: OAuth2Token
    ) -> Awaitable[None] | None: ...


class OAuth2Service:
    """Client for the Atlassian authorization server.

    Parameters
    ----------
    http_client : HTTPClient
        Client used for the token exchanges. This must be the undecorated
        client, never an :class:`OAuth2Transport`
    config : OAuth2Config
        The app credentials

    Raises
    ------
    ConfigurationError
        If the client id, secret or redirect URI is empty
    """

    def __init__(self, http_client: HTTPClient, config: OAuth2Config):
        if not config.client_id:
            raise ConfigurationError("oauth2: client_id is required")
        if not config.client_secret:
            raise ConfigurationError("oauth2: client_secret is required")
        if not config.redirect_uri:
            raise ConfigurationError("oauth2: redirect_uri is required")
        self._http = http_client
        self.config = config

    def get_authorization_url(self, scopes: list[str], state: str) -> httpx.URL:
        """Build the consent URL the user must visit.

        ``offline_access`` is always requested so a refresh token is issued.
        """
        scopes = list(scopes)
        if "offline_access" not in scopes:
            scopes.append("offline_access")
        params = {
            "audience": AUDIENCE,
            "client_id": self.config.client_id,
            "scope": " ".join(scopes),
            "redirect_uri": self.config.redirect_uri,
            "state": state,
            "response_type": "code",
            "prompt": "consent",
        }
        return httpx.URL(AUTHORIZATION_URL, params=params)

    async def exchange_authorization_code(self, code: str) -> OAuth2Token:
        """Exchange the code received on the redirect URI for a token pair."""
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "code": code,
                "redirect_uri": self.config.redirect_uri,
            }
        )

    async def refresh_access_token(self, refresh_token: str) -> OAuth2Token:
        """Trade a refresh token for a new token pair."""
        if not refresh_token:
            raise OAuth2Error("invalid_request", "no refresh token available")
        return await self._token_request(
            {
                "grant_type": "refresh_token",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "refresh_token": refresh_token,
            }
        )

    async def get_accessible_resources(self, access_token: str) -> list[AccessibleResource]:
        """List the cloud sites the access token is authorized for."""
        request = httpx.Request(
            "GET",
            RESOURCES_URL,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
        content = await self._send(request)
        try:
            return [AccessibleResource.model_validate(item) for item in json.loads(content)]
        except (ValueError, TypeError) as exc:
            raise OAuth2Error("invalid_response", str(exc)) from exc

    async def _token_request(self, payload: dict[str, str]) -> OAuth2Token:
        request = httpx.Request(
            "POST",
            TOKEN_URL,
            json=payload,
            headers={"Accept": "application/json"},
        )
        content = await self._send(request)
        try:
            token = OAuth2Token.model_validate_json(content)
        except ValidationError as exc:
            raise OAuth2Error("invalid_response", str(exc)) from exc
        if token.expires_at is None:
            token = token.model_copy(update={"expires_at": token.resolve_expiry(time.time())})
        return token

    async def _send(self, request: httpx.Request) -> bytes:
        try:
            response = await self._http.send(request)
            content = await read_body(response)
        except httpx.TransportError as exc:
            raise ConnectionError(str(request.url), exc) from exc
        if not 200 <= response.status_code < 300:
            error, description = _error_details(content)
            raise OAuth2Error(error, description, status_code=response.status_code)
        return content


def _error_details(content: bytes) -> tuple[str, str]:
    try:
        body = json.loads(content)
    except ValueError:
        return "http_error", content.decode("utf-8", errors="replace")
    if not isinstance(body, dict):
        return "http_error", str(body)
    return str(body.get("error", "http_error")), str(body.get("error_description", ""))


class RefreshTokenSource:
    """Obtains a new token from the refresh token on every call.

    A rotated refresh token replaces the current one. When a store is
    configured, the new token (and a rotated refresh token) is saved; when a
    callback is configured, it is told about the refresh. Neither store nor
    callback failures abort the refresh.
    """

    def __init__(
        self,
        oauth: OAuth2Service,
        refresh_token: str,
        store: TokenStore | None = None,
        callback: TokenCallback | None = None,
    ):
        self.oauth = oauth
        self.refresh_token = refresh_token
        self.store = store
        self.callback = callback
        self._store_checked = False
        self._lock = asyncio.Lock()

    async def token(self, old_token: OAuth2Token | None = None) -> OAuth2Token:
        async with self._lock:
            await self._load_stored_refresh_token()

            try:
                token = await self.oauth.refresh_access_token(self.refresh_token)
            except TokenRefreshError:
                raise
            except OAuth2Error as exc:
                raise TokenRefreshError(exc.error, exc.description, exc.status_code) from exc
            except ConnectionError as exc:
                raise TokenRefreshError("refresh_failed", str(exc)) from exc

            rotated = bool(token.refresh_token) and token.refresh_token != self.refresh_token
            if token.refresh_token:
                self.refresh_token = token.refresh_token
            else:
                token = token.model_copy(update={"refresh_token": self.refresh_token})
            logger.debug("oauth2: access token refreshed (rotated refresh token: %s)", rotated)

            await self._persist(token, rotated)
            await self._notify(old_token, token)
            return token

    async def _load_stored_refresh_token(self) -> None:
        if self.store is None or self._store_checked:
            return
        self._store_checked = True
        try:
            stored = await self.store.get_refresh_token()
        except Exception:
            logger.warning("oauth2: could not load refresh token from store", exc_info=True)
            return
        if stored:
            self.refresh_token = stored

    async def _persist(self, token: OAuth2Token, rotated: bool) -> None:
        if self.store is None:
            return
        try:
            await self.store.set_token(token)
            if rotated:
                await self.store.set_refresh_token(token.refresh_token)
        except Exception:
            logger.warning("oauth2: could not persist refreshed token", exc_info=True)

    async def _notify(self, old_token: OAuth2Token | None, token: OAuth2Token) -> None:
        if self.callback is None:
            return
        try:
            result = self.callback.on_token_refreshed(old_token, token)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("oauth2: token refresh callback failed", exc_info=True)


def _consume_result(task: asyncio.Task) -> None:
    # Marks the exception retrieved when every waiter was cancelled.
    if not task.cancelled():
        task.exception()


class ReuseTokenSource:
    """Reuses a token until it is within ``margin`` seconds of expiry.

    Only one refresh runs at a time. Callers that find the token expired
    while a refresh is in flight await that same attempt and receive its
    token or its :class:`TokenRefreshError`; the next attempt starts only
    after the current one has finished. A failed refresh leaves the cached
    token as it was.
    """

    def __init__(
        self,
        token: OAuth2Token | None,
        source: RefreshTokenSource,
        store: TokenStore | None = None,
        margin: float = EXPIRY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.store = store
        self.margin = margin
        self._clock = clock
        self._token: OAuth2Token | None = None
        self._expiry = 0.0
        self._inflight: asyncio.Task[OAuth2Token] | None = None
        if token is not None:
            self._set(token)

    @property
    def current(self) -> OAuth2Token | None:
        return self._token

    def _set(self, token: OAuth2Token) -> None:
        self._token = token
        self._expiry = token.resolve_expiry(self._clock())

    def _valid(self) -> bool:
        return self._token is not None and self._clock() + self.margin < self._expiry

    async def token(self) -> OAuth2Token:
        if self._valid():
            return self._token  # type: ignore[return-value]

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh())
            self._inflight.add_done_callback(_consume_result)
        # A cancelled caller must not cancel the refresh other callers await.
        return await asyncio.shield(self._inflight)

    async def _refresh(self) -> OAuth2Token:
        try:
            if self._token is None and self.store is not None:
                await self._load_stored_token()
            if self._valid():
                return self._token  # type: ignore[return-value]

            token = await self.source.token(old_token=self._token)
            self._set(token)
            return token
        finally:
            self._inflight = None

    async def _load_stored_token(self) -> None:
        try:
            stored = await self.store.get_token()  # type: ignore[union-attr]
        except Exception:
            logger.warning("oauth2: could not load token from store", exc_info=True)
            return
        if stored is not None:
            self._set(stored)


class OAuth2Transport:
    """HTTP client decorator that signs requests with a fresh bearer token.

    The wrapped client is kept in ``inner`` so the chain can be unwound
    when auto-renewal is configured again.
    """

    def __init__(
        self,
        source: ReuseTokenSource,
        inner: HTTPClient,
        auth: AuthenticationService | None = None,
    ):
        self.source = source
        self.inner = inner
        self.auth = auth

    async def send(self, request: httpx.Request) -> httpx.Response:
        token = await self.source.token()
        if self.auth is not None:
            self.auth.set_bearer_token(token.access_token)

        # The caller's request is left untouched.
        content = await request.aread()
        signed = httpx.Request(
            request.method,
            request.url,
            headers=request.headers,
            content=content,
            extensions=request.extensions,
        )
        signed.headers["Authorization"] = f"{token.token_type or 'Bearer'} {token.access_token}"
        return await self.inner.send(signed)

    async def aclose(self) -> None:
        close = getattr(self.inner, "aclose", None)
        if close is not None:
            await close()


def unwrap_transport(http_client: HTTPClient) -> HTTPClient:
    """Follow the ``inner`` chain down to the first non-OAuth2 client."""
    while isinstance(http_client, OAuth2Transport):
        http_client = http_client.inner
    return http_client


def setup_token_sources(
    token: OAuth2Token,
    oauth: OAuth2Service,
    store: TokenStore | None = None,
    callback: TokenCallback | None = None,
) -> tuple[RefreshTokenSource, ReuseTokenSource]:
    """Build the refresh/reuse source pair for an initial token."""
    refresh = RefreshTokenSource(oauth, token.refresh_token, store=store, callback=callback)
    reuse = ReuseTokenSource(token, refresh, store=store)
    return refresh, reuse


def _callback_from(func: Callable[[OAuth2Token | None, OAuth2Token], Any]) -> TokenCallback:
    class _FunctionCallback:
        def on_token_refreshed(self, old_token, new_token):
            return func(old_token, new_token)

    return _FunctionCallback()


def as_token_callback(callback: TokenCallback | Callable[..., Any]) -> TokenCallback:
    """Accept either a callback object or a plain ``(old, new)`` function."""
    if hasattr(callback, "on_token_refreshed"):
        return callback  # type: ignore[return-value]
    if callable(callback):
        return _callback_from(callback)
    raise ConfigurationError("token callback must be callable or define on_token_refreshed")
