"""Exception classes for the Atlassian Cloud SDK.

This module defines the exceptions raised by the transport layer and the
OAuth2 token manager. HTTP status failures are classified into a small,
flat set of subclasses of :class:`HTTPError` so callers can catch the
specific case they care about and let everything else fall through.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .response import Response


class AtlassianError(Exception):
    """Base exception for all Atlassian Cloud SDK errors.

    All custom exceptions in the SDK inherit from this base class,
    allowing applications to catch all SDK-specific errors with a
    single except clause if desired.
    """

    pass


class ConfigurationError(AtlassianError):
    """Raised when a client or one of its options is misconfigured.

    Examples are an empty site URL, enabling token auto-renewal before
    OAuth2 was configured, or passing ``None`` to an option that needs
    a collaborator.
    """


class RequestConstructionError(AtlassianError):
    """Raised when a request cannot be built.

    No network I/O has happened when this is raised: the method was
    empty, the endpoint could not be parsed as a URL, or the payload
    could not be encoded as JSON.
    """


class HTTPError(AtlassianError):
    """Raised when an HTTP request returns an error status code.

    This exception provides access to the HTTP status code, the raw
    response body, and the full response envelope, allowing for
    detailed error handling based on the specific API error.

    Attributes
    ----------
    status_code : int
        The HTTP status code (e.g., 400, 401, 404, 500)
    body : str
        The response body, typically containing error details
    response : Response or None
        The response envelope, including the raw bytes
    """

    def __init__(self, status_code: int, body: str, response: Response | None = None):
        self.status_code = status_code
        self.body = body
        self.response = response
        super().__init__(f"HTTP {status_code}: {body}")


class BadRequestError(HTTPError):
    """The server rejected the request payload (HTTP 400)."""


class UnauthorizedError(HTTPError):
    """The credentials are missing or insufficient (HTTP 401)."""


class NotFoundError(HTTPError):
    """The requested resource does not exist (HTTP 404)."""


class InternalError(HTTPError):
    """The server failed internally (HTTP 500)."""


class InvalidStatusCodeError(HTTPError):
    """Any other status outside the 2xx range."""


class DecodeError(AtlassianError):
    """Raised when a successful response body cannot be decoded.

    Attributes
    ----------
    response : Response
        The (still valid) response envelope
    original_error : Exception
        The underlying validation or JSON error
    """

    def __init__(self, response: Response, original_error: Exception):
        self.response = response
        self.original_error = original_error
        super().__init__(
            f"Failed to decode {response.method} {response.endpoint} response: {original_error}"
        )


class ConnectionError(AtlassianError):
    """Raised when unable to reach the Atlassian API.

    This covers DNS, TCP, TLS and timeout failures. No response envelope
    exists because the request never produced a response.

    Attributes
    ----------
    url : str
        The URL that failed to connect
    original_error : Exception
        The underlying exception that caused the connection failure
    """

    def __init__(self, url: str, original_error: Exception):
        self.url = url
        self.original_error = original_error
        super().__init__(f"Failed to connect to {url}: {original_error}")


class OAuth2Error(AtlassianError):
    """Raised when the OAuth2 provider rejects a token operation.

    Attributes
    ----------
    error : str
        The OAuth2 ``error`` code, e.g. ``invalid_grant``
    description : str
        The ``error_description`` sent by the provider, if any
    status_code : int or None
        HTTP status of the provider response, if one was received
    """

    def __init__(self, error: str, description: str = "", status_code: int | None = None):
        self.error = error
        self.description = description
        self.status_code = status_code
        message = f"{error}: {description}" if description else error
        super().__init__(message)


class TokenRefreshError(OAuth2Error):
    """Raised when the access token could not be refreshed.

    The request that triggered the refresh is not sent, and the
    previously cached token is left untouched.
    """


_STATUS_ERRORS: dict[int, type[HTTPError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    404: NotFoundError,
    500: InternalError,
}


def classify_status(status_code: int) -> type[HTTPError] | None:
    """Return the exception class for a status code, or None on 2xx."""
    if 200 <= status_code < 300:
        return None
    return _STATUS_ERRORS.get(status_code, InvalidStatusCodeError)


def raise_for_status(response: Response) -> None:
    """Raise the classified :class:`HTTPError` for a non-2xx envelope."""
    error_cls = classify_status(response.code)
    if error_cls is None:
        return
    raise error_cls(response.code, response.text, response=response)
