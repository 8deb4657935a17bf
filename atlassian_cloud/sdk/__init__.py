"""Atlassian Cloud SDK: Jira and Confluence clients over a shared transport."""

from ._http import HTTPClient, TimeoutConfig, build_multipart
from .auth import AuthenticationService
from .auth_store import FileTokenStore
from .client import (
    Client,
    ClientOption,
    with_auto_renewal_token,
    with_basic_auth,
    with_bearer_token,
    with_experimental_api,
    with_oauth,
    with_oauth_with_auto_renewal,
    with_token_callback,
    with_token_store,
    with_user_agent,
)
from .config import SDKConfig, load_dotenv_for_sdk
from .confluence import ConfluenceClient
from .exceptions import (
    AtlassianError,
    BadRequestError,
    ConfigurationError,
    ConnectionError,
    DecodeError,
    HTTPError,
    InternalError,
    InvalidStatusCodeError,
    NotFoundError,
    OAuth2Error,
    RequestConstructionError,
    TokenRefreshError,
    UnauthorizedError,
)
from .jira import JiraClient
from .oauth2 import (
    AccessibleResource,
    OAuth2Config,
    OAuth2Service,
    OAuth2Token,
    OAuth2Transport,
    TokenCallback,
    TokenStore,
)
from .response import Response

__version__ = "0.1.0"

__all__ = [
    "AccessibleResource",
    "AtlassianError",
    "AuthenticationService",
    "BadRequestError",
    "Client",
    "ClientOption",
    "ConfigurationError",
    "ConfluenceClient",
    "ConnectionError",
    "DecodeError",
    "FileTokenStore",
    "HTTPClient",
    "HTTPError",
    "InternalError",
    "InvalidStatusCodeError",
    "JiraClient",
    "NotFoundError",
    "OAuth2Config",
    "OAuth2Error",
    "OAuth2Service",
    "OAuth2Token",
    "OAuth2Transport",
    "RequestConstructionError",
    "Response",
    "SDKConfig",
    "TimeoutConfig",
    "TokenCallback",
    "TokenRefreshError",
    "TokenStore",
    "UnauthorizedError",
    "build_multipart",
    "load_dotenv_for_sdk",
    "with_auto_renewal_token",
    "with_basic_auth",
    "with_bearer_token",
    "with_experimental_api",
    "with_oauth",
    "with_oauth_with_auto_renewal",
    "with_token_callback",
    "with_token_store",
    "with_user_agent",
]
