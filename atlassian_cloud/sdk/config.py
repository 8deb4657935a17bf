"""Environment-driven configuration for the Atlassian Cloud SDK."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from ._http import TimeoutConfig
from .oauth2 import OAuth2Config


class SDKConfig(BaseModel):
    """Unified configuration for the Atlassian Cloud SDK."""

    model_config = ConfigDict(frozen=True)

    site: str = Field(default="")

    # Basic auth (account email + API token) or a static bearer token
    email: str = Field(default="")
    api_token: str = Field(default="")
    bearer_token: str = Field(default="")
    user_agent: str = Field(default="")

    # OAuth 2.0 (3LO) app credentials
    oauth_client_id: str = Field(default="")
    oauth_client_secret: str = Field(default="")
    oauth_redirect_uri: str = Field(default="")

    # Runtime settings
    http_timeout: float = Field(default=30.0)
    experimental: bool = Field(default=False)

    @classmethod
    def from_environment(cls) -> "SDKConfig":
        """Create configuration from environment variables."""
        return cls(
            site=_get_env_var(["ATLASSIAN_SITE", "ATLASSIAN_URL"], ""),
            email=_get_env_var(["ATLASSIAN_EMAIL", "ATLASSIAN_USERNAME"], ""),
            api_token=_get_env_var(["ATLASSIAN_API_TOKEN"], ""),
            bearer_token=_get_env_var(["ATLASSIAN_BEARER_TOKEN"], ""),
            user_agent=_get_env_var(["ATLASSIAN_USER_AGENT"], ""),
            oauth_client_id=_get_env_var(["ATLASSIAN_OAUTH_CLIENT_ID"], ""),
            oauth_client_secret=_get_env_var(["ATLASSIAN_OAUTH_CLIENT_SECRET"], ""),
            oauth_redirect_uri=_get_env_var(["ATLASSIAN_OAUTH_REDIRECT_URI"], ""),
            http_timeout=float(os.getenv("ATLASSIAN_HTTP_TIMEOUT", "30")),
            experimental=_get_bool("ATLASSIAN_EXPERIMENTAL", False),
        )

    def oauth_config(self) -> Optional[OAuth2Config]:
        """Return the OAuth2 app credentials, or None if not configured."""
        if not (self.oauth_client_id and self.oauth_client_secret and self.oauth_redirect_uri):
            return None
        return OAuth2Config(
            client_id=self.oauth_client_id,
            client_secret=self.oauth_client_secret,
            redirect_uri=self.oauth_redirect_uri,
        )

    def timeout_config(self) -> TimeoutConfig:
        return TimeoutConfig(
            read=self.http_timeout,
            write=self.http_timeout,
            pool=self.http_timeout,
        )

    def client_options(self) -> list:
        """Translate the configuration into client options."""
        from .client import (
            with_basic_auth,
            with_bearer_token,
            with_experimental_api,
            with_oauth,
            with_user_agent,
        )

        options = []
        if self.email and self.api_token:
            options.append(with_basic_auth(self.email, self.api_token))
        if self.bearer_token:
            options.append(with_bearer_token(self.bearer_token))
        if self.user_agent:
            options.append(with_user_agent(self.user_agent))
        if self.experimental:
            options.append(with_experimental_api())
        oauth = self.oauth_config()
        if oauth is not None:
            options.append(with_oauth(oauth))
        return options


def _get_env_var(keys: list[str], default: str = "") -> str:
    """Get first available environment variable from a list of keys."""
    for key in keys:
        if value := os.getenv(key):
            return value
    return default


def _get_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_dotenv_for_sdk(path: Optional[Path] = None, *, override: bool = False) -> None:
    """Load environment variables from a .env file.

    Defaults to ``.env.<ATLASSIAN_ENV>`` in the current directory when
    ``ATLASSIAN_ENV`` is set and that file exists, falling back to ``.env``.
    """
    if path is None:
        path = Path.cwd() / ".env"
        env = os.getenv("ATLASSIAN_ENV", "").lower()
        if env:
            candidate = Path.cwd() / f".env.{env}"
            if candidate.exists():
                path = candidate

    if path.exists():
        load_dotenv(path, override=override)
