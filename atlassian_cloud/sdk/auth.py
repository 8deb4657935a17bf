"""Per-client authentication state."""

from __future__ import annotations


class AuthenticationService:
    """Mutable holder for the credentials attached to every request.

    Basic auth takes precedence over the bearer token when both are set;
    the request builder never sends both.

    Notes
    -----
    This holder is not synchronized. Configure it while setting the client
    up, before requests run concurrently. Changing credentials while
    requests are being built is the caller's responsibility to avoid. The
    OAuth2 transport is the one writer allowed during traffic: it only
    replaces the bearer token string, which is a single attribute store.
    """

    def __init__(self) -> None:
        self._username: str = ""
        self._password: str = ""
        self._bearer_token: str = ""
        self._user_agent: str = ""
        self._experimental: bool = False

    def set_basic_auth(self, username: str, password: str) -> None:
        self._username = username
        self._password = password

    def has_basic_auth(self) -> bool:
        return bool(self._username and self._password)

    def get_basic_auth(self) -> tuple[str, str]:
        return self._username, self._password

    def set_bearer_token(self, token: str) -> None:
        self._bearer_token = token

    def get_bearer_token(self) -> str:
        return self._bearer_token

    def set_user_agent(self, user_agent: str) -> None:
        self._user_agent = user_agent

    def has_user_agent(self) -> bool:
        return bool(self._user_agent)

    def get_user_agent(self) -> str:
        return self._user_agent

    def set_experimental_flag(self) -> None:
        """Opt in to experimental endpoints (``X-ExperimentalApi: opt-in``)."""
        self._experimental = True

    def has_experimental_flag(self) -> bool:
        return self._experimental
