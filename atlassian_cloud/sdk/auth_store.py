"""File-backed OAuth2 token storage.

Tokens are stored as JSON under a per-user directory so a long-running
integration can pick up the latest refresh token after a restart.
"""

import json
import os

from pathlib import Path

from pydantic import ValidationError

from .oauth2 import OAuth2Token


def _get_store_dir() -> Path:
    """Get the platform-specific directory for storing tokens.

    Returns
    -------
    Path
        Directory holding one JSON file per store key

    Notes
    -----
    Token locations by platform:
    - Linux/Mac: ~/.atlassian_cloud/
    - Windows: %USERPROFILE%\\.atlassian_cloud\\
    """
    return Path.home() / ".atlassian_cloud"


class FileTokenStore:
    """Token store persisting one JSON file per key.

    Parameters
    ----------
    key : str, optional
        Identifier of the client/account the tokens belong to.
        Default is "default"
    directory : Path, optional
        Where token files are written. Defaults to ``~/.atlassian_cloud``

    Notes
    -----
    Files are written with restricted permissions (600) on Unix-like
    systems. Reads of a missing or corrupt file return None.
    """

    def __init__(self, key: str = "default", directory: Path | None = None):
        if not key:
            raise ValueError("token store key is required")
        self.key = key
        self.directory = Path(directory) if directory is not None else _get_store_dir()

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    async def get_token(self) -> OAuth2Token | None:
        data = self._read()
        if not data.get("token"):
            return None
        try:
            return OAuth2Token.model_validate(data["token"])
        except ValidationError:
            return None

    async def set_token(self, token: OAuth2Token) -> None:
        data = self._read()
        data["token"] = token.model_dump(mode="json")
        if token.refresh_token:
            data["refresh_token"] = token.refresh_token
        self._write(data)

    async def get_refresh_token(self) -> str | None:
        return self._read().get("refresh_token") or None

    async def set_refresh_token(self, refresh_token: str) -> None:
        data = self._read()
        data["refresh_token"] = refresh_token
        self._write(data)

    def clear(self) -> None:
        """Remove the saved tokens. Safe to call when nothing is saved."""
        if self.path.exists():
            self.path.unlink()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

        with open(self.path, "w") as f:
            json.dump(data, f)

        # Set file permissions to 600 (owner read/write only) on Unix
        if os.name != "nt":
            os.chmod(self.path, 0o600)
