"""Service-account authentication for the Apps Script API.

The key file is checked locally before any token request is made, so a
missing or malformed key.json surfaces as AuthenticationError without
touching the network.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import google.auth.exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import service_account

from gascli.exceptions import AuthenticationError, RemoteError

SCRIPT_SCOPES = ["https://www.googleapis.com/auth/script.projects"]

REQUIRED_KEY_FIELDS = ("type", "project_id", "private_key_id")


def load_service_account_key(path: str | Path) -> dict[str, Any]:
    """Read and validate a service-account key file.

    Raises:
        AuthenticationError: The file is missing, not JSON, or lacks one of
            the required fields. All missing fields are reported together.
    """
    path = Path(path)
    if not path.exists():
        raise AuthenticationError(
            f"{path.name} not found - required for Google Apps Script API "
            "authentication"
        )
    try:
        key = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise AuthenticationError(f"Invalid {path.name} format: {e}") from e

    if not isinstance(key, dict):
        raise AuthenticationError(f"Invalid {path.name} format: expected an object")

    missing = [name for name in REQUIRED_KEY_FIELDS if not key.get(name)]
    if missing:
        raise AuthenticationError(
            f"Invalid {path.name} format - missing required field(s): "
            + ", ".join(missing),
            details=missing,
        )
    return key


class ServiceAccountAuth:
    """Obtains OAuth2 access tokens from a service-account key file."""

    def __init__(
        self, key_path: str | Path, scopes: list[str] | None = None
    ) -> None:
        self._key_path = Path(key_path)
        self._scopes = scopes or SCRIPT_SCOPES

    def credentials(self) -> service_account.Credentials:
        """Build credentials from the key file (no network access)."""
        key = load_service_account_key(self._key_path)
        try:
            return service_account.Credentials.from_service_account_info(
                key, scopes=self._scopes
            )
        except (ValueError, KeyError) as e:
            raise AuthenticationError(
                f"Failed to load authentication from {self._key_path.name}: {e}"
            ) from e

    def get_access_token(self) -> str:
        """Refresh the credentials and return a bearer token."""
        creds = self.credentials()
        try:
            creds.refresh(google_requests.Request())
        except google.auth.exceptions.RefreshError as e:
            raise AuthenticationError(f"Token request rejected: {e}") from e
        except google.auth.exceptions.TransportError as e:
            raise RemoteError(f"Network error during token request: {e}") from e
        token: str = creds.token
        return token

    async def get_access_token_async(self) -> str:
        """get_access_token() without blocking the event loop."""
        return await asyncio.to_thread(self.get_access_token)
