"""Transport layer for the Apps Script API.

Defines the Transport protocol and implementations:
- GoogleAppsScriptTransport: Production transport using the Apps Script API
- LocalFileTransport: Test transport reading from local golden files
"""

from __future__ import annotations

import json
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import certifi
import httpx

from gascli.exceptions import (
    AuthenticationError,
    NotFoundError,
    RemoteError,
)
from gascli.mapping import GASFile

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

# API constants
API_BASE = "https://script.googleapis.com/v1"
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True)
class ProjectContent:
    """Content of an Apps Script project (all files)."""

    script_id: str
    files: tuple[GASFile, ...]
    raw: dict[str, Any] = field(default_factory=dict)


# --- Abstract Transport ---


class Transport(ABC):
    """Abstract base class for Apps Script data transport."""

    @abstractmethod
    async def get_content(self, script_id: str) -> ProjectContent:
        """Fetch all files in a project.

        Args:
            script_id: The Apps Script project identifier.

        Returns:
            ProjectContent with all script files.

        Raises:
            RemoteError: The call failed or the response has no file list.
        """
        ...

    @abstractmethod
    async def update_content(
        self, script_id: str, files: Sequence[GASFile]
    ) -> dict[str, Any]:
        """Replace all files in a project (complete replacement, not a diff).

        Args:
            script_id: The Apps Script project identifier.
            files: Every file the project should contain afterwards.

        Returns:
            Raw API response dict.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


# --- Parsing helpers ---


def parse_project_content(script_id: str, data: dict[str, Any]) -> ProjectContent:
    """Build ProjectContent from a projects.getContent response."""
    raw_files = data.get("files")
    if not isinstance(raw_files, list):
        raise RemoteError(f"No files found in project {script_id}")

    files = tuple(
        GASFile(
            name=f.get("name", ""),
            type=f.get("type", "SERVER_JS"),
            source=f.get("source", ""),
        )
        for f in raw_files
    )
    return ProjectContent(
        script_id=data.get("scriptId", script_id),
        files=files,
        raw=data,
    )


# --- Google Apps Script Transport ---


class GoogleAppsScriptTransport(Transport):
    """Production transport that talks to the Apps Script API.

    Handles SSL and HTTP communication; the access token comes from
    ServiceAccountAuth.
    """

    def __init__(
        self,
        access_token: str,
        timeout: int = DEFAULT_TIMEOUT,
        *,
        base_url: str = API_BASE,
    ) -> None:
        """Initialize the transport.

        Args:
            access_token: OAuth2 access token with script.projects scope.
            timeout: Request timeout in seconds.
            base_url: API root, overridable for tests.
        """
        self._base_url = base_url.rstrip("/")
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

    async def get_content(self, script_id: str) -> ProjectContent:
        """Fetch all files in a project from the Apps Script API."""
        url = f"{self._base_url}/projects/{script_id}/content"
        data = await self._request("GET", url, script_id)
        return parse_project_content(script_id, data)

    async def update_content(
        self, script_id: str, files: Sequence[GASFile]
    ) -> dict[str, Any]:
        """Replace all files in a project."""
        url = f"{self._base_url}/projects/{script_id}/content"
        body: dict[str, Any] = {"files": [f.to_api() for f in files]}
        return await self._request("PUT", url, script_id, body)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    # --- HTTP helpers ---

    async def _request(
        self,
        method: str,
        url: str,
        script_id: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, url, json=body)
            resp.raise_for_status()
            result = resp.json()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e, script_id) from e
        except httpx.RequestError as e:
            raise RemoteError(f"Network error: {e}") from e
        except ValueError as e:
            raise RemoteError(f"Malformed API response: {e}") from e

        if not isinstance(result, dict):
            raise RemoteError("Malformed API response: expected a JSON object")
        return result

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, script_id: str
    ) -> Exception:
        """Convert HTTP errors to gascli exceptions."""
        status = e.response.status_code
        if status == 401:
            return AuthenticationError("Invalid or expired access token")
        if status == 403:
            return RemoteError(
                f"Access denied (403): {e.response.text}. "
                "Share the script with the service account and make sure "
                "the Apps Script API is enabled.",
                status_code=status,
            )
        if status == 404:
            return NotFoundError(script_id)
        return RemoteError(
            f"API error ({status}): {e.response.text}", status_code=status
        )


# --- Local File Transport ---


class LocalFileTransport(Transport):
    """Test transport that reads from local golden files.

    Expected directory structure:
        golden_dir/
            content.json     # projects.getContent response
    """

    def __init__(self, golden_dir: Path) -> None:
        self._golden_dir = golden_dir
        self._get_calls: list[str] = []
        self._update_calls: list[dict[str, Any]] = []

    async def get_content(self, script_id: str) -> ProjectContent:
        """Read project content from a local file."""
        self._get_calls.append(script_id)
        path = self._golden_dir / "content.json"
        if not path.exists():
            raise NotFoundError(script_id, f"Golden file not found: {path}")
        data = json.loads(path.read_text(encoding="utf-8"))
        return parse_project_content(script_id, data)

    async def update_content(
        self, script_id: str, files: Sequence[GASFile]
    ) -> dict[str, Any]:
        """Record the update call and return a mock response."""
        payload = [f.to_api() for f in files]
        self._update_calls.append({"script_id": script_id, "files": payload})
        return {"scriptId": script_id, "files": payload}

    async def close(self) -> None:
        """No-op for local file transport."""

    @property
    def get_calls(self) -> list[str]:
        return self._get_calls

    @property
    def update_calls(self) -> list[dict[str, Any]]:
        """Get recorded update calls (for test assertions)."""
        return self._update_calls

    @property
    def call_count(self) -> int:
        return len(self._get_calls) + len(self._update_calls)
