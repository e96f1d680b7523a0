"""Custom exceptions for gascli."""

from __future__ import annotations

from typing import Any


class GasCliError(Exception):
    """Base exception for all gascli errors."""

    code = "GAS_CLI_ERROR"

    def __init__(self, message: str, details: Any = None) -> None:
        self.details = details
        super().__init__(message)


class ConfigError(GasCliError):
    """Raised when config.json or projects.json is missing or malformed."""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message, details=self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return super().__str__()
        lines = [super().__str__()]
        lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)


class AuthenticationError(GasCliError):
    """Raised when credential material is missing, malformed or rejected."""

    code = "AUTHENTICATION_ERROR"


class ProjectError(GasCliError):
    """Raised for unknown projects, missing script IDs or empty pushes."""

    code = "PROJECT_ERROR"


class RemoteError(GasCliError):
    """Raised when the Apps Script API rejects a call or answers badly."""

    code = "REMOTE_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(RemoteError):
    """Raised when a script project is not found (404)."""

    def __init__(self, script_id: str, message: str | None = None) -> None:
        self.script_id = script_id
        super().__init__(
            message or f"Script project not found: {script_id}", status_code=404
        )


class ReleaseError(GasCliError):
    """Raised when a release step fails.

    ``outcomes`` holds the steps that completed before the failure; they are
    not rolled back.
    """

    code = "RELEASE_ERROR"

    def __init__(self, message: str, outcomes: list[Any] | None = None) -> None:
        self.outcomes = outcomes or []
        super().__init__(message)
