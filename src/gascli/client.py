"""SyncClient - pull and push Apps Script projects.

Pull writes every remote file into the project folder (last pull wins).
Push sends the complete local file set in a single updateContent call; the
API replaces the whole remote project with it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from gascli.config import require_script_id
from gascli.exceptions import GasCliError, ProjectError, RemoteError
from gascli.mapping import GASFile, is_valid_project_file, to_gas_file, to_local_path

if TYPE_CHECKING:
    from gascli.activity_log import ActivityLog
    from gascli.config import ProjectRef
    from gascli.transport import Transport

SKIP_DIRS = frozenset({"node_modules", ".git"})


@dataclass
class PullResult:
    """Result of a pull operation."""

    script_id: str
    project_dir: Path
    files: list[Path] = field(default_factory=list)


@dataclass
class PushResult:
    """Result of a push operation."""

    script_id: str
    files_pushed: int
    skipped: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Pushed {self.files_pushed} files"


class SyncClient:
    """Client for synchronizing project folders with Apps Script.

    Example:
        >>> transport = GoogleAppsScriptTransport(access_token="ya29...")
        >>> client = SyncClient(transport, log)
        >>> await client.pull(project, Path("projects/leads"))
    """

    def __init__(self, transport: Transport, log: ActivityLog) -> None:
        self._transport = transport
        self._log = log

    # --- Pull ---

    async def pull(self, project: ProjectRef, project_dir: str | Path) -> PullResult:
        """Download every remote file into ``project_dir``.

        Existing files with the same name are overwritten without prompting;
        other local files are left alone. A failure part way leaves the files
        written so far in place.

        Raises:
            ProjectError: The project has no script ID (no request is made).
            RemoteError: The API call failed, returned no file list, or named
                a file outside the project folder (nothing is written then).
        """
        require_script_id(project)
        project_dir = Path(project_dir)
        self._log.info("PULL", f"Project: {project.name}, ID: {project.script_id}")

        try:
            content = await self._transport.get_content(project.script_id)
            result = PullResult(script_id=content.script_id, project_dir=project_dir)
            targets = [
                (gas_file, local_target(project_dir, gas_file))
                for gas_file in content.files
            ]

            for gas_file, file_path in targets:
                relative = file_path.relative_to(project_dir).as_posix()
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_path.write_text(gas_file.source, encoding="utf-8")
                result.files.append(file_path)
                self._log.debug("FILE_DOWNLOADED", f"Downloaded: {relative}")
        except GasCliError as e:
            self._log.error(
                "PULL_ERROR", f"Failed to pull project {project.name}: {e}"
            )
            raise

        self._log.info(
            "PULL_SUCCESS",
            f"Project {project.name} pulled successfully ({len(result.files)} files)",
        )
        return result

    # --- Push ---

    async def push(self, project: ProjectRef, project_dir: str | Path) -> PushResult:
        """Upload the project folder, replacing the remote project content.

        Raises:
            ProjectError: No script ID, missing folder, or no files to push.
                Nothing is sent in these cases.
            RemoteError: The API rejected the update.
        """
        require_script_id(project)
        project_dir = Path(project_dir)
        self._log.info("PUSH", f"Project: {project.name}, ID: {project.script_id}")

        if not project_dir.is_dir():
            raise ProjectError(f"Project directory not found: {project_dir}")

        files, skipped = collect_files(project_dir)
        if not files:
            raise ProjectError(f"No valid files found to upload in {project_dir}")

        try:
            await self._transport.update_content(project.script_id, files)
        except GasCliError as e:
            self._log.error(
                "PUSH_ERROR", f"Failed to push project {project.name}: {e}"
            )
            raise

        self._log.info(
            "PUSH_SUCCESS",
            f"Project {project.name} pushed successfully ({len(files)} files)",
        )
        return PushResult(
            script_id=project.script_id, files_pushed=len(files), skipped=skipped
        )

    # --- Listing ---

    def list_project_files(self, project_dir: str | Path) -> list[str]:
        """Relative paths of the files push would consider."""
        return [
            path.relative_to(project_dir).as_posix()
            for path in walk_project(Path(project_dir))
        ]


# --- Module-level helpers ---


def local_target(project_dir: Path, gas_file: GASFile) -> Path:
    """Where a remote file is written. It must stay inside ``project_dir``."""
    file_path = project_dir / to_local_path(gas_file)
    if not file_path.resolve().is_relative_to(project_dir.resolve()):
        raise RemoteError(
            f"Remote file {gas_file.name!r} maps outside the project folder"
        )
    return file_path


def walk_project(project_dir: Path) -> list[Path]:
    """Project files in sorted order, skipping node_modules and .git."""
    found: list[Path] = []
    for root, dirs, names in os.walk(project_dir):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for name in sorted(names):
            if is_valid_project_file(name):
                found.append(Path(root) / name)
    return found


def collect_files(project_dir: Path) -> tuple[list[GASFile], list[str]]:
    """Read every pushable file. Returns (files, skipped relative paths)."""
    files: list[GASFile] = []
    skipped: list[str] = []
    for path in walk_project(project_dir):
        relative = path.relative_to(project_dir).as_posix()
        mapped = to_gas_file(relative)
        if mapped is None:
            skipped.append(relative)
            continue
        files.append(
            GASFile(
                name=mapped.name,
                type=mapped.type,
                source=path.read_text(encoding="utf-8"),
            )
        )
    return files, skipped
