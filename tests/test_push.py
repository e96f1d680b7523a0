"""Tests for the push operation."""

from __future__ import annotations

from pathlib import Path

import pytest

from gascli.client import SyncClient, collect_files, walk_project
from gascli.config import ProjectRef
from gascli.exceptions import ProjectError
from gascli.transport import LocalFileTransport


def _make_project(project_dir: Path) -> None:
    (project_dir / "system").mkdir(parents=True)
    (project_dir / "system" / "appsscript.json").write_text('{"runtimeVersion": "V8"}')
    (project_dir / "Code.js").write_text("function main() {}\n")
    (project_dir / "Sidebar.html").write_text("<p>sidebar</p>\n")
    (project_dir / "lib").mkdir()
    (project_dir / "lib" / "Utils.js").write_text("function util() {}\n")


@pytest.mark.asyncio
async def test_push_sends_single_update(
    sync_client: SyncClient,
    local_transport: LocalFileTransport,
    project: ProjectRef,
    tmp_path: Path,
) -> None:
    """All files go out in exactly one updateContent call."""
    _make_project(tmp_path)
    result = await sync_client.push(project, tmp_path)

    assert result.files_pushed == 4
    assert len(local_transport.update_calls) == 1
    call = local_transport.update_calls[0]
    assert call["script_id"] == project.script_id
    names = sorted((f["name"], f["type"]) for f in call["files"])
    assert names == [
        ("Code", "SERVER_JS"),
        ("Sidebar", "HTML"),
        ("appsscript", "JSON"),
        ("lib/Utils", "SERVER_JS"),
    ]


@pytest.mark.asyncio
async def test_push_sends_file_contents(
    sync_client: SyncClient,
    local_transport: LocalFileTransport,
    project: ProjectRef,
    tmp_path: Path,
) -> None:
    _make_project(tmp_path)
    await sync_client.push(project, tmp_path)

    files = {f["name"]: f["source"] for f in local_transport.update_calls[0]["files"]}
    assert files["Code"] == "function main() {}\n"
    assert files["appsscript"] == '{"runtimeVersion": "V8"}'


@pytest.mark.asyncio
async def test_push_skips_node_modules_and_git(
    sync_client: SyncClient,
    local_transport: LocalFileTransport,
    project: ProjectRef,
    tmp_path: Path,
) -> None:
    _make_project(tmp_path)
    (tmp_path / "node_modules" / "lib").mkdir(parents=True)
    (tmp_path / "node_modules" / "lib" / "index.js").write_text("module.exports = 1")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "hook.js").write_text("// hook")

    result = await sync_client.push(project, tmp_path)

    assert result.files_pushed == 4
    names = {f["name"] for f in local_transport.update_calls[0]["files"]}
    assert not any("node_modules" in n or ".git" in n for n in names)


@pytest.mark.asyncio
async def test_push_reports_unmappable_files(
    sync_client: SyncClient, project: ProjectRef, tmp_path: Path
) -> None:
    """CSS and stray JSON files are walked but not uploaded."""
    _make_project(tmp_path)
    (tmp_path / "theme.css").write_text("body {}")
    (tmp_path / "data.json").write_text("{}")

    result = await sync_client.push(project, tmp_path)

    assert result.files_pushed == 4
    assert sorted(result.skipped) == ["data.json", "theme.css"]


@pytest.mark.asyncio
async def test_push_empty_folder_makes_no_request(
    sync_client: SyncClient,
    local_transport: LocalFileTransport,
    project: ProjectRef,
    tmp_path: Path,
) -> None:
    """Pushing nothing must never wipe the remote project."""
    (tmp_path / "notes.md").write_text("# notes")

    with pytest.raises(ProjectError, match="No valid files"):
        await sync_client.push(project, tmp_path)
    assert local_transport.call_count == 0


@pytest.mark.asyncio
async def test_push_missing_folder(
    sync_client: SyncClient,
    local_transport: LocalFileTransport,
    project: ProjectRef,
    tmp_path: Path,
) -> None:
    with pytest.raises(ProjectError, match="not found"):
        await sync_client.push(project, tmp_path / "missing")
    assert local_transport.call_count == 0


@pytest.mark.asyncio
async def test_push_without_script_id(
    sync_client: SyncClient, local_transport: LocalFileTransport, tmp_path: Path
) -> None:
    _make_project(tmp_path)
    with pytest.raises(ProjectError):
        await sync_client.push(ProjectRef(name="drafts", script_id=""), tmp_path)
    assert local_transport.call_count == 0


@pytest.mark.asyncio
async def test_pull_then_push_round_trips(
    sync_client: SyncClient,
    local_transport: LocalFileTransport,
    project: ProjectRef,
    tmp_path: Path,
) -> None:
    """Pushing a freshly pulled folder sends back the same files."""
    content = await local_transport.get_content(project.script_id)
    await sync_client.pull(project, tmp_path)
    await sync_client.push(project, tmp_path)

    pushed = sorted(
        (f["name"], f["type"], f["source"])
        for f in local_transport.update_calls[0]["files"]
    )
    pulled = sorted((f.name, f.type, f.source) for f in content.files)
    assert pushed == pulled


def test_walk_project_is_sorted(tmp_path: Path) -> None:
    _make_project(tmp_path)
    paths = [p.relative_to(tmp_path).as_posix() for p in walk_project(tmp_path)]
    assert paths == [
        "Code.js",
        "Sidebar.html",
        "lib/Utils.js",
        "system/appsscript.json",
    ]


def test_list_project_files_matches_walk(
    sync_client: SyncClient, tmp_path: Path
) -> None:
    _make_project(tmp_path)
    (tmp_path / "theme.css").write_text("body {}")
    assert "theme.css" in sync_client.list_project_files(tmp_path)


def test_collect_files_reads_sources(tmp_path: Path) -> None:
    _make_project(tmp_path)
    files, skipped = collect_files(tmp_path)
    assert skipped == []
    assert {f.name for f in files} == {"Code", "Sidebar", "appsscript", "lib/Utils"}
