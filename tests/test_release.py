"""Tests for release creation."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from gascli.activity_log import ActivityLog
from gascli.config import ValidationReport
from gascli.exceptions import ReleaseError
from gascli.release import (
    Git,
    ReleaseCreator,
    SemVer,
    build_changelog_section,
    bump_version,
    changelog_section,
    insert_changelog_section,
    read_manifest_version,
    resolve_new_version,
    select_type,
    tag_message,
    update_readme_badge,
    write_manifest_version,
)

CHANGELOG = """# Changelog

## [1.2.3] - 2026-01-10

### Fixed
- Sidebar layout

---
"""


class FakeGit(Git):
    """Records git commands instead of running them."""

    def __init__(
        self,
        *,
        dirty: bool = True,
        tags: set[str] | None = None,
        push_fails: bool = False,
    ) -> None:
        self.dirty = dirty
        self.tags = tags or set()
        self.push_fails = push_fails
        self.commands: list[tuple[str, ...]] = []

    def has_changes(self) -> bool:
        return self.dirty

    def tag_exists(self, tag: str) -> bool:
        return tag in self.tags

    def commit_all(self, message: str) -> None:
        self.commands.append(("commit", message))
        self.dirty = False

    def tag(self, tag: str, message: str) -> None:
        self.commands.append(("tag", tag, message))
        self.tags.add(tag)

    def push(self) -> None:
        if self.push_fails:
            raise ReleaseError("git push failed: no remote")
        self.commands.append(("push",))


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "package.json").write_text(
        json.dumps({"name": "leads", "version": "1.2.3"}, indent=2) + "\n"
    )
    (repo / "CHANGELOG.md").write_text(CHANGELOG)
    (repo / "README.md").write_text(
        "# Leads\n\n![Version](https://img.shields.io/badge/version-1.2.3-blue)\n"
    )
    return repo


def _creator(repo: Path, activity_log: ActivityLog, git: FakeGit) -> ReleaseCreator:
    return ReleaseCreator(repo, activity_log, git=git, today=lambda: date(2026, 10, 19))


class TestBumpVersion:
    @pytest.mark.parametrize(
        ("current", "release_type", "expected"),
        [
            ("1.2.3", "major", "2.0.0"),
            ("1.2.3", "minor", "1.3.0"),
            ("1.2.3", "patch", "1.2.4"),
            ("1.2.3", "preview", "1.2.4-beta.1"),
            ("1.2.4-beta.1", "preview", "1.2.4-beta.2"),
            ("1.2.4-beta.1", "patch", "1.2.4"),
            ("1.2.4-rc", "preview", "1.2.4-beta.1"),
            ("v0.9.9", "minor", "0.10.0"),
        ],
    )
    def test_bump(self, current: str, release_type: str, expected: str) -> None:
        assert bump_version(current, release_type) == expected

    def test_invalid_type(self) -> None:
        with pytest.raises(ValueError, match="Invalid release type"):
            bump_version("1.0.0", "huge")

    def test_invalid_version(self) -> None:
        with pytest.raises(ValueError, match="Not a semantic version"):
            bump_version("1.0", "patch")

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("minor", "minor"), ("MAJOR", "major"), ("bogus", "patch"), (None, "patch")],
    )
    def test_select_type(self, value: str | None, expected: str) -> None:
        assert select_type(value) == expected

    def test_semver_ordering(self) -> None:
        assert SemVer.parse("1.2.4-beta.1") < SemVer.parse("1.2.4")
        assert SemVer.parse("1.2.4-beta.2") > SemVer.parse("1.2.4-beta.1")
        assert SemVer.parse("1.10.0") > SemVer.parse("1.9.9")


class TestChangelog:
    def test_adopts_higher_changelog_version(self) -> None:
        changelog = CHANGELOG.replace("# Changelog\n", "# Changelog\n\n## [2.0.0]\n")
        assert resolve_new_version("1.2.3", "patch", changelog) == ("2.0.0", True)

    def test_ignores_lower_or_equal_versions(self) -> None:
        assert resolve_new_version("1.2.3", "patch", CHANGELOG) == ("1.2.4", False)

    def test_ignores_malformed_headers(self) -> None:
        changelog = "# Changelog\n\n## [Unreleased]\n\n## [2.0]\n"
        assert resolve_new_version("1.2.3", "minor", changelog) == ("1.3.0", False)

    def test_section_is_inserted_after_title(self) -> None:
        section = build_changelog_section("1.2.4", "patch", date(2026, 10, 19))
        updated = insert_changelog_section(CHANGELOG, section)

        assert updated.startswith("# Changelog\n\n## [1.2.4] - 2026-10-19\n")
        assert updated.index("[1.2.4]") < updated.index("[1.2.3]")
        assert "### 🐛 Patch Release" in updated

    def test_title_added_when_missing(self) -> None:
        updated = insert_changelog_section("", "## [1.0.0]\n")
        assert updated.startswith("# Changelog\n\n## [1.0.0]")

    def test_changelog_section_body(self) -> None:
        assert changelog_section(CHANGELOG, "1.2.3") == "### Fixed\n- Sidebar layout"
        assert changelog_section(CHANGELOG, "9.9.9") is None


class TestTagMessage:
    def test_bullets_from_section(self) -> None:
        message = tag_message("### 🐛 Patch Release\n- Fixed sidebar", "1.2.4")
        assert message == "Release v1.2.4\n\n- Patch Release\n- Fixed sidebar"

    def test_fallback_without_section(self) -> None:
        assert tag_message(None, "1.2.4") == "Release v1.2.4"

    def test_long_message_is_truncated(self) -> None:
        section = "\n".join(f"- change number {i}" for i in range(100))
        message = tag_message(section, "1.2.4")
        assert message.endswith("...")
        assert len(message) <= 503


class TestFiles:
    def test_readme_badge(self) -> None:
        text = "![v](https://img.shields.io/badge/version-1.2.3-blue)"
        updated, changed = update_readme_badge(text, "1.2.4-beta.1")
        assert changed
        assert "version-1.2.4--beta.1-blue" in updated

    def test_readme_without_badge(self) -> None:
        assert update_readme_badge("# Title\n", "1.0.0") == ("# Title\n", False)

    def test_package_json_round_trip(self, repo: Path) -> None:
        manifest = repo / "package.json"
        write_manifest_version(manifest, "1.2.4")
        assert read_manifest_version(manifest) == "1.2.4"
        assert json.loads(manifest.read_text())["name"] == "leads"

    def test_pyproject_version(self, tmp_path: Path) -> None:
        manifest = tmp_path / "pyproject.toml"
        manifest.write_text('[project]\nname = "x"\nversion = "0.1.0"\n')
        write_manifest_version(manifest, "0.2.0")
        assert read_manifest_version(manifest) == "0.2.0"
        assert 'name = "x"' in manifest.read_text()


class TestReleaseCreator:
    def test_full_release(self, repo: Path, activity_log: ActivityLog) -> None:
        git = FakeGit()
        result = _creator(repo, activity_log, git).create_release("patch")

        assert result.state.new_version == "1.2.4"
        assert read_manifest_version(repo / "package.json") == "1.2.4"
        assert "## [1.2.4] - 2026-10-19" in (repo / "CHANGELOG.md").read_text()
        assert "version-1.2.4-blue" in (repo / "README.md").read_text()

        assert git.commands[0] == ("commit", "chore: bump version to 1.2.4")
        assert git.commands[1][:2] == ("tag", "v1.2.4")
        assert "Automated release v1.2.4" in git.commands[1][2]
        assert git.commands[2] == ("push",)
        assert result.warnings == []

    def test_step_order(self, repo: Path, activity_log: ActivityLog) -> None:
        result = _creator(repo, activity_log, FakeGit()).create_release("minor")
        steps = [o.step for o in result.outcomes]
        assert steps == [
            "bump_version",
            "update_manifest",
            "update_changelog",
            "update_readme",
            "commit",
            "tag",
            "push",
        ]

    def test_adopted_version_keeps_changelog(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        changelog = repo / "CHANGELOG.md"
        changelog.write_text(
            CHANGELOG.replace("# Changelog\n", "# Changelog\n\n## [2.0.0]\n- Big\n")
        )
        before = changelog.read_text()

        result = _creator(repo, activity_log, FakeGit()).create_release("patch")

        assert result.state.new_version == "2.0.0"
        assert result.state.adopted_from_changelog
        assert changelog.read_text() == before
        assert "VERSION_ADOPTED" in [e.action for e in activity_log.recent(50)]

    def test_missing_readme_is_warning(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        (repo / "README.md").unlink()
        result = _creator(repo, activity_log, FakeGit()).create_release("patch")

        assert [w.step for w in result.warnings] == ["update_readme"]
        assert result.outcomes[-1].step == "push"

    def test_push_failure_is_warning(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        git = FakeGit(push_fails=True)
        result = _creator(repo, activity_log, git).create_release("patch")

        assert result.warnings[-1].step == "push"
        assert ("tag", "v1.2.4") == git.commands[-1][:2]

    def test_no_push(self, repo: Path, activity_log: ActivityLog) -> None:
        git = FakeGit()
        result = _creator(repo, activity_log, git).create_release("patch", push=False)
        assert "push" not in [o.step for o in result.outcomes]
        assert ("push",) not in git.commands

    def test_dirty_tree_refused(self, repo: Path, activity_log: ActivityLog) -> None:
        with pytest.raises(ReleaseError, match="not clean"):
            _creator(repo, activity_log, FakeGit(dirty=True)).create_release(
                "patch", require_clean=True
            )
        assert read_manifest_version(repo / "package.json") == "1.2.3"

    def test_valid_config_runs_first(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        report = ValidationReport(warnings=["Project 'drafts' has empty ID"])
        result = _creator(repo, activity_log, FakeGit()).create_release(
            "patch", validate=lambda: report
        )

        assert result.outcomes[0].step == "validate_config"
        assert result.outcomes[0].status == "warning"
        assert "drafts" in result.outcomes[0].message
        assert result.state.new_version == "1.2.4"

    def test_invalid_config_stops_before_bump(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        git = FakeGit()
        report = ValidationReport(errors=["key.json not found", "No projects"])

        with pytest.raises(ReleaseError, match="key.json not found; No projects"):
            _creator(repo, activity_log, git).create_release(
                "patch", validate=lambda: report
            )

        assert read_manifest_version(repo / "package.json") == "1.2.3"
        assert "1.2.4" not in (repo / "CHANGELOG.md").read_text()
        assert git.commands == []

    def test_missing_changelog(self, repo: Path, activity_log: ActivityLog) -> None:
        (repo / "CHANGELOG.md").unlink()
        with pytest.raises(ReleaseError, match="CHANGELOG.md not found"):
            _creator(repo, activity_log, FakeGit()).create_release("patch")

    def test_failure_reports_completed_steps(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        class FailingTagGit(FakeGit):
            def tag(self, tag: str, message: str) -> None:
                raise ReleaseError("git tag failed")

        with pytest.raises(ReleaseError) as exc_info:
            _creator(repo, activity_log, FailingTagGit()).create_release("patch")

        done = [o.step for o in exc_info.value.outcomes]
        assert done[-1] == "commit"
        assert "tag" not in done
        assert activity_log.recent(50)[-1].action == "RELEASE_ERROR"

    def test_resume_after_commit(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        write_manifest_version(repo / "package.json", "1.2.4")
        git = FakeGit(dirty=False)

        result = _creator(repo, activity_log, git).resume("v1.2.4")

        statuses = {o.step: o.status for o in result.outcomes}
        assert statuses == {"commit": "skipped", "tag": "done", "push": "done"}
        assert git.commands[0][:2] == ("tag", "v1.2.4")

    def test_resume_is_idempotent(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        git = FakeGit(dirty=False, tags={"v1.2.3"})
        result = _creator(repo, activity_log, git).resume("1.2.3", push=False)
        assert [o.status for o in result.outcomes] == ["skipped", "skipped"]

    def test_resume_version_mismatch(
        self, repo: Path, activity_log: ActivityLog
    ) -> None:
        with pytest.raises(ReleaseError, match="not 2.0.0"):
            _creator(repo, activity_log, FakeGit()).resume("2.0.0")
