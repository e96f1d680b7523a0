"""Release creation: version bump, manifests, changelog and git steps.

The pipeline runs these steps in order and never goes back:

    select_type -> bump_version -> update_manifests -> commit -> tag -> push

Optional checks (a clean working tree, a valid configuration) run first.

A failing step raises ReleaseError and the remaining steps are skipped.
Completed steps are not undone; commit and tag check their own
preconditions, so resume() can finish a release that stopped after the
commit.
"""

from __future__ import annotations

import functools
import json
import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gascli.exceptions import ReleaseError

if TYPE_CHECKING:
    from gascli.activity_log import ActivityLog
    from gascli.config import ValidationReport

RELEASE_TYPES = ("major", "minor", "patch", "preview")
DEFAULT_RELEASE_TYPE = "patch"

TAG_MESSAGE_LIMIT = 500

RELEASE_HEADINGS: dict[str, str] = {
    "major": "🚀 Major Release",
    "minor": "✨ Minor Release",
    "patch": "🐛 Patch Release",
    "preview": "🔍 Preview Release",
}

SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
CHANGELOG_HEADER_RE = re.compile(
    r"^##\s+\[?v?(\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?)\]?", re.MULTILINE
)
BADGE_RE = re.compile(r"(img\.shields\.io/badge/version-)((?:[^-/)\s]|--)+)(-)")
PYPROJECT_VERSION_RE = re.compile(r'^(version\s*=\s*")([^"]+)(")', re.MULTILINE)


# --- Semantic versions ---


@functools.total_ordering
@dataclass(frozen=True)
class SemVer:
    """A semantic version. Compared numerically, field by field."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""

    @classmethod
    def parse(cls, text: str) -> SemVer:
        match = SEMVER_RE.match(text.strip())
        if not match:
            raise ValueError(f"Not a semantic version: {text!r}")
        return cls(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            prerelease=match["pre"] or "",
        )

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        return f"{core}-{self.prerelease}" if self.prerelease else core

    def _key(self) -> tuple:
        # A prerelease sorts below its release
        if not self.prerelease:
            return (self.major, self.minor, self.patch, 1, ())
        parts = tuple(
            (0, int(p), "") if p.isdigit() else (1, 0, p)
            for p in self.prerelease.split(".")
        )
        return (self.major, self.minor, self.patch, 0, parts)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()


def select_type(value: str | None) -> str:
    """Normalize a release type; anything unknown falls back to patch."""
    normalized = (value or "").strip().lower()
    return normalized if normalized in RELEASE_TYPES else DEFAULT_RELEASE_TYPE


def bump_version(current: str, release_type: str) -> str:
    """Compute the next version.

    >>> bump_version("1.2.3", "minor")
    '1.3.0'
    >>> bump_version("1.2.3", "preview")
    '1.2.4-beta.1'

    For a prerelease ``current``, patch releases the pending version and
    preview increments the beta counter.
    """
    v = SemVer.parse(current)
    if release_type == "major":
        return f"{v.major + 1}.0.0"
    if release_type == "minor":
        return f"{v.major}.{v.minor + 1}.0"
    if release_type == "preview":
        match = re.fullmatch(r"beta\.(\d+)", v.prerelease)
        if match:
            return f"{v.major}.{v.minor}.{v.patch}-beta.{int(match[1]) + 1}"
        if v.prerelease:
            return f"{v.major}.{v.minor}.{v.patch}-beta.1"
        return f"{v.major}.{v.minor}.{v.patch + 1}-beta.1"
    if release_type == "patch":
        if v.prerelease:
            return f"{v.major}.{v.minor}.{v.patch}"
        return f"{v.major}.{v.minor}.{v.patch + 1}"
    raise ValueError(f"Invalid release type: {release_type}")


def changelog_versions(changelog: str) -> list[SemVer]:
    """Well-formed versions found in changelog section headers."""
    versions: list[SemVer] = []
    for match in CHANGELOG_HEADER_RE.finditer(changelog):
        try:
            versions.append(SemVer.parse(match.group(1)))
        except ValueError:
            continue
    return versions


def resolve_new_version(
    current: str, release_type: str, changelog: str = ""
) -> tuple[str, bool]:
    """Next version, adopting a higher changelog version when present.

    Returns:
        (new_version, adopted_from_changelog)
    """
    current_v = SemVer.parse(current)
    recorded = [v for v in changelog_versions(changelog) if v > current_v]
    if recorded:
        return str(max(recorded)), True
    return bump_version(current, release_type), False


# --- Changelog and README text ---


def build_changelog_section(version: str, release_type: str, day: date) -> str:
    heading = RELEASE_HEADINGS.get(release_type, "📦 Release")
    return (
        f"## [{version}] - {day.isoformat()}\n\n"
        f"### {heading}\n"
        f"- Automated release v{version}\n\n"
        f"### Changed\n"
        f"- Version bumped to {version}\n\n"
        f"---\n\n"
    )


def insert_changelog_section(changelog: str, section: str) -> str:
    """Insert ``section`` directly after the changelog title line."""
    match = re.search(r"^# .*$", changelog, re.MULTILINE)
    if match is None:
        return f"# Changelog\n\n{section}{changelog.lstrip()}"
    head = changelog[: match.end()]
    rest = changelog[match.end() :].lstrip("\n")
    return f"{head}\n\n{section}{rest}"


def changelog_section(changelog: str, version: str) -> str | None:
    """Body of the changelog section for ``version``, without its header."""
    lines = changelog.splitlines()
    start = None
    for i, line in enumerate(lines):
        match = CHANGELOG_HEADER_RE.match(line)
        if match and match.group(1) == version:
            start = i + 1
            break
    if start is None:
        return None

    body: list[str] = []
    for line in lines[start:]:
        if CHANGELOG_HEADER_RE.match(line) or line.strip() == "---":
            break
        body.append(line)
    return "\n".join(body).strip()


def tag_message(section: str | None, version: str) -> str:
    """Annotated tag message built from a changelog section.

    Header markers and leading symbols are stripped and every line is
    re-bulleted with ``- ``. The result is capped at 500 characters.
    """
    fallback = f"Release v{version}"
    if not section:
        return fallback

    bullets: list[str] = []
    for line in section.splitlines():
        text = re.sub(r"^\s*#+\s*", "", line)
        text = re.sub(r"^[^\w\[(]+", "", text).strip()
        if text:
            bullets.append(f"- {text}")
    if not bullets:
        return fallback

    message = f"{fallback}\n\n" + "\n".join(bullets)
    if len(message) > TAG_MESSAGE_LIMIT:
        message = message[:TAG_MESSAGE_LIMIT].rstrip() + "..."
    return message


def update_readme_badge(readme: str, version: str) -> tuple[str, bool]:
    """Rewrite a shields.io version badge. Returns (text, changed)."""
    escaped = version.replace("-", "--")
    updated, count = BADGE_RE.subn(
        lambda m: f"{m.group(1)}{escaped}{m.group(3)}", readme
    )
    return updated, count > 0


# --- Package manifest ---


def read_manifest_version(path: Path) -> str:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".toml":
        match = PYPROJECT_VERSION_RE.search(text)
        if not match:
            raise ReleaseError(f"No version field in {path.name}")
        return match.group(2)

    data = json.loads(text)
    version = data.get("version") if isinstance(data, dict) else None
    if not isinstance(version, str):
        raise ReleaseError(f"No version field in {path.name}")
    return version


def write_manifest_version(path: Path, version: str) -> None:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".toml":
        updated = PYPROJECT_VERSION_RE.sub(
            lambda m: f"{m.group(1)}{version}{m.group(3)}", text, count=1
        )
        path.write_text(updated, encoding="utf-8")
        return

    data = json.loads(text)
    data["version"] = version
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", "utf-8")


# --- Git ---


class Git:
    """Thin wrapper around the git command line."""

    def __init__(self, repo_dir: Path, timeout: int = 60) -> None:
        self._repo_dir = repo_dir
        self._timeout = timeout

    def run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self._repo_dir,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ReleaseError(f"git {args[0]} failed: {e}") from e
        if check and result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise ReleaseError(f"git {' '.join(args)} failed: {detail}")
        return result

    def has_changes(self) -> bool:
        return bool(self.run("status", "--porcelain").stdout.strip())

    def tag_exists(self, tag: str) -> bool:
        ref = f"refs/tags/{tag}"
        result = self.run("rev-parse", "-q", "--verify", ref, check=False)
        return result.returncode == 0

    def commit_all(self, message: str) -> None:
        self.run("add", "-A")
        self.run("commit", "-m", message)

    def tag(self, tag: str, message: str) -> None:
        self.run("tag", "-a", tag, "-m", message)

    def push(self) -> None:
        self.run("push")
        self.run("push", "--tags")


# --- Pipeline ---


@dataclass(frozen=True)
class StepOutcome:
    """What happened in one release step."""

    step: str
    status: str  # done, skipped, or warning
    message: str = ""


@dataclass
class ReleaseState:
    current_version: str
    new_version: str
    release_type: str
    adopted_from_changelog: bool = False


@dataclass
class ReleaseResult:
    state: ReleaseState
    outcomes: list[StepOutcome] = field(default_factory=list)

    @property
    def warnings(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if o.status == "warning"]


class ReleaseCreator:
    """Creates a release in a git working tree.

    Example:
        >>> creator = ReleaseCreator(Path("."), log)
        >>> result = creator.create_release("minor")
        >>> result.state.new_version
        '1.3.0'
    """

    def __init__(
        self,
        repo_dir: str | Path,
        log: ActivityLog,
        *,
        git: Git | None = None,
        manifest: str = "package.json",
        changelog: str = "CHANGELOG.md",
        readme: str = "README.md",
        today: Callable[[], date] = date.today,
    ) -> None:
        self._repo_dir = Path(repo_dir)
        self._log = log
        self._git = git or Git(self._repo_dir)
        self._manifest_path = self._repo_dir / manifest
        self._changelog_path = self._repo_dir / changelog
        self._readme_path = self._repo_dir / readme
        self._today = today

    def plan(self, release_type: str | None) -> ReleaseState:
        """Select the release type and compute the new version (no writes)."""
        selected = select_type(release_type)
        if release_type and selected != release_type.strip().lower():
            self._log.warn(
                "RELEASE_TYPE", f"Unknown release type {release_type!r}, using patch"
            )

        if not self._manifest_path.exists():
            raise ReleaseError(f"{self._manifest_path.name} not found")
        if not self._changelog_path.exists():
            raise ReleaseError(f"{self._changelog_path.name} not found")

        current = read_manifest_version(self._manifest_path)
        changelog = self._changelog_path.read_text(encoding="utf-8")
        try:
            new_version, adopted = resolve_new_version(current, selected, changelog)
        except ValueError as e:
            raise ReleaseError(str(e)) from e
        return ReleaseState(
            current_version=current,
            new_version=new_version,
            release_type=selected,
            adopted_from_changelog=adopted,
        )

    def create_release(
        self,
        release_type: str | None = DEFAULT_RELEASE_TYPE,
        *,
        require_clean: bool = False,
        validate: Callable[[], ValidationReport] | None = None,
        push: bool = True,
    ) -> ReleaseResult:
        """Run the whole pipeline.

        ``validate`` is called before the version is bumped; a report with
        errors stops the release before any file changes.
        """
        outcomes: list[StepOutcome] = []

        if require_clean:
            self._run_step(outcomes, "check_clean", self._step_check_clean)
        if validate is not None:
            self._run_step(
                outcomes, "validate_config", lambda: self._step_validate(validate)
            )

        state = self._run_step(
            outcomes, "bump_version", lambda: self.plan(release_type)
        )
        self._log.info(
            "RELEASE_START",
            f"Creating {state.release_type} release: "
            f"{state.current_version} -> {state.new_version}",
        )
        if state.adopted_from_changelog:
            self._log.info(
                "VERSION_ADOPTED",
                f"Using version {state.new_version} already recorded in "
                f"{self._changelog_path.name}",
            )

        self._run_step(
            outcomes, "update_manifests", lambda: self._step_update_manifests(state)
        )
        self._finish(state, outcomes, push=push)
        return ReleaseResult(state=state, outcomes=outcomes)

    def resume(self, version: str, *, push: bool = True) -> ReleaseResult:
        """Finish a release whose files were already updated."""
        try:
            version = str(SemVer.parse(version))
        except ValueError as e:
            raise ReleaseError(str(e)) from e

        if not self._manifest_path.exists():
            raise ReleaseError(f"{self._manifest_path.name} not found")
        try:
            current = read_manifest_version(self._manifest_path)
        except ValueError as e:
            raise ReleaseError(f"Invalid {self._manifest_path.name}: {e}") from e
        if current != version:
            raise ReleaseError(
                f"{self._manifest_path.name} is at {current}, not {version}"
            )
        state = ReleaseState(
            current_version=version, new_version=version, release_type="resume"
        )
        outcomes: list[StepOutcome] = []
        self._finish(state, outcomes, push=push)
        return ReleaseResult(state=state, outcomes=outcomes)

    # --- Steps ---

    def _finish(
        self, state: ReleaseState, outcomes: list[StepOutcome], *, push: bool
    ) -> None:
        version = state.new_version
        self._run_step(outcomes, "commit", lambda: self._step_commit(version))
        self._run_step(outcomes, "tag", lambda: self._step_tag(version))
        if push:
            self._run_step(outcomes, "push", self._step_push)
        self._log.info("RELEASE_SUCCESS", f"Release v{version} created")

    def _run_step(
        self, outcomes: list[StepOutcome], name: str, fn: Callable[[], Any]
    ) -> Any:
        try:
            value = fn()
        except ReleaseError as e:
            e.outcomes = list(outcomes)
            self._log.error("RELEASE_ERROR", f"{name}: {e}")
            raise
        except (OSError, ValueError) as e:
            self._log.error("RELEASE_ERROR", f"{name}: {e}")
            raise ReleaseError(f"{name} failed: {e}", outcomes=list(outcomes)) from e

        if isinstance(value, StepOutcome):
            outcomes.append(value)
        elif isinstance(value, list):
            outcomes.extend(value)
        else:
            outcomes.append(StepOutcome(name, "done"))
        return value

    def _step_check_clean(self) -> StepOutcome:
        if self._git.has_changes():
            raise ReleaseError(
                "Working directory is not clean. "
                "Please commit or stash changes first."
            )
        return StepOutcome("check_clean", "done")

    def _step_validate(self, validate: Callable[[], ValidationReport]) -> StepOutcome:
        report = validate()
        if not report.is_valid:
            raise ReleaseError(
                "Configuration is invalid: " + "; ".join(report.errors)
            )
        if report.warnings:
            return StepOutcome(
                "validate_config", "warning", "; ".join(report.warnings)
            )
        return StepOutcome("validate_config", "done")

    def _step_update_manifests(self, state: ReleaseState) -> list[StepOutcome]:
        version = state.new_version
        outcomes: list[StepOutcome] = []

        write_manifest_version(self._manifest_path, version)
        outcomes.append(
            StepOutcome(
                "update_manifest", "done", f"{self._manifest_path.name} -> {version}"
            )
        )

        changelog = self._changelog_path.read_text(encoding="utf-8")
        if changelog_section(changelog, version) is not None:
            outcomes.append(
                StepOutcome(
                    "update_changelog", "skipped", f"{version} already recorded"
                )
            )
        else:
            section = build_changelog_section(
                version, state.release_type, self._today()
            )
            self._changelog_path.write_text(
                insert_changelog_section(changelog, section), encoding="utf-8"
            )
            outcomes.append(StepOutcome("update_changelog", "done"))

        outcomes.append(self._update_readme(version))
        return outcomes

    def _update_readme(self, version: str) -> StepOutcome:
        name = self._readme_path.name
        try:
            readme = self._readme_path.read_text(encoding="utf-8")
            updated, changed = update_readme_badge(readme, version)
            if changed:
                self._readme_path.write_text(updated, encoding="utf-8")
        except OSError as e:
            self._log.warn("README_WARNING", f"Could not update {name}: {e}")
            return StepOutcome("update_readme", "warning", str(e))

        if not changed:
            self._log.warn("README_WARNING", f"No version badge found in {name}")
            return StepOutcome("update_readme", "warning", "no version badge")
        return StepOutcome("update_readme", "done")

    def _step_commit(self, version: str) -> StepOutcome:
        if not self._git.has_changes():
            return StepOutcome("commit", "skipped", "nothing to commit")
        self._git.commit_all(f"chore: bump version to {version}")
        return StepOutcome("commit", "done")

    def _step_tag(self, version: str) -> StepOutcome:
        tag = f"v{version}"
        if self._git.tag_exists(tag):
            return StepOutcome("tag", "skipped", f"{tag} already exists")

        section = None
        if self._changelog_path.exists():
            section = changelog_section(
                self._changelog_path.read_text(encoding="utf-8"), version
            )
        self._git.tag(tag, tag_message(section, version))
        return StepOutcome("tag", "done", tag)

    def _step_push(self) -> StepOutcome:
        try:
            self._git.push()
        except ReleaseError as e:
            self._log.warn(
                "PUSH_WARNING",
                f"Could not push changes (remote may not be configured): {e}",
            )
            return StepOutcome("push", "warning", str(e))
        return StepOutcome("push", "done")
