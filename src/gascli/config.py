"""Configuration loading for gascli.

Two JSON files live in the configuration root:

    config.json      # {defaultProject, projectsPath, systemPath, logsPath}
    projects.json    # {<name>: {id, title, description}}

Both are validated with pydantic models so that a malformed file produces a
single ConfigError listing every missing or invalid field.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from gascli.auth import load_service_account_key
from gascli.exceptions import AuthenticationError, ConfigError, ProjectError
from gascli.mapping import MANIFEST_PATH

if TYPE_CHECKING:
    from gascli.activity_log import ActivityLog
    from gascli.settings import Settings


class SystemConfig(BaseModel):
    """Contents of config.json. Immutable for the lifetime of a command."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    default_project: str = Field(alias="defaultProject")
    projects_path: str = Field(alias="projectsPath")
    system_path: str = Field(alias="systemPath")
    logs_path: str = Field(alias="logsPath")


class Project(BaseModel):
    """A single entry of projects.json."""

    model_config = ConfigDict(extra="allow")

    id: str = ""
    title: str = ""
    description: str = ""


ProjectsConfig = dict[str, Project]

_projects_adapter: TypeAdapter[dict[str, Project]] = TypeAdapter(dict[str, Project])


@dataclass(frozen=True)
class ProjectRef:
    """A project resolved by name."""

    name: str
    script_id: str
    title: str = ""
    description: str = ""


@dataclass
class ValidationReport:
    """Every problem found by ConfigStore.validate()."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ConfigStore:
    """Reads and writes config.json / projects.json in a configuration root.

    Nothing is cached: every call reads the files again, and every mutation
    rewrites projects.json immediately.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        config_file: str = "config.json",
        projects_file: str = "projects.json",
        key_file: str = "key.json",
        log: ActivityLog | None = None,
    ) -> None:
        self.root = Path(root)
        self.config_path = self.root / config_file
        self.projects_path = self.root / projects_file
        self.key_path = self.root / key_file
        self.log = log

    @classmethod
    def from_settings(cls, settings: Settings) -> ConfigStore:
        return cls(
            settings.root,
            config_file=settings.config_file,
            projects_file=settings.projects_file,
            key_file=settings.key_file,
        )

    # --- Loading ---

    def load_config(self) -> SystemConfig:
        """Load and validate config.json."""
        data = _read_json(self.config_path)
        try:
            return SystemConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid {self.config_path.name}", errors=_format_errors(e)
            ) from e

    def load_projects(self) -> ProjectsConfig:
        """Load and validate projects.json. A missing file is an error."""
        data = _read_json(self.projects_path)
        try:
            return _projects_adapter.validate_python(data)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid {self.projects_path.name}", errors=_format_errors(e)
            ) from e

    def save_projects(self, projects: ProjectsConfig) -> None:
        """Overwrite projects.json with the full mapping."""
        data = {name: p.model_dump() for name, p in projects.items()}
        self.projects_path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def resolve(self, path: str | Path) -> Path:
        """Resolve a config-relative path against the configuration root."""
        p = Path(path)
        return p if p.is_absolute() else self.root / p

    def project_dir(self, name: str, config: SystemConfig | None = None) -> Path:
        config = config or self.load_config()
        return self.resolve(config.projects_path) / name

    def logs_dir(self, config: SystemConfig | None = None) -> Path:
        config = config or self.load_config()
        return self.resolve(config.logs_path)

    # --- Mutations ---

    def add_project_to_config(self, name: str, script_id: str = "") -> bool:
        """Register a project. Returns False (and writes nothing) if it exists."""
        projects = self._load_projects_or_empty()
        if name in projects:
            return False

        projects[name] = Project(
            id=script_id,
            title=name[:1].upper() + name[1:],
            description=f"{name} project",
        )
        self.save_projects(projects)
        if self.log:
            self.log.info("PROJECT_ADDED", f"Project {name} added to configuration")
        return True

    def update_project_id(self, name: str, script_id: str) -> bool:
        """Set the script ID of an existing project."""
        projects = self.load_projects()
        if name not in projects:
            return False

        projects[name].id = script_id
        self.save_projects(projects)
        if self.log:
            self.log.info(
                "PROJECT_UPDATED", f"Project {name} ID updated to {script_id}"
            )
        return True

    # --- Lookup ---

    def get_project(self, name: str | None = None) -> ProjectRef:
        """Resolve a project by name, falling back to defaultProject."""
        if not name:
            name = self.load_config().default_project

        projects = self.load_projects()
        if name not in projects:
            raise ProjectError(f'Project "{name}" not found in configuration')

        project = projects[name]
        return ProjectRef(
            name=name,
            script_id=project.id,
            title=project.title,
            description=project.description,
        )

    def require_project(self, name: str | None = None) -> ProjectRef:
        """Like get_project(), but the project must have a script ID."""
        ref = self.get_project(name)
        require_script_id(ref)
        return ref

    # --- Validation ---

    def validate(self, *, require_key: bool = True) -> ValidationReport:
        """Check the whole configuration and collect every problem found."""
        report = ValidationReport()

        config: SystemConfig | None = None
        projects: ProjectsConfig | None = None

        try:
            config = self.load_config()
        except ConfigError as e:
            report.errors.extend(_flatten(e))

        try:
            projects = self.load_projects()
        except ConfigError as e:
            report.errors.extend(_flatten(e))

        if require_key:
            try:
                load_service_account_key(self.key_path)
            except AuthenticationError as e:
                report.errors.append(str(e))

        if projects is not None and not projects:
            report.errors.append(f"No projects defined in {self.projects_path.name}")

        if config is not None:
            projects_dir = self.resolve(config.projects_path)
            if not projects_dir.is_dir():
                report.errors.append(f"Projects path does not exist: {projects_dir}")
            logs_dir = self.resolve(config.logs_path)
            if not logs_dir.is_dir():
                report.warnings.append(f"Logs path does not exist: {logs_dir}")
            manifest_dir = Path(MANIFEST_PATH).parent.as_posix()
            if Path(config.system_path).as_posix() != manifest_dir:
                report.warnings.append(
                    f"systemPath '{config.system_path}' is not used: the "
                    f"manifest is always synced from {MANIFEST_PATH}"
                )

        if config is not None and projects:
            if config.default_project not in projects:
                report.errors.append(
                    f"Default project '{config.default_project}' "
                    f"not found in {self.projects_path.name}"
                )

        for name, project in (projects or {}).items():
            if not project.title:
                report.errors.append(f"Project '{name}' missing title")
            if not project.id.strip():
                report.warnings.append(f"Project '{name}' has empty ID")

        return report

    def check_project_structure(self, name: str) -> Path:
        """Ensure the project directory and its system/ subdirectory exist."""
        config = self.load_config()
        project_dir = self.project_dir(name, config)
        if not project_dir.is_dir():
            raise ProjectError(f"Project directory '{project_dir}' not found")

        system_dir = (project_dir / MANIFEST_PATH).parent
        if not system_dir.is_dir():
            raise ProjectError(
                f"Missing required directory in {project_dir}: {system_dir.name}"
            )
        return project_dir

    def _load_projects_or_empty(self) -> ProjectsConfig:
        if not self.projects_path.exists():
            return {}
        return self.load_projects()


def require_script_id(project: ProjectRef) -> None:
    """Raise ProjectError unless the project has a script ID."""
    if not project.script_id:
        raise ProjectError(
            f'Project "{project.name}" has no Google Apps Script ID configured'
        )


# --- Helpers ---


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise ConfigError(f"{path.name} not found at {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path.name} is not valid JSON: {e}") from e


def _format_errors(e: ValidationError) -> list[str]:
    errors: list[str] = []
    for err in e.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        errors.append(f"{loc}: {err['msg']}")
    return errors


def _flatten(e: ConfigError) -> list[str]:
    if not e.errors:
        return [e.args[0]]
    return [f"{e.args[0]}: {error}" for error in e.errors]
