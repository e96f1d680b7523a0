"""CLI entry point for gascli.

Usage:
    gas pull [project]
    gas push [project]
    gas list [project]
    gas projects
    gas clone <project> [--script-id ID]
    gas new <project>
    gas set-id <project> <script_id>
    gas config
    gas validate [--no-key]
    gas logs [--limit N]
    gas extract <project> [--html FILE] [--strategy headers|scripts]
    gas release [major|minor|patch|preview] [--resume VERSION]

    gas-release [major|minor|patch|preview]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import shutil
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path

from gascli.activity_log import ActivityLog
from gascli.auth import ServiceAccountAuth
from gascli.client import SyncClient, walk_project
from gascli.config import ConfigStore, ProjectRef, SystemConfig
from gascli.exceptions import ConfigError, GasCliError, ProjectError
from gascli.extract import DEFAULT_HTML_FILE, STRATEGIES, extract_project
from gascli.logging import logger, setup_logging
from gascli.mapping import MANIFEST_PATH
from gascli.release import RELEASE_TYPES, ReleaseCreator
from gascli.settings import Settings, get_settings
from gascli.transport import GoogleAppsScriptTransport

DEFAULT_MANIFEST = {
    "timeZone": "Etc/UTC",
    "dependencies": {},
    "exceptionLogging": "STACKDRIVER",
    "runtimeVersion": "V8",
}


@dataclass
class Context:
    """Everything a command needs, built once per invocation."""

    settings: Settings
    store: ConfigStore
    config: SystemConfig
    log: ActivityLog


def _load_context(args: argparse.Namespace) -> Context:
    settings = _settings(args)
    store = ConfigStore.from_settings(settings)
    config = store.load_config()
    log = ActivityLog(
        store.logs_dir(config),
        level=settings.log_level,
        timezone=settings.log_timezone,
    )
    store.log = log
    return Context(settings=settings, store=store, config=config, log=log)


def _settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if getattr(args, "root", None):
        overrides["root"] = Path(args.root)
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level
    if not overrides:
        return get_settings()
    return Settings(**overrides)


def _activity_log(settings: Settings, *, fallback: bool = False) -> ActivityLog | None:
    """Activity log under logsPath, or under <root>/logs when ``fallback`` is set.

    Returns None when config.json cannot be read and there is no fallback.
    """
    store = ConfigStore.from_settings(settings)
    try:
        logs_dir = store.logs_dir()
    except ConfigError:
        if not fallback:
            return None
        logs_dir = store.root / "logs"
    return ActivityLog(
        logs_dir, level=settings.log_level, timezone=settings.log_timezone
    )


async def _open_client(ctx: Context) -> tuple[SyncClient, GoogleAppsScriptTransport]:
    """Authenticate and create a SyncClient."""
    auth = ServiceAccountAuth(ctx.store.key_path)
    # Validates key.json before any network access
    auth.credentials()
    print("Authenticating...")
    token = await auth.get_access_token_async()
    transport = GoogleAppsScriptTransport(token, timeout=ctx.settings.http_timeout)
    return SyncClient(transport, ctx.log), transport


def _print_projects(ctx: Context) -> None:
    projects = ctx.store.load_projects()
    print("\nConfigured projects:")
    if not projects:
        print("  (none)")
    for name, project in projects.items():
        status = "configured" if project.id else "no script ID"
        print(f"  {name}: {project.title} - {status}")
        if project.description:
            print(f"    {project.description}")


# --- Command handlers ---


async def cmd_pull(args: argparse.Namespace) -> int:
    """Pull a project from Apps Script."""
    ctx = _load_context(args)
    project = ctx.store.require_project(args.project)
    project_dir = ctx.store.project_dir(project.name, ctx.config)

    client, transport = await _open_client(ctx)
    try:
        print(f"Pulling project: {project.name} ({project.script_id})")
        result = await client.pull(project, project_dir)
    finally:
        await transport.close()

    print(f"\nWrote {len(result.files)} files to {project_dir}:")
    for path in result.files:
        print(f"  {path.relative_to(project_dir).as_posix()}")
    return 0


async def cmd_push(args: argparse.Namespace) -> int:
    """Push a project folder to Apps Script."""
    ctx = _load_context(args)
    project = ctx.store.require_project(args.project)
    project_dir = ctx.store.project_dir(project.name, ctx.config)
    if not project_dir.is_dir():
        raise ProjectError(f"Project directory not found: {project_dir}")

    client, transport = await _open_client(ctx)
    try:
        result = await client.push(project, project_dir)
    finally:
        await transport.close()

    print(
        f"Successfully pushed {result.files_pushed} files "
        f"to script {result.script_id}"
    )
    for skipped in result.skipped:
        print(f"  skipped: {skipped}")
    return 0


async def cmd_list(args: argparse.Namespace) -> int:
    """Show one project in detail, or every project."""
    ctx = _load_context(args)
    if not args.project:
        projects_dir = ctx.store.resolve(ctx.config.projects_path)
        print(f"Project folders in {projects_dir}:")
        if projects_dir.is_dir():
            for item in sorted(projects_dir.iterdir()):
                if item.is_dir() and not item.name.startswith("."):
                    print(f"  {item.name}")
        _print_projects(ctx)
        return 0

    project = ctx.store.get_project(args.project)
    project_dir = ctx.store.project_dir(project.name, ctx.config)
    print(f"\nProject: {project.name}")
    print(f"  ID: {project.script_id or '(not set)'}")
    print(f"  Title: {project.title}")
    print(f"  Description: {project.description}")
    if project_dir.is_dir():
        files = [
            path.relative_to(project_dir).as_posix()
            for path in walk_project(project_dir)
        ]
        print(f"  Path: {project_dir}")
        print(f"  Files: {len(files)}")
        for name in files:
            print(f"    {name}")
    return 0


async def cmd_projects(args: argparse.Namespace) -> int:
    """Show all configured projects."""
    ctx = _load_context(args)
    _print_projects(ctx)
    return 0


async def cmd_clone(args: argparse.Namespace) -> int:
    """Register a project and pull it when a script ID is known."""
    ctx = _load_context(args)
    name = args.project
    script_id = args.script_id or ""

    if ctx.store.add_project_to_config(name, script_id):
        print(f"Project {name} added to configuration")
    else:
        print(f"Project {name} is already configured")
        if script_id:
            ctx.store.update_project_id(name, script_id)
            print(f"Project {name} ID set to {script_id}")

    project: ProjectRef = ctx.store.get_project(name)
    if not project.script_id:
        print(f"Set the script ID with: gas set-id {name} <script_id>")
        return 0
    if args.no_pull:
        return 0

    project_dir = ctx.store.project_dir(name, ctx.config)
    client, transport = await _open_client(ctx)
    try:
        result = await client.pull(project, project_dir)
    finally:
        await transport.close()
    print(f"Pulled {len(result.files)} files into {project_dir}")
    return 0


async def cmd_new(args: argparse.Namespace) -> int:
    """Create a project folder from the template and register it."""
    ctx = _load_context(args)
    name = args.project
    project_dir = ctx.store.project_dir(name, ctx.config)
    if project_dir.exists():
        raise ProjectError(f"Project {name} already exists at {project_dir}")

    manifest = project_dir / MANIFEST_PATH
    manifest.parent.mkdir(parents=True)
    (project_dir / "files").mkdir()

    template = ctx.store.root / "templates" / "appsscript.json"
    if template.exists():
        shutil.copyfile(template, manifest)
        print("Project template copied")
    else:
        manifest.write_text(json.dumps(DEFAULT_MANIFEST, indent=2) + "\n")
        print("Default appsscript.json written")

    ctx.store.add_project_to_config(name)
    ctx.log.info("PROJECT_CREATED", f"Project {name} created at {project_dir}")
    print(f"Project {name} created successfully!")
    return 0


async def cmd_set_id(args: argparse.Namespace) -> int:
    """Assign a script ID to a configured project."""
    ctx = _load_context(args)
    if not ctx.store.update_project_id(args.project, args.script_id):
        raise ProjectError(f'Project "{args.project}" not found in configuration')
    print(f"Project {args.project} ID updated to {args.script_id}")
    return 0


async def cmd_config(args: argparse.Namespace) -> int:
    """Show the system configuration."""
    ctx = _load_context(args)
    print("System configuration:")
    print(f"  Root: {ctx.store.root}")
    print(f"  Default project: {ctx.config.default_project}")
    print(f"  Projects path: {ctx.config.projects_path}")
    print(f"  System path: {ctx.config.system_path}")
    print(f"  Logs path: {ctx.config.logs_path}")
    return 0


async def cmd_validate(args: argparse.Namespace) -> int:
    """Validate config.json, projects.json and key.json."""
    store = ConfigStore.from_settings(_settings(args))
    report = store.validate(require_key=not args.no_key)

    for warning in report.warnings:
        print(f"  warning: {warning}")
    for error in report.errors:
        print(f"  error: {error}", file=sys.stderr)

    if not report.is_valid:
        print(f"\nValidation failed ({len(report.errors)} error(s))", file=sys.stderr)
        return 1
    print("Configuration validation passed")
    return 0


async def cmd_logs(args: argparse.Namespace) -> int:
    """Show today's activity log."""
    ctx = _load_context(args)
    entries = ctx.log.recent(args.limit)
    if not entries:
        print("No logs found for today")
        return 0
    for entry in entries:
        print(f"{entry.timestamp}  {entry.level:<7}  {entry.action}")
        if entry.details:
            print(f"    {entry.details}")
    return 0


async def cmd_extract(args: argparse.Namespace) -> int:
    """Extract JSON data embedded in a project's HTML file."""
    ctx = _load_context(args)
    project_dir = ctx.store.project_dir(args.project, ctx.config)
    items, written = extract_project(
        project_dir,
        ctx.log,
        html_file=args.html,
        strategy=args.strategy,
        aggregate=not args.no_aggregate,
    )
    if not items:
        print("No data found to extract")
        return 0

    print(f"Extracted {len(items)} item(s):")
    for i, item in enumerate(items, start=1):
        print(f"  {i}. {item.title}")
    print(f"\nWrote {len(written)} files to {project_dir / 'files'}")
    return 0


async def cmd_release(args: argparse.Namespace) -> int:
    """Bump the version, update the changelog, commit, tag and push."""
    settings = _settings(args)
    log = _activity_log(settings, fallback=True)
    assert log is not None

    repo_dir = Path(args.repo) if args.repo else settings.root
    creator = ReleaseCreator(
        repo_dir, log, manifest=args.manifest, changelog=args.changelog
    )
    if args.resume:
        result = creator.resume(args.resume, push=not args.no_push)
    else:
        validate = None
        if args.validate:
            validate = ConfigStore.from_settings(settings).validate
        result = creator.create_release(
            args.type,
            require_clean=args.require_clean,
            validate=validate,
            push=not args.no_push,
        )

    for outcome in result.outcomes:
        suffix = f" ({outcome.message})" if outcome.message else ""
        print(f"  {outcome.step}: {outcome.status}{suffix}")
    print(f"\nRelease v{result.state.new_version} created successfully!")
    if result.warnings:
        print(f"{len(result.warnings)} warning(s), see above")
    return 0


# --- CLI setup ---


def _add_release_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "type",
        nargs="?",
        default="patch",
        help=f"Release type: {', '.join(RELEASE_TYPES)} (default: patch)",
    )
    parser.add_argument(
        "--resume",
        metavar="VERSION",
        help="Finish an interrupted release (commit, tag, push only)",
    )
    parser.add_argument(
        "--require-clean",
        action="store_true",
        help="Refuse to release from a dirty working tree",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate config.json, projects.json and key.json before bumping",
    )
    parser.add_argument(
        "--no-push", action="store_true", help="Skip pushing commits and tags"
    )
    parser.add_argument("--repo", help="Repository directory (default: root)")
    parser.add_argument("--manifest", default="package.json", help="Package manifest")
    parser.add_argument("--changelog", default="CHANGELOG.md", help="Changelog file")
    parser.set_defaults(func=cmd_release)


def _add_global_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root", help="Directory holding config.json (default: $GAS_ROOT or cwd)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console and activity log level",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gas",
        description="Synchronize local folders with Google Apps Script projects",
    )
    _add_global_arguments(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    # pull
    pull_parser = subparsers.add_parser("pull", help="Download project files")
    pull_parser.add_argument("project", nargs="?", help="Project name")
    pull_parser.set_defaults(func=cmd_pull)

    # push
    push_parser = subparsers.add_parser("push", help="Upload project files")
    push_parser.add_argument("project", nargs="?", help="Project name")
    push_parser.set_defaults(func=cmd_push)

    # list
    list_parser = subparsers.add_parser("list", help="List projects or project files")
    list_parser.add_argument("project", nargs="?", help="Project name")
    list_parser.set_defaults(func=cmd_list)

    # projects
    projects_parser = subparsers.add_parser(
        "projects", help="Show all configured projects"
    )
    projects_parser.set_defaults(func=cmd_projects)

    # clone
    clone_parser = subparsers.add_parser(
        "clone", help="Add a project to the configuration"
    )
    clone_parser.add_argument("project", help="Project name")
    clone_parser.add_argument("--script-id", help="Apps Script project ID")
    clone_parser.add_argument(
        "--no-pull", action="store_true", help="Only register the project"
    )
    clone_parser.set_defaults(func=cmd_clone)

    # new
    new_parser = subparsers.add_parser("new", help="Create a new project folder")
    new_parser.add_argument("project", help="Project name")
    new_parser.set_defaults(func=cmd_new)

    # set-id
    set_id_parser = subparsers.add_parser("set-id", help="Set a project's script ID")
    set_id_parser.add_argument("project", help="Project name")
    set_id_parser.add_argument("script_id", help="Apps Script project ID")
    set_id_parser.set_defaults(func=cmd_set_id)

    # config
    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.set_defaults(func=cmd_config)

    # validate
    validate_parser = subparsers.add_parser("validate", help="Validate configuration")
    validate_parser.add_argument(
        "--no-key", action="store_true", help="Do not require key.json"
    )
    validate_parser.set_defaults(func=cmd_validate)

    # logs
    logs_parser = subparsers.add_parser("logs", help="Show today's activity log")
    logs_parser.add_argument(
        "--limit", type=int, default=20, help="Max entries to show (default: 20)"
    )
    logs_parser.set_defaults(func=cmd_logs)

    # extract
    extract_parser = subparsers.add_parser(
        "extract", help="Extract JSON data from a project's HTML file"
    )
    extract_parser.add_argument("project", help="Project name")
    extract_parser.add_argument(
        "--html", default=DEFAULT_HTML_FILE, help="HTML file inside the project"
    )
    extract_parser.add_argument(
        "--strategy", choices=STRATEGIES, default="headers", help="Extraction method"
    )
    extract_parser.add_argument(
        "--no-aggregate",
        action="store_true",
        help="Skip extracted_data.csv and extracted_data.json",
    )
    extract_parser.set_defaults(func=cmd_extract)

    # release
    release_parser = subparsers.add_parser("release", help="Create a release")
    _add_release_arguments(release_parser)

    return parser


def build_release_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gas-release",
        description="Bump the version, update the changelog, commit, tag and push",
    )
    _add_global_arguments(parser)
    _add_release_arguments(parser)
    return parser


def run(args: argparse.Namespace) -> int:
    """Run a parsed command, turning gascli errors into exit code 1."""
    settings = _settings(args)
    setup_logging(args.log_level or "WARNING", json_logs=settings.json_logs)
    try:
        result: int = asyncio.run(args.func(args))
    except GasCliError as e:
        logger.opt(exception=e).debug("Command {} failed", args.func.__name__)
        _record_failure(args, settings, e)
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1
    return result


def _record_failure(
    args: argparse.Namespace, settings: Settings, error: GasCliError
) -> None:
    """Write a failed command, with its traceback, to the daily activity log."""
    log = _activity_log(settings, fallback=args.func is cmd_release)
    if log is None:
        return
    command = getattr(args, "command", None) or "release"
    trace = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    details = f"{command}: {type(error).__name__}: {error}"
    log.error("COMMAND_ERROR", details, trace=trace)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    return run(build_parser().parse_args(argv))


def release_main(argv: list[str] | None = None) -> int:
    """Entry point of the gas-release script."""
    return run(build_release_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
