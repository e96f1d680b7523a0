"""Daily markdown activity log.

Every entry is appended to ``<logs_dir>/<YYYY-MM-DD>.md``::

    ## 10/19/2026, 14:03:11

    **ℹ️ PULL_SUCCESS**
    Project leads pulled successfully

    ---

and mirrored to the loguru console logger. Entries are never rewritten.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from gascli.logging import logger

LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}

LEVEL_EMOJI: dict[str, str] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
}

TIMESTAMP_FORMAT = "%m/%d/%Y, %H:%M:%S"
ENTRY_SEPARATOR = "\n---\n"


@dataclass(frozen=True)
class LogEntry:
    """A single parsed activity log entry."""

    timestamp: str
    level: str
    action: str
    details: str


class ActivityLog:
    """Append-only activity log partitioned by calendar day.

    One instance is created at process start and handed to each component.

    Example:
        >>> log = ActivityLog(Path("logs"))
        >>> log.info("PULL", "Project: leads, ID: 1abc")
    """

    def __init__(
        self,
        logs_dir: str | Path,
        level: str = "INFO",
        timezone: str | None = None,
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._level = _normalize_level(level)
        self._tz = ZoneInfo(timezone) if timezone else None

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    @property
    def level(self) -> str:
        return self._level

    def set_level(self, level: str) -> None:
        self._level = _normalize_level(level)

    def debug(self, action: str, details: str = "") -> None:
        self._write("DEBUG", action, details)

    def info(self, action: str, details: str = "") -> None:
        self._write("INFO", action, details)

    def warn(self, action: str, details: str = "") -> None:
        self._write("WARNING", action, details)

    def error(
        self, action: str, details: str = "", *, trace: str | None = None
    ) -> None:
        """Record an error. ``trace`` goes to the log file only, not the console."""
        self._write("ERROR", action, details, trace)

    def today_path(self) -> Path:
        """Path of the log file for the current day."""
        return self._logs_dir / f"{self._now():%Y-%m-%d}.md"

    def recent(self, limit: int = 10) -> list[LogEntry]:
        """Parse the last ``limit`` entries of today's log file."""
        path = self.today_path()
        if not path.exists():
            return []

        entries: list[LogEntry] = []
        for chunk in path.read_text(encoding="utf-8").split(ENTRY_SEPARATOR):
            entry = _parse_entry(chunk)
            if entry is not None:
                entries.append(entry)
        return entries[-limit:] if limit > 0 else []

    # --- Internals ---

    def _now(self) -> datetime:
        return datetime.now(self._tz)

    def _write(
        self, level: str, action: str, details: str, trace: str | None = None
    ) -> None:
        if LEVELS[level] < LEVELS[self._level]:
            return

        now = self._now()
        path = self._logs_dir / f"{now:%Y-%m-%d}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text(f"# Daily Log - {now:%Y-%m-%d}\n\n", encoding="utf-8")

        entry = (
            f"## {now.strftime(TIMESTAMP_FORMAT)}\n\n"
            f"**{LEVEL_EMOJI[level]} {action}**\n"
            f"{details}\n"
        )
        if trace:
            entry += f"\n```\n{trace.rstrip()}\n```\n"
        entry += "\n---\n\n"
        with path.open("a", encoding="utf-8") as f:
            f.write(entry)

        message = f"{action}: {details}" if details else action
        logger.opt(depth=2).log(level, message)


def _normalize_level(level: str) -> str:
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    if name not in LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    return name


def _parse_entry(chunk: str) -> LogEntry | None:
    lines = chunk.strip().splitlines()
    header = next((i for i, line in enumerate(lines) if line.startswith("## ")), None)
    if header is None:
        return None

    timestamp = lines[header][3:].strip()
    rest = [line for line in lines[header + 1 :] if line.strip()]
    if not rest or not rest[0].startswith("**"):
        return None

    title = rest[0].strip("*").strip()
    level = "INFO"
    for name, emoji in LEVEL_EMOJI.items():
        if title.startswith(emoji):
            level = name
            title = title[len(emoji) :].strip()
            break

    return LogEntry(
        timestamp=timestamp,
        level=level,
        action=title,
        details="\n".join(rest[1:]).strip(),
    )
