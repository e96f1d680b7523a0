"""Extract embedded JSON data from an HTML document.

Two independent strategies:

- extract_header_pairs: every ``<h2>`` title paired with a JSON ``<p>`` body
- extract_script_blocks: JSON (or ``key: value`` lines) inside ``<script>``

Results are written as one JSON file per item plus optional aggregate
``extracted_data.csv`` / ``extracted_data.json`` dumps. The HTML source is
only read, never modified.
"""

from __future__ import annotations

import csv
import html
import io
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gascli.exceptions import ProjectError
from gascli.logging import logger

if TYPE_CHECKING:
    from gascli.activity_log import ActivityLog

H2_RE = re.compile(r"<h2\b[^>]*>(.*?)</h2\s*>", re.IGNORECASE | re.DOTALL)
SCRIPT_RE = re.compile(r"<script\b[^>]*>(.*?)</script\s*>", re.IGNORECASE | re.DOTALL)
TAG_RE = re.compile(r"<[^>]+>")
KEY_VALUE_RE = re.compile(r"^(\w+)\s*[:=]\s*(.+)$")

# Script content that is code rather than data. A // comment on any line
# disqualifies the whole block.
SKIP_PATTERNS = (
    re.compile(r"^/\*[\s\S]*?\*/"),
    re.compile(r"^//.*$", re.MULTILINE),
    re.compile(r"^function\s*\("),
    re.compile(r"^(?:var|const|let)\s+\w+\s*="),
)
MIN_SCRIPT_LENGTH = 10

TITLE_FIELDS = ("title", "name", "id", "type", "category")

STRATEGIES = ("headers", "scripts")
DEFAULT_HTML_FILE = "files.html"
AGGREGATE_CSV = "extracted_data.csv"
AGGREGATE_JSON = "extracted_data.json"


@dataclass(frozen=True)
class ExtractedItem:
    """One extracted data block."""

    title: str
    json: Any


# --- Header / paragraph strategy ---


def extract_header_pairs(html_content: str) -> list[ExtractedItem]:
    """Pair ``<h2>`` titles with JSON paragraphs by position.

    For every header the first ``<p>`` after it is parsed as JSON; paragraphs
    that fail to parse are skipped with a warning. The i-th header is then
    paired with the i-th parsed object, so the result has
    ``min(len(headers), len(parsed))`` items. When a paragraph is skipped,
    later titles shift onto later objects.
    """
    headers = list(H2_RE.finditer(html_content))
    logger.debug("Found {} h2 headers", len(headers))

    parsed: list[Any] = []
    for i, header in enumerate(headers, start=1):
        p_start = html_content.find("<p>", header.end())
        if p_start == -1:
            logger.warning("No <p> after header {}: {}", i, _text(header.group(1)))
            continue
        p_end = html_content.find("</p>", p_start)
        if p_end == -1:
            logger.warning("Unclosed <p> after header {}", i)
            continue

        body = html_content[p_start + len("<p>") : p_end].strip()
        try:
            parsed.append(json.loads(html.unescape(body)))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse JSON for header {}: {}", i, e)

    return [
        ExtractedItem(title=_text(headers[i].group(1)), json=parsed[i])
        for i in range(min(len(headers), len(parsed)))
    ]


# --- Script block strategy ---


def extract_script_blocks(html_content: str) -> list[ExtractedItem]:
    """Extract data from ``<script>`` blocks in document order."""
    items: list[ExtractedItem] = []
    for index, match in enumerate(SCRIPT_RE.finditer(html_content)):
        content = match.group(1).strip()
        if not is_data_script(content):
            continue

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            item = _extract_key_values(content, index)
            if item is not None:
                items.append(item)
            continue

        title = extract_title(data) or f"script_{index}"
        items.append(ExtractedItem(title=title, json=data))
        logger.debug("Parsed script {}: {}", index, title)
    return items


def is_data_script(content: str) -> bool:
    """Whether a script body may hold data (not a comment or declaration)."""
    if len(content) < MIN_SCRIPT_LENGTH:
        return False
    return not any(pattern.search(content) for pattern in SKIP_PATTERNS)


def extract_title(data: Any) -> str | None:
    """Pick a title from well-known fields or the first string field."""
    if not isinstance(data, dict):
        return None

    for name in TITLE_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and value:
            return value

    for key, value in data.items():
        if isinstance(value, str) and value:
            return f"{key}_{value}"
    return None


def _extract_key_values(content: str, index: int) -> ExtractedItem | None:
    extracted: dict[str, str] = {}
    for line in content.splitlines():
        match = KEY_VALUE_RE.match(line.strip())
        if match:
            extracted[match.group(1)] = match.group(2).strip()

    if not extracted:
        return None
    return ExtractedItem(title=f"extracted_data_{index}", json=extracted)


# --- Output ---


def sanitize_file_name(title: str) -> str:
    """File name stem for a title: non-alphanumerics become ``_``, lowercase."""
    return re.sub(r"[^a-zA-Z0-9]", "_", title).lower()


def to_csv(items: list[ExtractedItem]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Title", "JSON Data"])
    for item in items:
        writer.writerow([item.title, json.dumps(item.json, ensure_ascii=False)])
    return buf.getvalue()


def write_items(
    items: list[ExtractedItem], out_dir: str | Path, *, aggregate: bool = True
) -> list[Path]:
    """Write one ``<title>.json`` per item (and the aggregate dumps)."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    if aggregate:
        csv_path = out_dir / AGGREGATE_CSV
        csv_path.write_text(to_csv(items), encoding="utf-8")
        written.append(csv_path)

        json_path = out_dir / AGGREGATE_JSON
        dump = [{"title": item.title, "json": item.json} for item in items]
        json_path.write_text(
            json.dumps(dump, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        written.append(json_path)

    for item in items:
        path = out_dir / f"{sanitize_file_name(item.title)}.json"
        path.write_text(
            json.dumps(item.json, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        written.append(path)
    return written


def extract_project(
    project_dir: str | Path,
    log: ActivityLog,
    *,
    html_file: str = DEFAULT_HTML_FILE,
    strategy: str = "headers",
    aggregate: bool = True,
) -> tuple[list[ExtractedItem], list[Path]]:
    """Extract ``<project>/<html_file>`` into ``<project>/files/``."""
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown extraction strategy: {strategy}")

    project_dir = Path(project_dir)
    html_path = project_dir / html_file
    log.info("EXTRACT_FILES", f"Project: {project_dir.name}, source: {html_file}")
    if not html_path.exists():
        log.error("EXTRACT_FILES_ERROR", f"File not found: {html_path}")
        raise ProjectError(f"HTML file not found: {html_path}")

    content = html_path.read_text(encoding="utf-8")
    if strategy == "headers":
        items = extract_header_pairs(content)
    else:
        items = extract_script_blocks(content)

    if not items:
        log.warn("EXTRACT_FILES_WARNING", f"Project: {project_dir.name}, no data found")
        return items, []

    written = write_items(items, project_dir / "files", aggregate=aggregate)
    log.info(
        "EXTRACT_FILES_SUCCESS", f"Project: {project_dir.name}, items: {len(items)}"
    )
    return items, written


def _text(fragment: str) -> str:
    return html.unescape(TAG_RE.sub("", fragment)).strip()
