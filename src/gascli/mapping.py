"""Mapping between local file paths and Apps Script files.

On-disk layout of a project folder:
    <project>/
        Code.js                 # {name: "Code", type: "SERVER_JS"}
        Sidebar.html            # {name: "Sidebar", type: "HTML"}
        lib/Utils.js            # {name: "lib/Utils", type: "SERVER_JS"}
        system/appsscript.json  # {name: "appsscript", type: "JSON"}
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath

# Maps Apps Script file types to local file extensions
FILE_TYPE_TO_EXT: dict[str, str] = {
    "SERVER_JS": "js",
    "HTML": "html",
    "JSON": "json",
}

# Reverse mapping: extension to Apps Script file type
EXT_TO_FILE_TYPE: dict[str, str] = {ext: t for t, ext in FILE_TYPE_TO_EXT.items()}

VALID_EXTENSIONS = (".js", ".html", ".json", ".css")
VALID_NAMES = ("Code", "appsscript")

CODE_FILE = "Code"
MANIFEST_FILE = "appsscript"
MANIFEST_PATH = "system/appsscript.json"


@dataclass(frozen=True)
class GASFile:
    """A single file within an Apps Script project."""

    name: str
    type: str  # SERVER_JS, HTML, or JSON
    source: str = ""

    def to_api(self) -> dict[str, str]:
        return {"name": self.name, "type": self.type, "source": self.source}


def extension_for_type(file_type: str | None) -> str:
    """Local extension (without dot) for an Apps Script file type."""
    return FILE_TYPE_TO_EXT.get((file_type or "").upper(), "js")


def to_local_path(gas_file: GASFile) -> str:
    """Relative local path for a remote file."""
    if gas_file.name == CODE_FILE:
        return "Code.js"
    if gas_file.name == MANIFEST_FILE:
        return MANIFEST_PATH
    return f"{gas_file.name}.{extension_for_type(gas_file.type)}"


def to_gas_file(relative_path: str) -> GASFile | None:
    """Apps Script name and type for a local path, or None if unsupported.

    Only paths that to_local_path() would produce are accepted, so the
    mapping round-trips. The returned file has an empty source.
    """
    path = _normalize(relative_path)
    if not path or path.startswith("../") or path.startswith("/"):
        return None

    if path == MANIFEST_PATH:
        candidate = GASFile(name=MANIFEST_FILE, type="JSON")
    else:
        pure = PurePosixPath(path)
        file_type = EXT_TO_FILE_TYPE.get(pure.suffix.lstrip("."))
        # The manifest is the only JSON file a project may contain
        if file_type is None or file_type == "JSON" or not pure.stem:
            return None
        name = str(pure.with_suffix(""))
        candidate = GASFile(name=name, type=file_type)

    if to_local_path(candidate) != path:
        return None
    return candidate


def is_valid_project_file(file_name: str) -> bool:
    """Whether a file is considered part of the project when walking a folder."""
    pure = PurePosixPath(file_name)
    return pure.suffix in VALID_EXTENSIONS or pure.stem in VALID_NAMES


def _normalize(relative_path: str) -> str:
    return PureWindowsPath(relative_path).as_posix()
