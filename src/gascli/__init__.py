"""gascli - Google Apps Script project synchronization.

Pull and push Apps Script projects between local folders and the Apps
Script API, manage the project registry, cut releases and extract data
from HTML exports.
"""

__version__ = "0.1.0"

from gascli.activity_log import ActivityLog, LogEntry
from gascli.client import PullResult, PushResult, SyncClient
from gascli.config import ConfigStore, Project, ProjectRef, SystemConfig
from gascli.exceptions import (
    AuthenticationError,
    ConfigError,
    GasCliError,
    NotFoundError,
    ProjectError,
    ReleaseError,
    RemoteError,
)
from gascli.mapping import GASFile, to_gas_file, to_local_path
from gascli.release import ReleaseCreator, bump_version
from gascli.transport import (
    GoogleAppsScriptTransport,
    LocalFileTransport,
    ProjectContent,
    Transport,
)

__all__ = [
    "ActivityLog",
    "AuthenticationError",
    "ConfigError",
    "ConfigStore",
    "GASFile",
    "GasCliError",
    "GoogleAppsScriptTransport",
    "LocalFileTransport",
    "LogEntry",
    "NotFoundError",
    "Project",
    "ProjectContent",
    "ProjectError",
    "ProjectRef",
    "PullResult",
    "PushResult",
    "ReleaseCreator",
    "ReleaseError",
    "RemoteError",
    "SyncClient",
    "SystemConfig",
    "Transport",
    "__version__",
    "bump_version",
    "to_gas_file",
    "to_local_path",
]
