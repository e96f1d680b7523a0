"""Shared test fixtures for gascli."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gascli.activity_log import ActivityLog
from gascli.client import SyncClient
from gascli.config import ConfigStore, ProjectRef
from gascli.transport import LocalFileTransport

GOLDEN_DIR = Path(__file__).parent / "golden"

SCRIPT_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz_test"

SERVICE_ACCOUNT_KEY = {
    "type": "service_account",
    "project_id": "gas-sync-test",
    "private_key_id": "0123456789abcdef",
    "client_email": "sync@gas-sync-test.iam.gserviceaccount.com",
}


@pytest.fixture
def golden_dir() -> Path:
    return GOLDEN_DIR / "test_project"


@pytest.fixture
def local_transport(golden_dir: Path) -> LocalFileTransport:
    return LocalFileTransport(golden_dir)


@pytest.fixture
def activity_log(tmp_path: Path) -> ActivityLog:
    return ActivityLog(tmp_path / "logs", level="DEBUG")


@pytest.fixture
def sync_client(
    local_transport: LocalFileTransport, activity_log: ActivityLog
) -> SyncClient:
    return SyncClient(local_transport, activity_log)


@pytest.fixture
def script_id() -> str:
    return SCRIPT_ID


@pytest.fixture
def project() -> ProjectRef:
    return ProjectRef(name="leads", script_id=SCRIPT_ID, title="Leads")


@pytest.fixture
def config_root(tmp_path: Path) -> Path:
    """A configuration root with config.json, projects.json and key.json."""
    root = tmp_path / "root"
    (root / "projects" / "leads" / "system").mkdir(parents=True)
    (root / "logs").mkdir()

    (root / "config.json").write_text(
        json.dumps(
            {
                "defaultProject": "leads",
                "projectsPath": "projects",
                "systemPath": "system",
                "logsPath": "logs",
            }
        )
    )
    (root / "projects.json").write_text(
        json.dumps(
            {
                "leads": {
                    "id": SCRIPT_ID,
                    "title": "Leads",
                    "description": "Lead tracking",
                },
                "drafts": {"id": "", "title": "Drafts", "description": ""},
            }
        )
    )
    (root / "key.json").write_text(json.dumps(SERVICE_ACCOUNT_KEY))
    return root


@pytest.fixture
def store(config_root: Path) -> ConfigStore:
    return ConfigStore(config_root)
