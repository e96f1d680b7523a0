"""Process settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``GAS_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="GAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Directory holding config.json, projects.json and key.json
    root: Path = Field(default_factory=Path.cwd)

    config_file: str = "config.json"
    projects_file: str = "projects.json"
    key_file: str = "key.json"

    # Logging
    log_level: str = "INFO"
    log_timezone: str | None = None
    json_logs: bool = False

    # Apps Script API
    http_timeout: int = 60

    @property
    def config_path(self) -> Path:
        return self.root / self.config_file

    @property
    def projects_path(self) -> Path:
        return self.root / self.projects_file

    @property
    def key_path(self) -> Path:
        return self.root / self.key_file


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
