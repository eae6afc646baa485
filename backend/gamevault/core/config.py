"""Application configuration using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

SETTINGS_FILE_NAME = "settings.json"


def default_data_dir() -> Path:
    """Resolve the data directory used when none is configured.

    GAMEVAULT_DATA_DIR wins when it points at an existing directory (tests and
    portable installs); otherwise backend/data next to the package is used.
    """
    data_dir_env = os.environ.get("GAMEVAULT_DATA_DIR", "")
    if data_dir_env and Path(data_dir_env).exists():
        return Path(data_dir_env).resolve()
    # __file__ is backend/gamevault/core/config.py
    return (Path(__file__).parent.parent.parent / "data").resolve()


def read_settings_file(data_dir: Path | None = None) -> dict[str, Any]:
    """Read settings.json from the config directory.

    Returns an empty dict when the file is missing or unreadable so callers can
    always fall back to defaults.
    """
    settings_file = (data_dir or default_data_dir()) / "config" / SETTINGS_FILE_NAME
    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}

    return data if isinstance(data, dict) else {}


def json_config_settings_source(
    settings: BaseSettings | None = None,
) -> dict[str, Any]:  # noqa: ANN001
    """Load flat settings from settings.json (lowest priority source).

    Nested sections such as "matching" are owned by their own loaders and are
    not passed to the Settings model.
    """
    data = read_settings_file()

    # Nested format: {"paths": {"game_library": "..."}} is accepted for parity
    # with config files written by older releases.
    flattened: dict[str, Any] = {}
    paths = data.get("paths")
    if isinstance(paths, dict) and paths.get("game_library"):
        flattened["games_path"] = paths["game_library"]

    for key, value in data.items():
        if isinstance(value, dict):
            continue
        flattened[key.lower()] = value

    return flattened


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from:
    1. JSON file (settings.json in config directory) - lowest priority
    2. .env file
    3. Environment variables (GAMEVAULT_ prefix)
    4. Values passed to Settings() - highest priority
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GAMEVAULT_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Sources listed first win: init values, env vars, .env, JSON file."""
        return (  # type: ignore[return-value]
            init_settings,
            env_settings,
            dotenv_settings,
            json_config_settings_source,
        )

    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    data_dir: Path = Field(
        default_factory=default_data_dir,
        description="Base directory for application data (config, database, logs)",
    )

    games_path: Path = Field(
        default=Path("."),
        description="Root directory whose immediate sub-folders are game folders",
    )

    # Steam store endpoints
    catalog_search_url: str = Field(
        default="https://steamcommunity.com/actions/SearchApps",
        description="Text search endpoint returning [{appid, name}] candidates",
    )
    catalog_store_api_url: str = Field(
        default="https://store.steampowered.com/api",
        description="Store API base URL (appdetails)",
    )
    catalog_reviews_url: str = Field(
        default="https://store.steampowered.com/appreviews",
        description="Review summary endpoint base URL",
    )
    catalog_request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for catalog API requests",
    )
    image_request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for image downloads",
    )

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files (settings.json)."""
        return self.data_dir / "config"

    @property
    def database_dir(self) -> Path:
        """Directory for database files."""
        return self.data_dir / "database"

    @property
    def logs_dir(self) -> Path:
        """Directory for log files."""
        return self.data_dir / "logs"

    @property
    def database_file(self) -> Path:
        """SQLite database file."""
        return self.database_dir / "gamevault.db"

    @property
    def is_debug(self) -> bool:
        return self.env == "development"

    @property
    def is_testing(self) -> bool:
        return self.env == "testing"

    def model_post_init(self, __context: object) -> None:
        """Create data directories if they don't exist."""
        self.data_dir = self.data_dir.resolve()
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.database_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Clear the cache and build a fresh Settings instance."""
    get_settings.cache_clear()
    return get_settings()
