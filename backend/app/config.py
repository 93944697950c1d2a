"""SimpleHost application configuration.

Loads settings from a single YAML file:
  * simplehost.settings.yaml: server, storage and logging settings

The path can be overridden with the SIMPLEHOST_SETTINGS environment variable.
A missing file is not an error: every setting has a default.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("simplehost.settings.yaml")
SETTINGS_ENV_VAR = "SIMPLEHOST_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve_relative_path(value: str, settings_path: Path) -> str:
    """Resolve a relative path from the settings file location.

    Settings kept in a ``config/`` directory are resolved from the project
    root (the directory above ``config/``); any other layout resolves from
    the settings file's own directory.
    """
    path = Path(value)
    if path.is_absolute():
        return str(path)
    base_dir = settings_path.resolve().parent
    if base_dir.name == "config":
        base_dir = base_dir.parent
    return str(base_dir / path)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class StorageSettings(BaseModel):
    """Where uploads live and how long they are kept."""
    root:                         str   = "./uploads"
    file_prefix:                  str   = "simplehost"
    ttl_minutes:                  int   = 60
    max_upload_bytes:             int   = 10 * 1024 * 1024
    delete_retry_attempts:        int   = 3
    delete_retry_backoff_seconds: float = 0.5

    @field_validator("ttl_minutes", "max_upload_bytes", "delete_retry_attempts")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("file_prefix")
    @classmethod
    def _plain_prefix(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value or ".." in value:
            raise ValueError("file_prefix must be a plain, non-empty name")
        return value

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_minutes * 60.0


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *AppConfig* from YAML, falling back to defaults for missing keys."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_path = Path(settings_path)

    data = _load_yaml(settings_path)
    storage = data.get("storage") or {}
    if settings_path.exists() and storage.get("root"):
        storage["root"] = _resolve_relative_path(storage["root"], settings_path)
        data["storage"] = storage

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, storage.root=%s, ttl=%smin)",
        config.server.host,
        config.server.port,
        config.storage.root,
        config.storage.ttl_minutes,
    )
    return config


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
