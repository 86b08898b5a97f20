"""Memory Vault application configuration.

Loads settings from a YAML file (``memvault.settings.yaml``) into pydantic
models. Every section has defaults, so a missing file yields a working
local configuration.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from memvault.files.schemas import MAX_FILE_SIZE_BYTES

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("memvault.settings.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:  str  = "127.0.0.1"
    port:  int  = 8000
    debug: bool = False


class StorageSettings(BaseModel):
    db_path: str = "memory_vault.duckdb"


class AuthSettings(BaseModel):
    session_ttl_seconds: Optional[int] = Field(default=86400, gt=0)


class UploadSettings(BaseModel):
    max_size_bytes: int = Field(default=MAX_FILE_SIZE_BYTES, gt=0)


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.upper() not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    auth:    AuthSettings    = Field(default_factory=AuthSettings)
    upload:  UploadSettings  = Field(default_factory=UploadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *settings_path* (default ``memvault.settings.yaml``) into an AppConfig.

    A relative ``storage.db_path`` is resolved against the directory holding
    the settings file, so the vault opens the same database regardless of the
    working directory the server was started from.
    """
    path = Path(settings_path) if settings_path else SETTINGS_FILE
    config = AppConfig(**_load_yaml(path))

    db_path = Path(config.storage.db_path)
    if not db_path.is_absolute():
        config.storage.db_path = str(path.resolve().parent / db_path)

    logger.info(
        "Settings loaded (db_path=%s, max_upload=%d bytes)",
        config.storage.db_path,
        config.upload.max_size_bytes,
    )
    return config


@lru_cache
def get_config() -> AppConfig:
    return load_config()
