"""Archive application configuration.

Loads settings from two YAML files:
  * archive.settings.yaml  : non-secret configuration
  * archive.secrets.yaml   : session secret and user credentials (never committed)

A handful of environment variables override file values so the app can be
deployed without editing YAML (PORT, APP_ENV, PER_PAGE, ARCHIVE_DB_PATH,
ARCHIVE_DOCUMENTS_PATH, SESSION_SECRET).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("archive.settings.yaml")
SECRETS_FILE  = Path("archive.secrets.yaml")

UPLOADS_BUCKET = "uploads"
# Same default as GridFS: 255 KiB keeps each chunk under 256 KiB.
DEFAULT_CHUNK_SIZE = 255 * 1024


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class UserCredentials(BaseModel):
    """One account known to the login endpoint.

    ``password_hash`` is a bcrypt hash, e.g. from
    ``archive.auth.service.hash_password``.
    """
    id:            str
    password_hash: str


class Secrets(BaseModel):
    session_secret: str                        = "change-me-in-production"
    users:          Dict[str, UserCredentials] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:       str  = "0.0.0.0"
    port:       int  = 3000
    production: bool = False
    log_level:  str  = "info"


class StorageSettings(BaseModel):
    """Database locations and blob chunking.

    ``db_path`` holds the chunked blobs; ``documents_path`` holds posts and
    comments.
    """
    db_path:        str = "archive.duckdb"
    documents_path: str = "archive_documents.duckdb"
    bucket:         str = UPLOADS_BUCKET
    chunk_size:     int = DEFAULT_CHUNK_SIZE

    @field_validator("chunk_size")
    @classmethod
    def _positive_chunk_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("chunk_size must be positive")
        return value


class UploadSettings(BaseModel):
    """What happens to incoming files.

    ``on_collision`` decides what an upload does when a file with the same
    name already exists in the bucket:
      * ``allow``  : store it anyway; name lookups keep returning the oldest
      * ``reject`` : refuse the upload with 409
      * ``rename`` : store it as ``name (1).ext``, ``name (2).ext``, ...
    """
    per_page:     Optional[int]                        = None
    on_collision: Literal["allow", "reject", "rename"] = "allow"


class SecuritySettings(BaseModel):
    protect_delete:  bool = False
    session_cookie:  str  = "archive_session"
    session_max_age: int  = 14 * 24 * 60 * 60


class AppConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    storage:  StorageSettings  = Field(default_factory=StorageSettings)
    uploads:  UploadSettings   = Field(default_factory=UploadSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    secrets:  Secrets          = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any]) -> None:
    """Overlay environment variables onto the raw settings dict."""
    env = os.environ

    if env.get("PORT"):
        data.setdefault("server", {})["port"] = int(env["PORT"])
    if env.get("APP_ENV"):
        data.setdefault("server", {})["production"] = env["APP_ENV"] == "production"
    if env.get("PER_PAGE"):
        data.setdefault("uploads", {})["per_page"] = int(env["PER_PAGE"])
    if env.get("ARCHIVE_DB_PATH"):
        data.setdefault("storage", {})["db_path"] = env["ARCHIVE_DB_PATH"]
    if env.get("ARCHIVE_DOCUMENTS_PATH"):
        data.setdefault("storage", {})["documents_path"] = env["ARCHIVE_DOCUMENTS_PATH"]
    if env.get("SESSION_SECRET"):
        data.setdefault("secrets", {})["session_secret"] = env["SESSION_SECRET"]


def _resolve_path(value: str, base_dir: Path) -> str:
    if value == ":memory:" or Path(value).is_absolute():
        return value
    return str(base_dir / value)


def _resolve_db_paths(config: AppConfig, base_dir: Path) -> None:
    config.storage.db_path = _resolve_path(config.storage.db_path, base_dir)
    config.storage.documents_path = _resolve_path(config.storage.documents_path, base_dir)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object.

    Relative ``storage.db_path`` and ``storage.documents_path`` values
    resolve against the directory that holds the settings file.
    """
    settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
    if secrets_path is None:
        secrets_path = settings_path.with_name(SECRETS_FILE.name)

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(Path(secrets_path))

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data
    _apply_env_overrides(settings_data)

    config = AppConfig(**settings_data)
    _resolve_db_paths(config, settings_path.resolve().parent)

    logger.info(
        "Settings loaded (server=%s:%s, production=%s, db=%s, on_collision=%s)",
        config.server.host,
        config.server.port,
        config.server.production,
        config.storage.db_path,
        config.uploads.on_collision,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
