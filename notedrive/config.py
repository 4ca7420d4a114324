"""Application configuration loaded from a TOML file and environment variables."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "notedrive.toml"
SYSTEM_CONFIG_PATH = Path("/etc/notedrive") / CONFIG_FILE_NAME


def default_data_dir() -> Path:
    """Return the per-user data directory (``~/.notedrive``)."""
    return Path.home() / ".notedrive"


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)


class StorageSettings(BaseModel):
    files_root: Path | None = None
    notes_root: Path | None = None
    database: Path | None = None


class AuthSettings(BaseModel):
    authorized_keys: Path | None = None
    # Lifetimes in seconds.
    token_expiry: int = Field(default=86400, ge=1)
    challenge_expiry: int = Field(default=300, ge=1)


class LoggingSettings(BaseModel):
    level: Literal["debug", "info", "warn", "warning", "error"] = "info"


class Settings(BaseSettings):
    """notedrive server settings.

    Unset storage and auth paths default to locations under ``data_dir``.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTEDRIVE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(default_factory=default_data_dir)
    debug: bool = False

    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def _fill_default_paths(self) -> Settings:
        if self.storage.files_root is None:
            self.storage.files_root = self.data_dir / "files"
        if self.storage.notes_root is None:
            self.storage.notes_root = self.data_dir / "notes"
        if self.storage.database is None:
            self.storage.database = self.data_dir / "notedrive.db"
        if self.auth.authorized_keys is None:
            self.auth.authorized_keys = self.data_dir / "authorized_keys"
        return self

    @property
    def files_root(self) -> Path:
        assert self.storage.files_root is not None
        return self.storage.files_root

    @property
    def notes_root(self) -> Path:
        assert self.storage.notes_root is not None
        return self.storage.notes_root

    @property
    def database_path(self) -> Path:
        assert self.storage.database is not None
        return self.storage.database

    @property
    def authorized_keys_path(self) -> Path:
        assert self.auth.authorized_keys is not None
        return self.auth.authorized_keys

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    @property
    def log_level(self) -> int:
        if self.debug:
            return logging.DEBUG
        name = "WARNING" if self.logging.level == "warn" else self.logging.level.upper()
        return logging.getLevelNamesMapping()[name]


def parse_config_file(path: Path) -> dict[str, Any]:
    """Parse a TOML config file into a dict of Settings keyword arguments.

    Raises ValueError if the file is not valid TOML.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Failed to parse config {path}: {exc}"
        raise ValueError(msg) from exc
    return {key: value for key, value in data.items() if value is not None}


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from an explicit TOML file or the default locations.

    Lookup order when *path* is None: ``~/.notedrive/notedrive.toml``, then
    ``/etc/notedrive/notedrive.toml``. Without any file the defaults (plus
    environment overrides) apply. Values from the file take precedence over
    environment variables.
    """
    if path is not None:
        logger.info("Loading config from: %s", path)
        return Settings(**parse_config_file(path))

    for candidate in (default_data_dir() / CONFIG_FILE_NAME, SYSTEM_CONFIG_PATH):
        if candidate.is_file():
            logger.info("Loading config from: %s", candidate)
            return Settings(**parse_config_file(candidate))

    logger.info("No config file found, using defaults")
    return Settings()


def init_data_dirs(settings: Settings) -> None:
    """Create content roots, the database directory and an empty authorized_keys file."""
    settings.files_root.mkdir(parents=True, exist_ok=True)
    settings.notes_root.mkdir(parents=True, exist_ok=True)
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)

    keys_path = settings.authorized_keys_path
    if not keys_path.exists():
        keys_path.parent.mkdir(parents=True, exist_ok=True)
        keys_path.touch()
        logger.info("Created empty authorized_keys file at %s", keys_path)
