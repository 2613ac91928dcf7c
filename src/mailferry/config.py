"""Configuration management for mailferry."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from mailferry.storage import RULES_KEY

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/drive",
]


class GoogleConfig(BaseModel):
    """Google API credentials."""

    credentials_file: str = Field(
        default="credentials.json",
        description="OAuth client secrets downloaded from the Google Cloud console",
    )
    token_file: str = Field(
        default="token.json",
        description="Where the authorized user token is cached",
    )
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    user_id: str = "me"


class ProcessingConfig(BaseModel):
    """Rule processing settings."""

    batch_size: int = Field(
        default=10,
        ge=1,
        description="Maximum threads handled per rule per run",
    )
    interval: int = Field(
        default=300,
        ge=1,
        description="Seconds between runs in watch mode",
    )


class StorageConfig(BaseModel):
    """Rule persistence settings."""

    database_path: str = "mailferry.db"
    user: str = "default"
    rules_key: str = RULES_KEY


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_file: str | None = None
    audit_file: str | None = "audit.jsonl"


class WebConfig(BaseModel):
    """Management API settings."""

    host: str = "127.0.0.1"
    port: int = 8080


class Config(BaseModel):
    """Main configuration."""

    google: GoogleConfig = Field(default_factory=lambda: GoogleConfig())
    processing: ProcessingConfig = Field(default_factory=lambda: ProcessingConfig())
    storage: StorageConfig = Field(default_factory=lambda: StorageConfig())
    logging: LoggingConfig = Field(default_factory=lambda: LoggingConfig())
    web: WebConfig = Field(default_factory=lambda: WebConfig())
    dry_run: bool = False


def load_config(config_path: str | Path) -> Config:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return Config(**(data or {}))
