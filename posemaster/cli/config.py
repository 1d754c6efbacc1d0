"""Configuration management for the posemaster CLI.

Reads a TOML config file and provides a typed Config dataclass.
Default location: ``~/.config/posemaster/config.toml``.
Override with the ``POSEMASTER_CONFIG`` environment variable.

Example::

    [estimator]
    provider = "gemini"          # or "openai"
    api_key = "..."

    [store]
    provider = "sql"             # or "memory"
    url = "sqlite+aiosqlite:///data/posemaster.db"

    [smtp]
    host = "smtp.sendgrid.net"
    port = 587
    user = "apikey"
    password = "..."

    [backup]
    recipient = "admin@posemaster.com"
    schedule_at = "23:59"

    [data]
    dir = "./data"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from posemaster.settings import DEFAULT_RECIPIENT, DEFAULT_SENDER

_DEFAULT_CONFIG_DIR = Path("~/.config/posemaster").expanduser()
_DEFAULT_DATA_DIR = Path("./data")


def _config_path() -> Path:
    env = os.environ.get("POSEMASTER_CONFIG")
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CONFIG_DIR / "config.toml"


@dataclass
class Config:
    # Estimator: "gemini" (default) or "openai" (any litellm vision model)
    estimator_provider: str = "gemini"
    gemini_api_key: str = ""
    openai_api_key: str = ""
    model: str = ""

    # Store backend: "sql" (default, SQLite file under data_dir) or "memory"
    store_provider: str = "sql"
    database_url: str = ""

    # Notifier: "smtp" when smtp_host is set, else the in-memory outbox
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True

    recipient: str = DEFAULT_RECIPIENT
    sender: str = DEFAULT_SENDER
    schedule_at: str = "23:59"

    data_dir: str = str(_DEFAULT_DATA_DIR)

    @property
    def api_key(self) -> str:
        if self.estimator_provider == "openai":
            return self.openai_api_key
        return self.gemini_api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def storage_path(self) -> str:
        return str(Path(self.data_dir) / "storage")

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{Path(self.data_dir) / 'posemaster.db'}"

    @property
    def notifier_provider(self) -> str:
        return "smtp" if self.smtp_host else "outbox"

    def ensure_dirs(self) -> None:
        """Create the data directory structure if it doesn't exist."""
        Path(self.storage_path).mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert into the config dict understood by ``PoseMaster.from_config``."""
        persistent = self.store_provider == "sql"
        estimator: dict[str, Any] = {
            "provider": self.estimator_provider,
            "api_key": self.api_key or None,
        }
        if self.model:
            estimator["model"] = self.model

        notifier: dict[str, Any] = {"provider": self.notifier_provider}
        if self.notifier_provider == "smtp":
            notifier["config"] = {
                "host": self.smtp_host,
                "port": self.smtp_port,
                "username": self.smtp_user or None,
                "password": self.smtp_password or None,
                "starttls": self.smtp_starttls,
            }

        return {
            "storage": {"provider": "disk", "config": {"base_path": self.storage_path}},
            "pose_store": {
                "provider": "sql" if persistent else "memory",
                "config": {"url": self.resolved_database_url} if persistent else {},
            },
            "image_store": {"provider": "document" if persistent else "memory"},
            "estimator": estimator,
            "notifier": notifier,
            "backup": {
                "recipient": self.recipient,
                "sender": self.sender,
                "schedule_at": self.schedule_at,
            },
        }


def load_config() -> Config:
    """Load config from disk, falling back to defaults + env overrides."""
    path = _config_path()
    cfg = Config()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        estimator_section = data.get("estimator", {})
        store_section = data.get("store", {})
        smtp_section = data.get("smtp", {})
        backup_section = data.get("backup", {})
        data_section = data.get("data", {})

        cfg.estimator_provider = estimator_section.get(
            "provider", cfg.estimator_provider
        )
        if cfg.estimator_provider == "openai":
            cfg.openai_api_key = estimator_section.get("api_key", cfg.openai_api_key)
        else:
            cfg.gemini_api_key = estimator_section.get("api_key", cfg.gemini_api_key)
        cfg.model = estimator_section.get("model", cfg.model)

        cfg.store_provider = store_section.get("provider", cfg.store_provider)
        cfg.database_url = store_section.get("url", cfg.database_url)

        cfg.smtp_host = smtp_section.get("host", cfg.smtp_host)
        cfg.smtp_port = int(smtp_section.get("port", cfg.smtp_port))
        cfg.smtp_user = smtp_section.get("user", cfg.smtp_user)
        cfg.smtp_password = smtp_section.get("password", cfg.smtp_password)
        cfg.smtp_starttls = bool(smtp_section.get("starttls", cfg.smtp_starttls))

        cfg.recipient = backup_section.get("recipient", cfg.recipient)
        cfg.sender = backup_section.get("sender", cfg.sender)
        cfg.schedule_at = backup_section.get("schedule_at", cfg.schedule_at)

        cfg.data_dir = data_section.get("dir", cfg.data_dir)

    # Environment variables always take precedence
    cfg.gemini_api_key = os.environ.get("GEMINI_API_KEY", cfg.gemini_api_key)
    cfg.openai_api_key = os.environ.get("OPENAI_API_KEY", cfg.openai_api_key)
    cfg.estimator_provider = os.environ.get(
        "POSEMASTER_ESTIMATOR", cfg.estimator_provider
    )
    cfg.database_url = os.environ.get("POSEMASTER_DATABASE_URL", cfg.database_url)
    cfg.smtp_host = os.environ.get("SMTP_HOST", cfg.smtp_host)
    cfg.smtp_port = int(os.environ.get("SMTP_PORT", str(cfg.smtp_port)))
    cfg.smtp_user = os.environ.get("SMTP_USER", cfg.smtp_user)
    cfg.smtp_password = os.environ.get("SMTP_PASSWORD", cfg.smtp_password)
    cfg.recipient = os.environ.get("BACKUP_RECIPIENT", cfg.recipient)

    return cfg


def config_exists() -> bool:
    return _config_path().exists()


def config_path_display() -> str:
    return str(_config_path())
