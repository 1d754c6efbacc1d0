from __future__ import annotations

from pathlib import Path

import pytest

from posemaster.cli.config import Config, config_exists, load_config

_ENV_VARS = (
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "POSEMASTER_ESTIMATOR",
    "POSEMASTER_DATABASE_URL",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "BACKUP_RECIPIENT",
)


@pytest.fixture()
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.toml"
    monkeypatch.setenv("POSEMASTER_CONFIG", str(path))
    return path


class TestLoadConfig:
    def test_defaults_without_file(self, config_file: Path):
        cfg = load_config()

        assert not config_exists()
        assert cfg.estimator_provider == "gemini"
        assert cfg.store_provider == "sql"
        assert cfg.recipient == "admin@posemaster.com"
        assert not cfg.is_configured

    def test_reads_sections(self, config_file: Path, tmp_path: Path):
        config_file.write_text(
            f"""
[estimator]
provider = "openai"
api_key = "sk-file"
model = "openai/gpt-4o"

[store]
provider = "memory"

[smtp]
host = "smtp.example.com"
port = 2525
user = "mailer"

[backup]
recipient = "ops@example.com"
schedule_at = "01:15"

[data]
dir = "{tmp_path / 'pm-data'}"
"""
        )
        cfg = load_config()

        assert config_exists()
        assert cfg.estimator_provider == "openai"
        assert cfg.api_key == "sk-file"
        assert cfg.model == "openai/gpt-4o"
        assert cfg.store_provider == "memory"
        assert cfg.smtp_port == 2525
        assert cfg.notifier_provider == "smtp"
        assert cfg.recipient == "ops@example.com"
        assert cfg.schedule_at == "01:15"
        assert cfg.data_dir == str(tmp_path / "pm-data")

    def test_env_overrides_file(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ):
        config_file.write_text('[estimator]\napi_key = "from-file"\n')
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        monkeypatch.setenv("BACKUP_RECIPIENT", "oncall@example.com")
        monkeypatch.setenv("SMTP_PORT", "465")

        cfg = load_config()

        assert cfg.api_key == "from-env"
        assert cfg.recipient == "oncall@example.com"
        assert cfg.smtp_port == 465


class TestToDict:
    def test_persistent_defaults(self, tmp_path: Path):
        cfg = Config(gemini_api_key="g-key", data_dir=str(tmp_path))
        config = cfg.to_dict()

        assert config["pose_store"]["provider"] == "sql"
        assert config["pose_store"]["config"]["url"].endswith("posemaster.db")
        assert config["image_store"] == {"provider": "document"}
        assert config["estimator"] == {"provider": "gemini", "api_key": "g-key"}
        assert config["notifier"] == {"provider": "outbox"}
        assert config["storage"]["config"]["base_path"] == cfg.storage_path

    def test_memory_and_smtp(self):
        cfg = Config(
            estimator_provider="openai",
            openai_api_key="sk",
            model="openai/gpt-4o",
            store_provider="memory",
            smtp_host="smtp.local",
        )
        config = cfg.to_dict()

        assert config["pose_store"] == {"provider": "memory", "config": {}}
        assert config["image_store"] == {"provider": "memory"}
        assert config["estimator"]["model"] == "openai/gpt-4o"
        assert config["notifier"]["provider"] == "smtp"
        assert config["notifier"]["config"]["host"] == "smtp.local"
        assert config["notifier"]["config"]["username"] is None

    def test_database_url_override(self):
        cfg = Config(database_url="postgresql+asyncpg://pm@db/pm")
        assert cfg.resolved_database_url == "postgresql+asyncpg://pm@db/pm"
