"""Tests for configuration loading."""

import dataclasses

import pytest

from config import DEFAULT_RELEASES_URL, Config, ConfigError

ENV_VARS = [
    "TG_BOT_TOKEN", "TG_USER_ID", "N8N_DIR", "N8N_CONTAINER", "N8N_SERVICE",
    "BACKUP_SCRIPT", "COMMAND_TIMEOUT", "RELEASES_URL", "NOTIFY_ON_START", "LOG_LEVEL",
    "MAX_LOG_SIZE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_required_values(monkeypatch) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TG_USER_ID", " 42 ")

    config = Config.from_env(dotenv=False)

    assert config.bot_token == "123:abc"
    assert config.authorized_user == "42"
    assert config.work_dir == "/opt/main"
    assert config.container == "n8n"
    assert config.command_timeout == 60
    assert config.releases_url == DEFAULT_RELEASES_URL
    assert config.notify_on_start


@pytest.mark.parametrize("present", ["TG_BOT_TOKEN", "TG_USER_ID"])
def test_missing_required_value_is_fatal(monkeypatch, present: str) -> None:
    monkeypatch.setenv(present, "value")

    with pytest.raises(ConfigError) as exc_info:
        Config.from_env(dotenv=False)

    missing = "TG_USER_ID" if present == "TG_BOT_TOKEN" else "TG_BOT_TOKEN"
    assert missing in str(exc_info.value)


def test_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TG_USER_ID", "42")
    monkeypatch.setenv("N8N_DIR", "/srv/n8n")
    monkeypatch.setenv("N8N_CONTAINER", "n8n-main")
    monkeypatch.setenv("COMMAND_TIMEOUT", "90")
    monkeypatch.setenv("NOTIFY_ON_START", "false")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = Config.from_env(dotenv=False)

    assert config.work_dir == "/srv/n8n"
    assert config.container == "n8n-main"
    assert config.command_timeout == 90
    assert not config.notify_on_start
    assert config.log_level == "DEBUG"


def test_derived_commands() -> None:
    config = Config(bot_token="t", authorized_user="1", work_dir="/srv/n8n")

    assert config.backup_command == "/srv/n8n/backup_n8n.sh"
    assert config.manual_update_hint == "cd /srv/n8n && ./update_n8n.sh"
    assert dataclasses.replace(config, backup_script="/usr/local/bin/backup").backup_command == (
        "/usr/local/bin/backup"
    )


def test_config_is_immutable() -> None:
    config = Config(bot_token="t", authorized_user="1")

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.work_dir = "/tmp"


@pytest.mark.parametrize("name", ["COMMAND_TIMEOUT", "MAX_LOG_SIZE"])
def test_non_numeric_value_is_a_config_error(monkeypatch, name: str) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TG_USER_ID", "42")
    monkeypatch.setenv(name, "ten")

    with pytest.raises(ConfigError) as exc_info:
        Config.from_env(dotenv=False)

    assert name in str(exc_info.value)
