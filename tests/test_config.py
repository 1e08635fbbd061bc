"""
Tests for relay server and voice client configuration.

Verifies:
- Configuration loading from environment
- Default values
- Integer parsing tolerance
"""
import os
from pathlib import Path

import pytest

from relay_server.config import RelayConfig, get_config, load_env_files, parse_int_env, reset_config
from voice_client.config import DEFAULT_SERVER_URL, DEFAULT_TRANSCRIPT_PATH, ClientConfig


RELAY_VARS = (
    "AGENT_WEBHOOK_URL", "GEMINI_API_KEY", "GEMINI_MODEL", "RELAY_TIMEOUT_SECONDS",
    "TRANSCRIBE_DELAY_MS", "RELAY_HOST", "RELAY_PORT", "LOG_LEVEL",
)
CLIENT_VARS = (
    "RELAY_SERVER_URL", "TRANSCRIPT_PATH", "MIC_SAMPLE_RATE_HZ", "MIC_CHANNELS",
    "MIC_DEVICE", "RELAY_TIMEOUT_SECONDS", "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in RELAY_VARS + CLIENT_VARS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_relay_config_from_env_all_fields(clean_env):
    clean_env.setenv("AGENT_WEBHOOK_URL", "https://agent.example/webhook")
    clean_env.setenv("GEMINI_API_KEY", "test_key")
    clean_env.setenv("GEMINI_MODEL", "gemini-2.5-pro")
    clean_env.setenv("RELAY_TIMEOUT_SECONDS", "60")
    clean_env.setenv("TRANSCRIBE_DELAY_MS", "0")
    clean_env.setenv("RELAY_HOST", "127.0.0.1")
    clean_env.setenv("RELAY_PORT", "9000")
    clean_env.setenv("LOG_LEVEL", "DEBUG")

    config = RelayConfig.from_env()

    assert config.agent_webhook_url == "https://agent.example/webhook"
    assert config.gemini_api_key == "test_key"
    assert config.gemini_model == "gemini-2.5-pro"
    assert config.relay_timeout_seconds == 60
    assert config.transcribe_delay_ms == 0
    assert config.host == "127.0.0.1"
    assert config.port == 9000
    assert config.log_level == "DEBUG"


def test_relay_config_defaults(clean_env):
    config = RelayConfig.from_env()

    assert config.agent_webhook_url is None
    assert config.gemini_api_key is None
    assert config.gemini_model == "gemini-2.5-flash"
    assert config.relay_timeout_seconds == 300
    assert config.transcribe_delay_ms == 1000
    assert config.port == 8000


def test_blank_credentials_are_absent(clean_env):
    clean_env.setenv("GEMINI_API_KEY", "   ")
    clean_env.setenv("AGENT_WEBHOOK_URL", "")

    config = RelayConfig.from_env()

    assert config.gemini_api_key is None
    assert config.agent_webhook_url is None


@pytest.mark.parametrize(
    "raw, expected",
    [("300  # five minutes", 300), ("42", 42), (" 7 ", 7), ("", 10), ("# only", 10), ("abc", 10)],
)
def test_parse_int_env(monkeypatch, raw, expected):
    monkeypatch.setenv("SOME_INT", raw)
    assert parse_int_env("SOME_INT", default=10) == expected


def test_parse_int_env_unset(monkeypatch):
    monkeypatch.delenv("SOME_INT", raising=False)
    assert parse_int_env("SOME_INT", default=10) == 10


def test_get_config_is_cached_until_reset(clean_env):
    clean_env.setenv("GEMINI_API_KEY", "first")
    assert get_config().gemini_api_key == "first"

    clean_env.setenv("GEMINI_API_KEY", "second")
    assert get_config().gemini_api_key == "first"

    reset_config()
    assert get_config().gemini_api_key == "second"


def test_env_files_do_not_override_environment(clean_env, tmp_path):
    (tmp_path / ".env").write_text("GEMINI_API_KEY=from_file\nGEMINI_MODEL=file-model\n", encoding="utf-8")
    clean_env.setenv("GEMINI_API_KEY", "from_env")

    load_env_files(tmp_path)
    config = RelayConfig.from_env()

    assert config.gemini_api_key == "from_env"
    assert config.gemini_model == "file-model"
    os.environ.pop("GEMINI_MODEL", None)


def test_client_config_defaults(clean_env):
    config = ClientConfig.from_env()

    assert config.server_url == DEFAULT_SERVER_URL
    assert config.transcript_path == DEFAULT_TRANSCRIPT_PATH
    assert config.sample_rate_hz == 16000
    assert config.channels == 1
    assert config.device is None
    assert config.relay_timeout_seconds == 300


def test_client_config_from_env(clean_env, tmp_path):
    clean_env.setenv("RELAY_SERVER_URL", "http://relay.local:9000/")
    clean_env.setenv("TRANSCRIPT_PATH", str(tmp_path / "t.json"))
    clean_env.setenv("MIC_SAMPLE_RATE_HZ", "48000")
    clean_env.setenv("MIC_CHANNELS", "2")
    clean_env.setenv("MIC_DEVICE", "USB Mic")

    config = ClientConfig.from_env()

    assert config.server_url == "http://relay.local:9000"
    assert config.transcript_path == Path(tmp_path / "t.json")
    assert config.sample_rate_hz == 48000
    assert config.channels == 2
    assert config.device == "USB Mic"
