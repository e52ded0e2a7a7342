"""Tests for the configuration module."""

from pathlib import Path

import pytest

from healthwatch.config import (
    Config,
    ConfigError,
    HealthConfig,
    MonitorConfig,
    StorageConfig,
    TelegramConfig,
    load_config,
)

ENV_VARS = (
    "HEALTHWATCH_TELEGRAM_TOKEN",
    "HEALTHWATCH_TELEGRAM_CHAT",
    "HEALTHWATCH_TELEGRAM_PROXY",
    "HEALTHWATCH_CHECK_INTERVAL",
    "HEALTHWATCH_ALERT_THRESHOLD",
    "HEALTHWATCH_HTTP_TIMEOUT",
    "HEALTHWATCH_SSL_EXPIRY_ALERT",
    "HEALTHWATCH_DEFAULT_RESPONSE_TIME",
    "HEALTHWATCH_STORAGE_PATH",
    "HEALTHWATCH_HEALTH_PORT",
    "HEALTHWATCH_HEALTH_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's environment out of config loading."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def valid_config_content() -> str:
    """Return a valid configuration YAML content."""
    return """telegram:
  token: "123456:ABC-DEF"
  chat_id: -1001234567890

monitor:
  interval: 60
  alert_threshold: 2
  http_timeout: 8
  ssl_expiry_alert_days: 14
  default_response_time_ms: 1500

storage:
  path: ./data/checks.json

health:
  enabled: true
  port: 9090
"""


def write_config(tmp_path: Path, content: str) -> Path:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(content)
    return config_file


class TestTelegramConfig:
    """Tests for TelegramConfig dataclass."""

    def test_creates_valid_config(self) -> None:
        """Valid credentials are accepted."""
        config = TelegramConfig(token="123:abc", chat_id=42)
        assert config.token == "123:abc"
        assert config.chat_id == 42
        assert config.proxy is None

    def test_rejects_empty_token(self) -> None:
        """Empty token is rejected."""
        with pytest.raises(ConfigError, match="token cannot be empty"):
            TelegramConfig(token="", chat_id=42)

    def test_rejects_zero_chat_id(self) -> None:
        """Chat id 0 is rejected."""
        with pytest.raises(ConfigError, match="chat_id cannot be zero"):
            TelegramConfig(token="123:abc", chat_id=0)

    def test_accepts_http_proxy(self) -> None:
        """HTTP proxies are accepted."""
        config = TelegramConfig(token="123:abc", chat_id=42, proxy="http://proxy.local:3128")
        assert config.proxy == "http://proxy.local:3128"

    def test_rejects_socks_proxy(self) -> None:
        """Non-HTTP proxies are rejected."""
        with pytest.raises(ConfigError, match="proxy must be an http"):
            TelegramConfig(token="123:abc", chat_id=42, proxy="socks5://proxy.local:1080")


class TestMonitorConfig:
    """Tests for MonitorConfig dataclass."""

    def test_defaults(self) -> None:
        """Defaults match the documented values."""
        config = MonitorConfig()
        assert config.interval == 30
        assert config.alert_threshold == 3
        assert config.http_timeout == 10
        assert config.ssl_expiry_alert_days == 30
        assert config.default_response_time_ms == 0

    def test_rejects_interval_below_minimum(self) -> None:
        """Interval below 5 seconds is rejected."""
        with pytest.raises(ConfigError, match="at least 5 seconds"):
            MonitorConfig(interval=4)

    def test_rejects_zero_alert_threshold(self) -> None:
        """Alert threshold must be at least 1."""
        with pytest.raises(ConfigError, match="Alert threshold must be at least 1"):
            MonitorConfig(alert_threshold=0)

    def test_rejects_tiny_http_timeout(self) -> None:
        """HTTP timeout below 2 seconds is rejected."""
        with pytest.raises(ConfigError, match="HTTP timeout must be at least 2"):
            MonitorConfig(http_timeout=1)

    def test_rejects_negative_ssl_window(self) -> None:
        """Negative SSL window is rejected."""
        with pytest.raises(ConfigError, match="non-negative"):
            MonitorConfig(ssl_expiry_alert_days=-1)

    def test_rejects_negative_default_response_time(self) -> None:
        """Negative default response time is rejected."""
        with pytest.raises(ConfigError, match="non-negative"):
            MonitorConfig(default_response_time_ms=-5)


class TestStorageAndHealthConfig:
    """Tests for StorageConfig and HealthConfig dataclasses."""

    def test_storage_default_path(self) -> None:
        """Storage path defaults to data/checks.json."""
        assert StorageConfig().path == "data/checks.json"

    def test_storage_rejects_empty_path(self) -> None:
        """Empty storage path is rejected."""
        with pytest.raises(ConfigError, match="Storage path cannot be empty"):
            StorageConfig(path="")

    def test_health_defaults(self) -> None:
        """Health endpoint is enabled on 8081 by default."""
        config = HealthConfig()
        assert config.enabled is True
        assert config.port == 8081

    def test_health_rejects_invalid_port(self) -> None:
        """Port outside 1-65535 is rejected."""
        with pytest.raises(ConfigError, match="between 1 and 65535"):
            HealthConfig(port=70000)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_valid_config(self, tmp_path: Path, valid_config_content: str) -> None:
        """Valid config file is loaded correctly."""
        config = load_config(str(write_config(tmp_path, valid_config_content)))

        assert isinstance(config, Config)
        assert config.telegram.token == "123456:ABC-DEF"
        assert config.telegram.chat_id == -1001234567890
        assert config.monitor.interval == 60
        assert config.monitor.alert_threshold == 2
        assert config.monitor.http_timeout == 8
        assert config.monitor.ssl_expiry_alert_days == 14
        assert config.monitor.default_response_time_ms == 1500
        assert config.storage.path == "./data/checks.json"
        assert config.health.port == 9090

    def test_minimal_config_uses_defaults(self, tmp_path: Path) -> None:
        """Only the telegram section is required."""
        config = load_config(str(write_config(tmp_path, "telegram:\n  token: t\n  chat_id: 7\n")))

        assert config.monitor == MonitorConfig()
        assert config.storage == StorageConfig()
        assert config.health == HealthConfig()

    def test_missing_file_without_env_raises(self, tmp_path: Path) -> None:
        """A missing file is an error when the environment has no credentials."""
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_missing_file_with_env_credentials(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment credentials are enough to run without a file."""
        monkeypatch.setenv("HEALTHWATCH_TELEGRAM_TOKEN", "env-token")
        monkeypatch.setenv("HEALTHWATCH_TELEGRAM_CHAT", "99")

        config = load_config(str(tmp_path / "nope.yaml"))

        assert config.telegram.token == "env-token"
        assert config.telegram.chat_id == 99

    def test_missing_telegram_section(self, tmp_path: Path) -> None:
        """A file without a telegram section is rejected."""
        with pytest.raises(ConfigError, match="must contain a 'telegram' section"):
            load_config(str(write_config(tmp_path, "monitor:\n  interval: 30\n")))

    def test_missing_token(self, tmp_path: Path) -> None:
        """Telegram section without a token is rejected."""
        with pytest.raises(ConfigError, match="missing 'token' field"):
            load_config(str(write_config(tmp_path, "telegram:\n  chat_id: 7\n")))

    def test_missing_chat_id(self, tmp_path: Path) -> None:
        """Telegram section without a chat id is rejected."""
        with pytest.raises(ConfigError, match="missing 'chat_id' field"):
            load_config(str(write_config(tmp_path, "telegram:\n  token: t\n")))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Invalid YAML is rejected."""
        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            load_config(str(write_config(tmp_path, "telegram: [unclosed\n")))

    def test_non_dict_yaml(self, tmp_path: Path) -> None:
        """A YAML list at top level is rejected."""
        with pytest.raises(ConfigError, match="must be a YAML dictionary"):
            load_config(str(write_config(tmp_path, "- a\n- b\n")))

    def test_non_integer_value(self, tmp_path: Path) -> None:
        """Non-numeric integer settings name the offending key."""
        content = "telegram:\n  token: t\n  chat_id: 7\nmonitor:\n  interval: soon\n"
        with pytest.raises(ConfigError, match="'monitor.interval' must be an integer"):
            load_config(str(write_config(tmp_path, content)))

    def test_section_must_be_dict(self, tmp_path: Path) -> None:
        """A scalar section is rejected."""
        content = "telegram:\n  token: t\n  chat_id: 7\nstorage: somewhere\n"
        with pytest.raises(ConfigError, match="'storage' section must be a dictionary"):
            load_config(str(write_config(tmp_path, content)))


class TestEnvOverrides:
    """Tests for HEALTHWATCH_* environment overrides."""

    def test_env_overrides_file_values(
        self, tmp_path: Path, valid_config_content: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Environment variables take precedence over the file."""
        monkeypatch.setenv("HEALTHWATCH_TELEGRAM_TOKEN", "override")
        monkeypatch.setenv("HEALTHWATCH_CHECK_INTERVAL", "15")
        monkeypatch.setenv("HEALTHWATCH_ALERT_THRESHOLD", "5")
        monkeypatch.setenv("HEALTHWATCH_SSL_EXPIRY_ALERT", "7")
        monkeypatch.setenv("HEALTHWATCH_STORAGE_PATH", "/tmp/other.json")
        monkeypatch.setenv("HEALTHWATCH_HEALTH_PORT", "8181")

        config = load_config(str(write_config(tmp_path, valid_config_content)))

        assert config.telegram.token == "override"
        assert config.monitor.interval == 15
        assert config.monitor.alert_threshold == 5
        assert config.monitor.ssl_expiry_alert_days == 7
        assert config.storage.path == "/tmp/other.json"
        assert config.health.port == 8181

    def test_health_enabled_env(
        self, tmp_path: Path, valid_config_content: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """HEALTHWATCH_HEALTH_ENABLED=false disables the endpoint."""
        monkeypatch.setenv("HEALTHWATCH_HEALTH_ENABLED", "false")

        config = load_config(str(write_config(tmp_path, valid_config_content)))

        assert config.health.enabled is False

    def test_invalid_env_value_rejected(
        self, tmp_path: Path, valid_config_content: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Overrides are validated like file values."""
        monkeypatch.setenv("HEALTHWATCH_CHECK_INTERVAL", "1")

        with pytest.raises(ConfigError, match="at least 5 seconds"):
            load_config(str(write_config(tmp_path, valid_config_content)))
