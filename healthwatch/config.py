"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# Minimum interval between check cycles in seconds.
MIN_CHECK_INTERVAL = 5

# Probes split their timeout in half for the connect/TLS phase, so one second
# would leave nothing for the handshake.
MIN_HTTP_TIMEOUT = 2

DEFAULT_STORAGE_PATH = "data/checks.json"


@dataclass(frozen=True)
class TelegramConfig:
    """Bot credentials and the single chat that receives notifications."""

    token: str
    chat_id: int
    proxy: str | None = None

    def __post_init__(self) -> None:
        if not self.token:
            raise ConfigError("Telegram token cannot be empty")
        if self.chat_id == 0:
            raise ConfigError("Telegram chat_id cannot be zero")
        if self.proxy is not None and not self.proxy.startswith(("http://", "https://")):
            raise ConfigError(f"Telegram proxy must be an http:// or https:// URL, got '{self.proxy}'")


@dataclass(frozen=True)
class MonitorConfig:
    """Configuration for the check cycle."""

    interval: int = 30  # seconds between check cycles
    alert_threshold: int = 3  # consecutive failures before a down alert
    http_timeout: int = 10  # total probe timeout in seconds
    ssl_expiry_alert_days: int = 30  # global SSL warning window
    default_response_time_ms: int = 0  # slow threshold given to newly added targets

    def __post_init__(self) -> None:
        if self.interval < MIN_CHECK_INTERVAL:
            raise ConfigError(
                f"Check interval must be at least {MIN_CHECK_INTERVAL} seconds (got {self.interval})"
            )
        if self.alert_threshold < 1:
            raise ConfigError(f"Alert threshold must be at least 1 (got {self.alert_threshold})")
        if self.http_timeout < MIN_HTTP_TIMEOUT:
            raise ConfigError(
                f"HTTP timeout must be at least {MIN_HTTP_TIMEOUT} seconds (got {self.http_timeout})"
            )
        if self.ssl_expiry_alert_days < 0:
            raise ConfigError(f"SSL expiry alert days must be non-negative (got {self.ssl_expiry_alert_days})")
        if self.default_response_time_ms < 0:
            raise ConfigError(
                f"Default response time must be non-negative (got {self.default_response_time_ms})"
            )


@dataclass(frozen=True)
class StorageConfig:
    """Location of the JSON target document."""

    path: str = DEFAULT_STORAGE_PATH

    def __post_init__(self) -> None:
        if not self.path:
            raise ConfigError("Storage path cannot be empty")


@dataclass(frozen=True)
class HealthConfig:
    """Configuration for the liveness HTTP endpoint."""

    enabled: bool = True
    port: int = 8081

    def __post_init__(self) -> None:
        if self.port < 1 or self.port > 65535:
            raise ConfigError(f"Health port must be between 1 and 65535, got {self.port}")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    telegram: TelegramConfig
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    health: HealthConfig = field(default_factory=HealthConfig)


def _section(data: dict, name: str) -> dict:
    """Return a config section as a dict, treating a missing one as empty."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a dictionary")
    return section


def _int(section: dict, key: str, default: int, where: str) -> int:
    value = section.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{where}.{key}' must be an integer, got {value!r}")


def _parse_telegram_config(data: dict) -> TelegramConfig:
    """Parse telegram configuration section."""
    token = data.get("token")
    chat_id = data.get("chat_id")

    if token is None:
        raise ConfigError("Telegram section is missing 'token' field")
    if chat_id is None:
        raise ConfigError("Telegram section is missing 'chat_id' field")

    proxy = data.get("proxy")

    return TelegramConfig(
        token=str(token),
        chat_id=_int(data, "chat_id", 0, "telegram"),
        proxy=str(proxy) if proxy else None,
    )


def _parse_monitor_config(data: dict) -> MonitorConfig:
    """Parse monitor configuration section."""
    return MonitorConfig(
        interval=_int(data, "interval", 30, "monitor"),
        alert_threshold=_int(data, "alert_threshold", 3, "monitor"),
        http_timeout=_int(data, "http_timeout", 10, "monitor"),
        ssl_expiry_alert_days=_int(data, "ssl_expiry_alert_days", 30, "monitor"),
        default_response_time_ms=_int(data, "default_response_time_ms", 0, "monitor"),
    )


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage configuration section."""
    return StorageConfig(path=str(data.get("path", DEFAULT_STORAGE_PATH)))


def _parse_health_config(data: dict) -> HealthConfig:
    """Parse health configuration section."""
    return HealthConfig(
        enabled=bool(data.get("enabled", True)),
        port=_int(data, "port", 8081, "health"),
    )


# Environment variable -> (section, key). Values are applied as strings and
# converted by the section parsers.
_ENV_OVERRIDES = {
    "HEALTHWATCH_TELEGRAM_TOKEN": ("telegram", "token"),
    "HEALTHWATCH_TELEGRAM_CHAT": ("telegram", "chat_id"),
    "HEALTHWATCH_TELEGRAM_PROXY": ("telegram", "proxy"),
    "HEALTHWATCH_CHECK_INTERVAL": ("monitor", "interval"),
    "HEALTHWATCH_ALERT_THRESHOLD": ("monitor", "alert_threshold"),
    "HEALTHWATCH_HTTP_TIMEOUT": ("monitor", "http_timeout"),
    "HEALTHWATCH_SSL_EXPIRY_ALERT": ("monitor", "ssl_expiry_alert_days"),
    "HEALTHWATCH_DEFAULT_RESPONSE_TIME": ("monitor", "default_response_time_ms"),
    "HEALTHWATCH_STORAGE_PATH": ("storage", "path"),
    "HEALTHWATCH_HEALTH_PORT": ("health", "port"),
}


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Every variable in ``_ENV_OVERRIDES`` replaces the matching key, and
    HEALTHWATCH_HEALTH_ENABLED accepts true/false/1/0/yes/no.
    """
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        if not isinstance(config_data.get(section), dict):
            config_data[section] = {}
        config_data[section][key] = value

    health_enabled = os.environ.get("HEALTHWATCH_HEALTH_ENABLED")
    if health_enabled is not None:
        if not isinstance(config_data.get("health"), dict):
            config_data["health"] = {}
        config_data["health"]["enabled"] = health_enabled.lower() in ("true", "1", "yes")

    return config_data


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    A missing file is not an error as long as the environment provides the
    Telegram credentials; every other setting has a default.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)
    data: dict = {}

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}")

        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigError("Configuration must be a YAML dictionary")
            data = loaded

    data = _apply_env_overrides(data)

    if "telegram" not in data:
        if not path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path} "
                "(set HEALTHWATCH_TELEGRAM_TOKEN and HEALTHWATCH_TELEGRAM_CHAT to run without one)"
            )
        raise ConfigError("Configuration must contain a 'telegram' section")

    return Config(
        telegram=_parse_telegram_config(_section(data, "telegram")),
        monitor=_parse_monitor_config(_section(data, "monitor")),
        storage=_parse_storage_config(_section(data, "storage")),
        health=_parse_health_config(_section(data, "health")),
    )
