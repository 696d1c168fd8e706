"""
Configuration settings for the notification listener.

This module handles loading and validating configuration from TOML files
and environment variables.

Configuration hierarchy (later overrides earlier):
1. Default values (built-in)
2. config/default.toml
3. config/local.toml (gitignored)
4. File named by NOTIFY_CONFIG_PATH
5. Environment variables (NOTIFY_* prefix)
6. Command-line arguments

Example:
    >>> from notification_listener.config import get_settings
    >>>
    >>> settings = get_settings()
    >>> print(f"Output: {settings.output_path}")
    >>> sink_config = settings.to_sink_config()
"""

from __future__ import annotations

import os
import shlex
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from notification_listener.enrich.live import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT_BUDGET
from notification_listener.sources.tail import DEFAULT_TAIL_COMMAND

ENV_PREFIX = "NOTIFY_"
CONFIG_PATH_ENV = "NOTIFY_CONFIG_PATH"
DEFAULT_OUTPUT_PATH = "~/.notification-listener/notifications.jsonl"


def parse_app_list(value: str | None) -> frozenset[str] | None:
    """Parse a comma-separated allow-list into lowercase names.

    Example:
        >>> sorted(parse_app_list(" Chat, com.Example.Mail ,"))
        ['chat', 'com.example.mail']
        >>> parse_app_list("") is None
        True
    """
    if value is None:
        return None
    items = frozenset(part.strip().lower() for part in value.split(",") if part.strip())
    return items or None


def validate_webhook_url(value: str) -> str:
    """Check a webhook URL is an absolute http(s) URL.

    Raises:
        ValueError: If the URL cannot be used
    """
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ValueError(f"Invalid webhook URL {value!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"Invalid webhook URL {value!r}: expected an absolute http(s) URL")
    return value


class SinkConfig(BaseModel):
    """Immutable output configuration, built once at startup.

    Attributes:
        file_path: JSON-lines output file (None = no file sink)
        webhook_url: Endpoint for POSTs (None = no webhook sink)
        stdout: Stream JSON lines to stdout
        allow_list: Lowercase app names/identifiers to keep (None = all)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    file_path: Path | None = None
    webhook_url: str | None = None
    stdout: bool = False
    allow_list: frozenset[str] | None = None

    @field_validator("file_path")
    @classmethod
    def expand_file_path(cls, v: Path | None) -> Path | None:
        return v.expanduser() if v is not None else None

    @field_validator("webhook_url")
    @classmethod
    def check_webhook_url(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return validate_webhook_url(v.strip())

    @field_validator("allow_list", mode="before")
    @classmethod
    def normalize_allow_list(cls, v: Any) -> frozenset[str] | None:
        if v is None:
            return None
        if isinstance(v, str):
            return parse_app_list(v)
        items = frozenset(str(item).strip().lower() for item in v if str(item).strip())
        return items or None


class OutputSettings(BaseModel):
    """Output sink settings."""

    model_config = ConfigDict(extra="ignore")

    file_path: str | None = Field(
        default=DEFAULT_OUTPUT_PATH,
        description="JSON-lines output file (empty = disabled)",
    )
    webhook_url: str | None = Field(default=None, description="Webhook URL to POST to")
    stdout: bool | None = Field(
        default=None,
        description="Stream to stdout (None = on unless running as daemon)",
    )


class IngestionSettings(BaseModel):
    """Ingestion source settings."""

    model_config = ConfigDict(extra="ignore")

    poll_interval: float = Field(default=2.0, gt=0, description="Store poll interval (seconds)")
    tail_enabled: bool = Field(default=True, description="Run the log tail source")
    store_enabled: bool = Field(default=True, description="Run the store poller")
    bus_enabled: bool = Field(default=True, description="Run the bus subscriber")
    tail_command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TAIL_COMMAND),
        description="Log streaming command",
    )
    store_path: str | None = Field(default=None, description="Explicit store path")
    filter_apps: str | None = Field(default=None, description="Comma-separated app allow-list")


class EnrichmentSettings(BaseModel):
    """Live enrichment settings."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(default=True, description="Enrich redacted observations")
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_BUDGET, ge=0)
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    command: list[str] = Field(
        default_factory=list,
        description="Helper printing the displayed notification as JSON (empty = none)",
    )


class LoggingSettings(BaseModel):
    """Logging settings."""

    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Output format")
    include_timestamp: bool = Field(default=True)
    include_location: bool = Field(default=False)


class Settings(BaseModel):
    """Main settings container."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="notification-listener")
    daemon: bool = Field(default=False, description="Running in the background")

    output: OutputSettings = Field(default_factory=OutputSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def output_path(self) -> Path | None:
        """Expanded output file path, or None when disabled."""
        if not self.output.file_path:
            return None
        return Path(self.output.file_path).expanduser()

    @property
    def stdout_enabled(self) -> bool:
        if self.output.stdout is not None:
            return self.output.stdout
        return not self.daemon

    def to_sink_config(self) -> SinkConfig:
        """Build the immutable sink configuration.

        Raises:
            ValueError: If the webhook URL is invalid
        """
        return SinkConfig(
            file_path=self.output_path,
            webhook_url=self.output.webhook_url,
            stdout=self.stdout_enabled,
            allow_list=parse_app_list(self.ingestion.filter_apps),
        )


def _find_config_files() -> list[Path]:
    """Find configuration files in standard locations.

    Returns:
        List of config file paths (in order of priority)
    """
    files = []

    cwd = Path.cwd()
    for name in ["config/default.toml", "config/local.toml"]:
        path = cwd / name
        if path.exists():
            files.append(path)

    env_config = os.environ.get(CONFIG_PATH_ENV)
    if env_config:
        path = Path(env_config).expanduser()
        if path.exists():
            files.append(path)

    return files


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def _resolve_key(config: dict[str, Any], parts: list[str]) -> tuple[dict[str, Any], str] | None:
    """Find the (section, key) an underscore-split env name refers to.

    Section and key names may themselves contain underscores, so every
    prefix length is tried: ["output", "webhook", "url"] -> output.webhook_url.
    """
    for i in range(1, len(parts) + 1):
        key = "_".join(parts[:i])
        if key not in config:
            continue
        rest = parts[i:]
        if not rest:
            return config, key
        if isinstance(config[key], dict):
            found = _resolve_key(config[key], rest)
            if found is not None:
                return found
    return None


def _coerce(original: Any, value: str) -> Any:
    """Convert an env string to the type of the value it replaces."""
    if isinstance(original, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(original, int):
        return int(value)
    if isinstance(original, float):
        return float(value)
    if isinstance(original, list):
        return shlex.split(value)
    return value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables with NOTIFY_ prefix override config values.
    Example: NOTIFY_INGESTION_POLL_INTERVAL -> ingestion.poll_interval

    Args:
        config: Configuration dictionary (with every key present)

    Returns:
        Modified configuration
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
            continue

        parts = key[len(ENV_PREFIX) :].lower().split("_")
        found = _resolve_key(config, parts)
        if found is None:
            continue

        section, final_key = found
        section[final_key] = _coerce(section[final_key], value)

    return config


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from configuration files and the environment.

    Args:
        config_path: Optional explicit config file path

    Returns:
        Settings instance
    """
    config: dict[str, Any] = Settings().model_dump()

    if config_path:
        files = [Path(config_path)]
    else:
        files = _find_config_files()

    for path in files:
        config = _merge_dicts(config, _load_toml(path))

    config = _apply_env_overrides(config)

    return Settings(**config)


def apply_overrides(settings: Settings, overrides: dict[str, Any]) -> Settings:
    """Return new, re-validated settings with nested overrides applied.

    Example:
        >>> settings = apply_overrides(Settings(), {"ingestion": {"poll_interval": 5.0}})
    """
    return Settings(**_merge_dicts(settings.model_dump(), overrides))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
