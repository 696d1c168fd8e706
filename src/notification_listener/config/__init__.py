"""
Configuration management for the notification listener.

Configuration hierarchy:
1. Default values (built-in)
2. config/default.toml (project defaults)
3. config/local.toml (user overrides, gitignored)
4. NOTIFY_CONFIG_PATH file
5. Environment variables (NOTIFY_* prefix)
6. Command-line arguments

Example:
    >>> from notification_listener.config import get_settings
    >>>
    >>> settings = get_settings()
    >>> print(f"Poll interval: {settings.ingestion.poll_interval}")
"""

from notification_listener.config.settings import (
    EnrichmentSettings,
    IngestionSettings,
    LoggingSettings,
    OutputSettings,
    Settings,
    SinkConfig,
    apply_overrides,
    get_settings,
    load_settings,
    parse_app_list,
    reload_settings,
)

__all__ = [
    "EnrichmentSettings",
    "IngestionSettings",
    "LoggingSettings",
    "OutputSettings",
    "Settings",
    "SinkConfig",
    "apply_overrides",
    "get_settings",
    "load_settings",
    "parse_app_list",
    "reload_settings",
]
