"""
Tests for configuration module.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from notification_listener.config.settings import (
    DEFAULT_OUTPUT_PATH,
    EnrichmentSettings,
    IngestionSettings,
    Settings,
    SinkConfig,
    _apply_env_overrides,
    _find_config_files,
    _load_toml,
    _merge_dicts,
    apply_overrides,
    get_settings,
    load_settings,
    parse_app_list,
    reload_settings,
)
from notification_listener.sources.tail import DEFAULT_TAIL_COMMAND


class TestParseAppList:
    """Tests for the comma-separated allow-list."""

    def test_parse(self):
        assert parse_app_list(" Chat, com.Example.Mail ,") == frozenset({"chat", "com.example.mail"})

    def test_empty(self):
        assert parse_app_list(None) is None
        assert parse_app_list("") is None
        assert parse_app_list(" , ") is None


class TestSinkConfig:
    """Tests for SinkConfig validation."""

    def test_defaults(self):
        config = SinkConfig()

        assert config.file_path is None
        assert config.webhook_url is None
        assert config.stdout is False
        assert config.allow_list is None

    def test_expands_home(self):
        config = SinkConfig(file_path=Path("~/out.jsonl"))

        assert config.file_path == Path.home() / "out.jsonl"

    def test_valid_webhook(self):
        config = SinkConfig(webhook_url=" https://example.com/hook ")

        assert config.webhook_url == "https://example.com/hook"

    def test_blank_webhook(self):
        assert SinkConfig(webhook_url="  ").webhook_url is None

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.com/x", "/relative/path"])
    def test_invalid_webhook(self, url):
        """Test an unusable webhook URL is a configuration error."""
        with pytest.raises(ValidationError):
            SinkConfig(webhook_url=url)

    def test_allow_list_from_string(self):
        assert SinkConfig(allow_list="Chat,Mail").allow_list == frozenset({"chat", "mail"})

    def test_allow_list_from_list(self):
        assert SinkConfig(allow_list=["Chat", " "]).allow_list == frozenset({"chat"})

    def test_frozen(self):
        config = SinkConfig()

        with pytest.raises(ValidationError):
            config.stdout = True

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            SinkConfig(colour="blue")


class TestSectionSettings:
    """Tests for the settings sections."""

    def test_ingestion_defaults(self):
        settings = IngestionSettings()

        assert settings.poll_interval == 2.0
        assert settings.tail_enabled is True
        assert settings.store_enabled is True
        assert settings.bus_enabled is True
        assert settings.tail_command == list(DEFAULT_TAIL_COMMAND)
        assert settings.filter_apps is None

    @pytest.mark.parametrize("interval", [0, -1.5])
    def test_non_positive_poll_interval(self, interval):
        with pytest.raises(ValidationError):
            IngestionSettings(poll_interval=interval)

    def test_enrichment_defaults(self):
        settings = EnrichmentSettings()

        assert settings.enabled is True
        assert settings.timeout_seconds == 2.0
        assert settings.poll_interval_seconds == 0.1
        assert settings.command == []


class TestSettings:
    """Tests for the main Settings container."""

    def test_default_values(self):
        settings = Settings()

        assert settings.name == "notification-listener"
        assert settings.daemon is False
        assert settings.output.file_path == DEFAULT_OUTPUT_PATH
        assert settings.logging.level == "INFO"

    def test_output_path_expanded(self):
        settings = Settings()

        assert settings.output_path == Path.home() / ".notification-listener" / "notifications.jsonl"

    def test_output_path_disabled(self):
        assert Settings(output={"file_path": ""}).output_path is None

    def test_stdout_defaults_on(self):
        assert Settings().stdout_enabled is True

    def test_stdout_off_for_daemon(self):
        assert Settings(daemon=True).stdout_enabled is False

    def test_stdout_explicit(self):
        assert Settings(daemon=True, output={"stdout": True}).stdout_enabled is True
        assert Settings(output={"stdout": False}).stdout_enabled is False

    def test_to_sink_config(self):
        settings = Settings(
            output={"webhook_url": "https://example.com/hook"},
            ingestion={"filter_apps": "Chat"},
        )

        config = settings.to_sink_config()

        assert config.webhook_url == "https://example.com/hook"
        assert config.allow_list == frozenset({"chat"})
        assert config.stdout is True
        assert config.file_path == settings.output_path

    def test_to_sink_config_bad_webhook(self):
        settings = Settings(output={"webhook_url": "nope"})

        with pytest.raises(ValueError):
            settings.to_sink_config()

    def test_apply_overrides(self):
        settings = apply_overrides(Settings(), {"ingestion": {"poll_interval": 5.0}, "daemon": True})

        assert settings.ingestion.poll_interval == 5.0
        assert settings.ingestion.tail_enabled is True
        assert settings.daemon is True

    def test_apply_overrides_validates(self):
        with pytest.raises(ValidationError):
            apply_overrides(Settings(), {"ingestion": {"poll_interval": 0}})


class TestMergeDicts:
    """Tests for _merge_dicts."""

    def test_nested_merge(self):
        base = {"output": {"file_path": "a", "stdout": None}, "daemon": False}

        result = _merge_dicts(base, {"output": {"file_path": "b"}})

        assert result == {"output": {"file_path": "b", "stdout": None}, "daemon": False}
        assert base["output"]["file_path"] == "a"


class TestFindConfigFiles:
    """Tests for _find_config_files."""

    def test_no_config_files(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert _find_config_files() == []

    def test_default_and_local(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "default.toml").write_text("")
        (tmp_path / "config" / "local.toml").write_text("")
        monkeypatch.chdir(tmp_path)

        files = _find_config_files()

        assert [f.name for f in files] == ["default.toml", "local.toml"]

    def test_env_config_path(self, tmp_path, monkeypatch):
        config = tmp_path / "custom.toml"
        config.write_text("")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("NOTIFY_CONFIG_PATH", str(config))

        assert _find_config_files() == [config]

    def test_env_config_path_nonexistent(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("NOTIFY_CONFIG_PATH", str(tmp_path / "missing.toml"))

        assert _find_config_files() == []


class TestLoadToml:
    def test_load_nested_toml(self, tmp_path):
        path = tmp_path / "c.toml"
        path.write_text('[ingestion]\npoll_interval = 5.0\ntail_command = ["tail", "-f", "x"]\n')

        assert _load_toml(path) == {"ingestion": {"poll_interval": 5.0, "tail_command": ["tail", "-f", "x"]}}


class TestApplyEnvOverrides:
    """Tests for NOTIFY_* environment overrides."""

    def test_float_override(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_INGESTION_POLL_INTERVAL", "5")

        config = _apply_env_overrides(Settings().model_dump())

        assert config["ingestion"]["poll_interval"] == 5.0

    def test_boolean_override(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_INGESTION_TAIL_ENABLED", "false")
        monkeypatch.setenv("NOTIFY_DAEMON", "yes")

        config = _apply_env_overrides(Settings().model_dump())

        assert config["ingestion"]["tail_enabled"] is False
        assert config["daemon"] is True

    def test_optional_string_override(self, monkeypatch):
        """Test fields that default to None accept plain strings."""
        monkeypatch.setenv("NOTIFY_OUTPUT_WEBHOOK_URL", "https://example.com/hook")

        config = _apply_env_overrides(Settings().model_dump())

        assert config["output"]["webhook_url"] == "https://example.com/hook"

    def test_list_override(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_ENRICHMENT_COMMAND", "notif-peek --json 'two words'")

        config = _apply_env_overrides(Settings().model_dump())

        assert config["enrichment"]["command"] == ["notif-peek", "--json", "two words"]

    def test_nonexistent_key_ignored(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_NOT_A_SETTING", "x")

        config = _apply_env_overrides(Settings().model_dump())

        assert config == Settings().model_dump()


class TestLoadSettings:
    """Tests for load_settings."""

    def test_load_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert load_settings() == Settings()

    def test_load_from_explicit_path(self, config_file):
        path = config_file('daemon = true\n[ingestion]\nfilter_apps = "Chat,Mail"\n')

        settings = load_settings(path)

        assert settings.daemon is True
        assert settings.stdout_enabled is False
        assert settings.to_sink_config().allow_list == frozenset({"chat", "mail"})
        assert settings.ingestion.poll_interval == 2.0

    def test_env_beats_file(self, config_file, monkeypatch):
        path = config_file("[ingestion]\npoll_interval = 3.0\n")
        monkeypatch.setenv("NOTIFY_INGESTION_POLL_INTERVAL", "7.5")

        assert load_settings(path).ingestion.poll_interval == 7.5

    def test_invalid_file_value(self, config_file):
        path = config_file("[ingestion]\npoll_interval = -1\n")

        with pytest.raises(ValidationError):
            load_settings(path)

    def test_cached(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_settings() is get_settings()

    def test_reload(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = get_settings()
        monkeypatch.setenv("NOTIFY_LOGGING_LEVEL", "DEBUG")

        reloaded = reload_settings()

        assert reloaded is not first
        assert reloaded.logging.level == "DEBUG"
