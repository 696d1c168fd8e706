"""
Pytest configuration and shared fixtures for the notification listener.

This module provides:
- Observation and log line factories
- Temporary notification store databases
- Recording sinks and fake capabilities
- Isolation from user configuration and NOTIFY_* environment

Example usage in tests:
    def test_something(observation_factory, store_db):
        obs = observation_factory.create_redacted()
        ...
"""

from __future__ import annotations

import os
import sqlite3
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from notification_listener.config.settings import get_settings
from tests.fixtures.factories import LogLineFactory, ObservationFactory, RecordFactory
from tests.fixtures.fakes import RecordingSink

# ============================================================================
# ENVIRONMENT ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop NOTIFY_* variables and the settings cache around every test."""
    for key in list(os.environ):
        if key.startswith("NOTIFY_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# FACTORY FIXTURES
# ============================================================================


@pytest.fixture
def observation_factory() -> type[ObservationFactory]:
    """Provide a fresh ObservationFactory with counter reset."""
    ObservationFactory.reset()
    return ObservationFactory


@pytest.fixture
def record_factory() -> type[RecordFactory]:
    return RecordFactory


@pytest.fixture
def log_lines() -> type[LogLineFactory]:
    return LogLineFactory


# ============================================================================
# STORE FIXTURES
# ============================================================================


StoreWriter = Callable[..., int]


@pytest.fixture
def store_db(tmp_path: Path) -> Path:
    """Create an empty notification store using the alias column names.

    Returns:
        Path to the database file
    """
    db_path = tmp_path / "db2" / "db"
    db_path.parent.mkdir(parents=True)
    with sqlite3.connect(db_path) as connection:
        connection.execute(
            "CREATE TABLE record ("
            "app_id TEXT, identifier TEXT, titl TEXT, subt TEXT, delivered_date REAL)"
        )
    return db_path


@pytest.fixture
def insert_row(store_db: Path) -> StoreWriter:
    """Provide a function that appends a row to the store and returns its id."""

    def insert(
        app_id: str | None = "com.example.chat",
        identifier: str = "",
        titl: str = "",
        subt: str = "",
        delivered_date: float | None = 736_272_000.0,
    ) -> int:
        with sqlite3.connect(store_db) as connection:
            cursor = connection.execute(
                "INSERT INTO record (app_id, identifier, titl, subt, delivered_date) "
                "VALUES (?, ?, ?, ?, ?)",
                (app_id, identifier, titl, subt, delivered_date),
            )
            rowid = cursor.lastrowid
        assert rowid is not None
        return rowid

    return insert


# ============================================================================
# SINK FIXTURES
# ============================================================================


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def config_file(tmp_path: Path) -> Callable[[str], Path]:
    """Provide a function that writes a TOML config file."""

    def write(content: str) -> Path:
        path = tmp_path / "config.toml"
        path.write_text(content)
        return path

    return write
