"""
Notification record store poller.

Periodically reads new rows from the platform's append-only notification
store (a SQLite database) and maps each into a RawObservation.

The store's location and schema have both varied across OS versions:
- the database is searched for under several candidate directories
- the table is the first of several known names that exists
- each logical field is read from the first present column in an
  ordered alias list

Only rows added after startup are emitted: the watermark is seeded from
the store's current maximum rowid and lives in memory only.

Example:
    >>> from notification_listener.sources import StorePoller
    >>>
    >>> poller = StorePoller(poll_interval=2.0)
    >>> await poller.start(handler)  # raises SourceUnavailableError if no store
"""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from collections.abc import Mapping, Sequence
from operator import itemgetter
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from notification_listener.models.observations import RawObservation, SourceKind
from notification_listener.sources.protocol import (
    ObservationHandler,
    SourceUnavailableError,
    register_source,
)
from notification_listener.utils.time import parse_store_date

logger = structlog.get_logger(__name__)

STORE_SUFFIXES = (".db", ".sqlite")

TABLE_CANDIDATES = ("record", "delivered", "notifications")

# Logical field -> column names, highest priority first
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "app_identifier": ("bundle_id", "app_id", "bundleId", "app"),
    "app_name": ("app", "app_name"),
    "title": ("title", "titl"),
    "body": ("body", "subt", "message"),
    "category": ("category", "cat"),
    "notification_id": ("identifier", "uuid", "ident"),
    "observed_at": ("delivered_date", "date"),
}


def default_store_candidates(home: Path | None = None) -> list[Path]:
    """Locations searched for the notification store, in priority order."""
    home = home or Path.home()
    return [
        home / "Library" / "Group Containers" / "group.com.apple.usernotes",
        home / "Library" / "Group Containers" / "group.com.apple.usernoted" / "db2" / "db",
        home / "Library" / "Application Support" / "NotificationCenter",
    ]


def find_store(candidates: Sequence[Path]) -> Path | None:
    """Resolve the store location.

    A candidate that is itself a file is taken as-is; a directory is
    searched recursively for the first ``.db``/``.sqlite`` file.

    Args:
        candidates: Files or directories, highest priority first

    Returns:
        Path of the first match, or None
    """
    for candidate in candidates:
        if candidate.is_file():
            return candidate
        if not candidate.is_dir():
            continue
        matches = sorted(
            p for p in candidate.rglob("*") if p.is_file() and p.suffix.lower() in STORE_SUFFIXES
        )
        if matches:
            return matches[0]
    return None


def lookup(row: Mapping[str, str], field: str) -> str:
    """First non-empty value among the aliases of a logical field."""
    for column in COLUMN_ALIASES[field]:
        value = row.get(column)
        if value:
            return value
    return ""


def map_row(rowid: int, row: Mapping[str, str]) -> RawObservation | None:
    """Map one store row into an observation.

    Args:
        rowid: Row identifier
        row: Column name -> text value

    Returns:
        RawObservation, or None if the row carries no app identity
    """
    identifier = lookup(row, "app_identifier").strip()
    if not identifier:
        return None

    return RawObservation(
        source_kind=SourceKind.STORE,
        observed_at=parse_store_date(lookup(row, "observed_at")),
        app_identifier=identifier,
        app_name=lookup(row, "app_name"),
        notification_id=lookup(row, "notification_id"),
        title=lookup(row, "title"),
        body=lookup(row, "body"),
        category=lookup(row, "category"),
        extra={"rowid": rowid},
    )


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


@runtime_checkable
class RecordStore(Protocol):
    """Capability: the external append-only notification store."""

    def resolve(self) -> Path | None:
        """Locate the store; None if it cannot be found."""
        ...

    def max_row_id(self) -> int:
        """Current highest row id (0 for an empty store)."""
        ...

    def fetch_after(self, watermark: int) -> list[tuple[int, dict[str, str]]]:
        """Rows with id > watermark in ascending id order."""
        ...


class SQLiteRecordStore:
    """Read-only RecordStore over a SQLite file.

    A fresh read-only connection is opened per call so the OS daemon
    that owns the database is never blocked by a long-lived handle.

    Args:
        path: Explicit database path (skips the candidate search)
        candidates: Candidate files/directories to search
        timeout: SQLite busy timeout in seconds
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        candidates: Sequence[Path] | None = None,
        timeout: float = 5.0,
    ):
        self.path = Path(path).expanduser() if path else None
        self.candidates = list(candidates) if candidates is not None else default_store_candidates()
        self.timeout = timeout
        self._table: str | None = None

    def resolve(self) -> Path | None:
        if self.path is not None:
            return self.path if self.path.is_file() else None
        self.path = find_store(self.candidates)
        return self.path

    def _connect(self) -> sqlite3.Connection:
        if self.path is None:
            raise RuntimeError("Store not resolved. Call resolve() first.")
        connection = sqlite3.connect(
            f"{self.path.resolve().as_uri()}?mode=ro",
            uri=True,
            timeout=self.timeout,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        return connection

    def _find_table(self, connection: sqlite3.Connection) -> str:
        if self._table is not None:
            return self._table
        existing = {
            row["name"]
            for row in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        for name in TABLE_CANDIDATES:
            if name in existing:
                self._table = name
                return name
        raise sqlite3.OperationalError(
            f"no known notification table (tried {', '.join(TABLE_CANDIDATES)})"
        )

    def max_row_id(self) -> int:
        with contextlib.closing(self._connect()) as connection:
            table = self._find_table(connection)
            row = connection.execute(f"SELECT MAX(rowid) FROM {table}").fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    def fetch_after(self, watermark: int) -> list[tuple[int, dict[str, str]]]:
        with contextlib.closing(self._connect()) as connection:
            table = self._find_table(connection)
            cursor = connection.execute(
                f"SELECT rowid AS _nl_rowid, * FROM {table} WHERE rowid > ? ORDER BY rowid ASC",
                (watermark,),
            )
            results = []
            for record in cursor:
                columns: dict[str, str] = {}
                for key in record.keys():
                    if key == "_nl_rowid":
                        continue
                    text = _as_text(record[key])
                    if text is not None:
                        columns[key] = text
                results.append((int(record["_nl_rowid"]), columns))
        return results

    def __repr__(self) -> str:
        return f"SQLiteRecordStore({str(self.path) if self.path else None!r})"


@register_source("store")
class StorePoller:
    """Poll the notification store for rows past the watermark.

    Ticks run one at a time on a single task, so a slow tick delays the
    next instead of overlapping it.

    Attributes:
        source_name: Always "store"
        poll_interval: Seconds between ticks
        watermark: Highest row id already processed

    Args:
        store: RecordStore to poll (defaults to SQLiteRecordStore)
        poll_interval: Seconds between ticks
        store_path: Explicit path for the default store
    """

    source_name = "store"

    def __init__(
        self,
        store: RecordStore | None = None,
        *,
        poll_interval: float = 2.0,
        store_path: str | Path | None = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.store = store or SQLiteRecordStore(store_path)
        self.poll_interval = poll_interval
        self._watermark = 0
        self._task: asyncio.Task[None] | None = None
        self._handler: ObservationHandler | None = None
        self._running = False
        self.rows_seen = 0
        self.observations_emitted = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def watermark(self) -> int:
        return self._watermark

    async def start(self, handler: ObservationHandler) -> None:
        """Resolve the store, seed the watermark and start ticking.

        Raises:
            RuntimeError: If already running
            SourceUnavailableError: If no store is found or it cannot be read
        """
        if self._running:
            raise RuntimeError("StorePoller is already running")

        path = await asyncio.to_thread(self.store.resolve)
        if path is None:
            logger.warning("store_not_found", source=self.source_name)
            raise SourceUnavailableError(self.source_name, "no notification store found")

        try:
            self._watermark = await asyncio.to_thread(self.store.max_row_id)
        except (sqlite3.Error, OSError) as e:
            raise SourceUnavailableError(self.source_name, f"cannot read {path}: {e}") from e

        self._handler = handler
        self._running = True
        self._task = asyncio.create_task(self._poll_loop(), name="store-poller")
        logger.info(
            "source_started",
            source=self.source_name,
            path=str(path),
            watermark=self._watermark,
            poll_interval=self.poll_interval,
        )

    async def stop(self) -> None:
        """Cancel the tick timer."""
        if not self._running:
            return
        self._running = False

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        logger.info(
            "source_stopped",
            source=self.source_name,
            watermark=self._watermark,
            emitted=self.observations_emitted,
        )

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll_once()

    async def poll_once(self) -> int:
        """Run one tick.

        Returns:
            Number of observations emitted
        """
        if self._handler is None:
            raise RuntimeError("StorePoller not started. Call start() first.")

        try:
            rows = await asyncio.to_thread(self.store.fetch_after, self._watermark)
        except Exception as e:
            logger.warning("store_poll_failed", source=self.source_name, error=str(e))
            return 0

        emitted = 0
        for rowid, row in sorted(rows, key=itemgetter(0)):
            if rowid <= self._watermark:
                continue
            self._watermark = rowid
            self.rows_seen += 1

            observation = map_row(rowid, row)
            if observation is None:
                logger.debug("row_without_identity", rowid=rowid)
                continue

            emitted += 1
            try:
                self._handler(observation)
            except Exception:
                logger.exception("observation_handler_failed", source=self.source_name)

        self.observations_emitted += emitted
        return emitted

    def __repr__(self) -> str:
        return f"StorePoller({self.store!r}, poll_interval={self.poll_interval})"
