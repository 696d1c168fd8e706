"""
In-memory stand-ins for the external capabilities.

Each fake satisfies the same Protocol as the real implementation, so
sources, enrichment and sinks can be tested without a log streamer,
a notification store or a network.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

from notification_listener.models import CanonicalNotification, LiveContent
from notification_listener.sources.protocol import ObservationHandler, SourceUnavailableError


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds, failing the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class FakeLineSource:
    """LineSource fed by the test."""

    def __init__(self, chunks: list[bytes] | None = None, *, spawn_error: OSError | None = None):
        self.spawn_error = spawn_error
        self.spawned = False
        self.terminated = False
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        for chunk in chunks or []:
            self._queue.put_nowait(chunk)

    def push(self, chunk: bytes) -> None:
        self._queue.put_nowait(chunk)

    def end(self) -> None:
        self._queue.put_nowait(b"")

    async def spawn(self) -> None:
        if self.spawn_error is not None:
            raise self.spawn_error
        self.spawned = True

    async def read_chunk(self) -> bytes:
        return await self._queue.get()

    async def terminate(self) -> None:
        self.terminated = True
        self._queue.put_nowait(b"")


class FakeRecordStore:
    """RecordStore over a list of (rowid, columns) rows."""

    def __init__(
        self,
        rows: list[tuple[int, dict[str, str]]] | None = None,
        *,
        path: Path | None = Path("/fake/store.db"),
    ):
        self.rows = list(rows or [])
        self.path = path
        self.fail_next = False
        self.fetch_calls = 0

    def add(self, rowid: int, **columns: str) -> None:
        self.rows.append((rowid, columns))

    def resolve(self) -> Path | None:
        return self.path

    def max_row_id(self) -> int:
        return max((rowid for rowid, _ in self.rows), default=0)

    def fetch_after(self, watermark: int) -> list[tuple[int, dict[str, str]]]:
        self.fetch_calls += 1
        if self.fail_next:
            self.fail_next = False
            raise OSError("database is locked")
        return [(rowid, dict(row)) for rowid, row in self.rows if rowid > watermark]


class FakeLiveSource:
    """LiveSource returning scripted results, one per query.

    The last result repeats once the script runs out. An exception
    instance in the script is raised instead of returned.
    """

    def __init__(self, *results: LiveContent | Exception | None):
        self.results = list(results) or [None]
        self.calls = 0

    def read_displayed(self) -> LiveContent | None:
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSink:
    """Sink that keeps every record it is given."""

    def __init__(self, sink_name: str = "recording"):
        self.sink_name = sink_name
        self.records: list[CanonicalNotification] = []
        self.closed = False

    def write(self, record: CanonicalNotification) -> None:
        self.records.append(record)

    async def aclose(self) -> None:
        self.closed = True


class FailingSink:
    """Sink whose every write raises."""

    sink_name = "failing"

    def __init__(self) -> None:
        self.attempts = 0
        self.closed = False

    def write(self, record: CanonicalNotification) -> None:
        self.attempts += 1
        raise RuntimeError("sink exploded")

    async def aclose(self) -> None:
        self.closed = True


class ManualSource:
    """IngestionSource the test drives directly through ``emit``."""

    def __init__(self, source_name: str = "manual", *, unavailable: bool = False):
        self.source_name = source_name
        self.unavailable = unavailable
        self.handler: ObservationHandler | None = None
        self.stopped = False

    @property
    def is_running(self) -> bool:
        return self.handler is not None

    async def start(self, handler: ObservationHandler) -> None:
        if self.unavailable:
            raise SourceUnavailableError(self.source_name, "not on this host")
        self.handler = handler

    async def stop(self) -> None:
        self.handler = None
        self.stopped = True

    def emit(self, observation) -> None:
        assert self.handler is not None, "source not started"
        self.handler(observation)
