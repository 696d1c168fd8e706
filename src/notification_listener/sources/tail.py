"""
Log tail source for the notification listener.

Spawns a line-oriented log streaming process, reassembles its stdout
into complete lines and runs each through the PatternExtractor.

Example:
    >>> from notification_listener.sources import TailSource
    >>>
    >>> source = TailSource()  # streams the notification daemon's log
    >>> await source.start(handler)
    >>> ...
    >>> await source.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import structlog

from notification_listener.extract.patterns import PatternExtractor
from notification_listener.sources.protocol import (
    ObservationHandler,
    SourceUnavailableError,
    register_source,
)

logger = structlog.get_logger(__name__)

DEFAULT_TAIL_COMMAND: tuple[str, ...] = (
    "/usr/bin/log",
    "stream",
    "--style",
    "compact",
    "--predicate",
    'process == "usernoted" OR subsystem == "com.apple.unc"',
)

_READ_SIZE = 4096


@runtime_checkable
class LineSource(Protocol):
    """Capability: an external process streaming output bytes."""

    async def spawn(self) -> None:
        """Start the process.

        Raises:
            OSError: If the process cannot be spawned
        """
        ...

    async def read_chunk(self) -> bytes:
        """Next chunk of stdout; empty bytes at end of stream."""
        ...

    async def terminate(self) -> None:
        """Stop the process. Safe to call more than once."""
        ...


class SubprocessLineSource:
    """LineSource backed by an asyncio subprocess. Stderr is discarded."""

    def __init__(self, command: Sequence[str], *, kill_timeout: float = 2.0):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.kill_timeout = kill_timeout
        self._process: asyncio.subprocess.Process | None = None

    async def spawn(self) -> None:
        self._process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )

    async def read_chunk(self) -> bytes:
        if self._process is None or self._process.stdout is None:
            return b""
        return await self._process.stdout.read(_READ_SIZE)

    async def terminate(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def __repr__(self) -> str:
        return f"SubprocessLineSource({self.command!r})"


class LineAssembler:
    """Reassemble a byte stream into complete UTF-8 lines.

    Bytes after the last newline stay buffered until their newline
    arrives, so a line is never parsed in pieces.

    Example:
        >>> assembler = LineAssembler()
        >>> assembler.feed(b"first\\nsec")
        ['first']
        >>> assembler.feed(b"ond\\n")
        ['second']
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[str]:
        """Add bytes and return every line they complete (without newline)."""
        self._buffer.extend(chunk)
        if b"\n" not in chunk:
            return []

        *complete, rest = self._buffer.split(b"\n")
        self._buffer = bytearray(rest)
        return [line.rstrip(b"\r").decode("utf-8", errors="replace") for line in complete]

    @property
    def pending(self) -> bytes:
        """Buffered bytes of the incomplete trailing line."""
        return bytes(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()


@register_source("tail")
class TailSource:
    """Observations extracted from a streaming log process.

    Attributes:
        source_name: Always "tail"
        command: argv of the log streaming process

    Args:
        command: Process to spawn (defaults to the notification daemon log stream)
        extractor: Line extractor (defaults to the built-in recognizers)
        line_source: Pre-built LineSource, mainly for tests
    """

    source_name = "tail"

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_TAIL_COMMAND,
        *,
        extractor: PatternExtractor | None = None,
        line_source: LineSource | None = None,
    ):
        self.command = list(command)
        self.extractor = extractor or PatternExtractor()
        self._line_source = line_source
        self._assembler = LineAssembler()
        self._reader: asyncio.Task[None] | None = None
        self._running = False
        self.lines_read = 0
        self.observations_emitted = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, handler: ObservationHandler) -> None:
        """Spawn the process and start reading its output.

        Raises:
            RuntimeError: If already running
            SourceUnavailableError: If the process cannot be spawned
        """
        if self._running:
            raise RuntimeError("TailSource is already running")

        line_source = self._line_source or SubprocessLineSource(self.command)
        try:
            await line_source.spawn()
        except OSError as e:
            raise SourceUnavailableError(self.source_name, f"cannot spawn {self.command[0]}: {e}") from e

        self._line_source = line_source
        self._assembler.clear()
        self._running = True
        self._reader = asyncio.create_task(self._read_loop(handler), name="tail-reader")
        logger.info("source_started", source=self.source_name, command=self.command[0])

    async def stop(self) -> None:
        """Terminate the process and stop reading."""
        if not self._running:
            return
        self._running = False

        if self._line_source is not None:
            await self._line_source.terminate()

        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        logger.info(
            "source_stopped",
            source=self.source_name,
            lines_read=self.lines_read,
            emitted=self.observations_emitted,
        )

    async def _read_loop(self, handler: ObservationHandler) -> None:
        assert self._line_source is not None
        while True:
            chunk = await self._line_source.read_chunk()
            if not chunk:
                break
            for line in self._assembler.feed(chunk):
                self._handle_line(line, handler)

        if self._assembler.pending:
            logger.debug("partial_line_discarded", size=len(self._assembler.pending))
        if self._running:
            self._running = False
            logger.warning("tail_stream_ended", source=self.source_name)
            await self._line_source.terminate()

    def _handle_line(self, line: str, handler: ObservationHandler) -> None:
        self.lines_read += 1
        observation = self.extractor.extract(line)
        if observation is None:
            return
        self.observations_emitted += 1
        try:
            handler(observation)
        except Exception:
            logger.exception("observation_handler_failed", source=self.source_name)

    def __repr__(self) -> str:
        return f"TailSource({self.command!r})"
