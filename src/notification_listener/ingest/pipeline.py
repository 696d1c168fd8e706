"""
Pipeline orchestrator.

Wires any number of concurrently running ingestion sources into the
correlator and the sink fan-out. Every source calls the same
``submit`` handler; ``submit`` only schedules a task per observation,
so enrichment and delivery never hold up ingestion.

Shutdown is explicit: ``request_stop()`` (wired to SIGINT/SIGTERM by the
CLI) ends ``run()``, which stops every source, abandons in-flight
observation tasks and closes the sinks.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from notification_listener.ingest.correlator import Correlator
from notification_listener.models.observations import RawObservation
from notification_listener.sinks.base import SinkFanout
from notification_listener.sources.protocol import IngestionSource, SourceUnavailableError
from notification_listener.utils.time import now_utc

logger = structlog.get_logger(__name__)


@dataclass
class PipelineStats:
    """Statistics from a pipeline run."""

    observations_received: int = 0
    records_emitted: int = 0
    observations_filtered: int = 0
    observations_failed: int = 0
    observations_abandoned: int = 0
    sources_started: list[str] = field(default_factory=list)
    sources_unavailable: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    elapsed_seconds: float = 0.0

    @property
    def emit_rate(self) -> float:
        """Percentage of received observations that became records."""
        total = self.observations_received
        return (self.records_emitted / total * 100) if total > 0 else 0.0


class Pipeline:
    """Run ingestion sources into the correlator and sinks.

    Usage:
        pipeline = Pipeline([TailSource(), StorePoller()], correlator, fanout)

        async with pipeline:
            await pipeline.wait_stopped()

    Args:
        sources: Sources to run concurrently
        correlator: Filter/enrich/merge stage
        fanout: Sink fan-out
    """

    def __init__(
        self,
        sources: Sequence[IngestionSource],
        correlator: Correlator,
        fanout: SinkFanout,
    ):
        self.sources = list(sources)
        self.correlator = correlator
        self.fanout = fanout
        self.stats = PipelineStats()

        self._active: list[IngestionSource] = []
        self._in_flight: set[asyncio.Task[None]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_requested: asyncio.Event | None = None
        self._running = False
        self._start_time = 0.0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_sources(self) -> list[str]:
        return [source.source_name for source in self._active if source.is_running]

    @property
    def in_flight(self) -> int:
        """Observations still being enriched or delivered."""
        return len(self._in_flight)

    async def __aenter__(self) -> Pipeline:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start every source.

        A source that reports itself unavailable is logged and skipped;
        the others keep running.

        Raises:
            RuntimeError: If already running
        """
        if self._running:
            raise RuntimeError("Pipeline is already running")

        self._loop = asyncio.get_running_loop()
        self._stop_requested = asyncio.Event()
        self._running = True
        self._start_time = time.monotonic()
        self.stats.started_at = now_utc()

        for source in self.sources:
            try:
                await source.start(self.submit)
            except SourceUnavailableError as e:
                self.stats.sources_unavailable.append(source.source_name)
                logger.warning("source_unavailable", source=source.source_name, reason=e.reason)
                continue
            self._active.append(source)
            self.stats.sources_started.append(source.source_name)

        logger.info(
            "pipeline_started",
            sources=self.active_sources,
            unavailable=self.stats.sources_unavailable,
            sinks=self.fanout.sink_names,
            filtered=self.correlator.filter.enabled,
        )

    def submit(self, observation: RawObservation) -> None:
        """Accept an observation from any source.

        Safe to call from several sources, including from threads other
        than the pipeline's event loop.
        """
        if not self._running or self._loop is None:
            logger.debug("observation_after_stop", app=observation.app_identifier)
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is self._loop:
            self._schedule(observation)
        else:
            self._loop.call_soon_threadsafe(self._schedule, observation)

    def _schedule(self, observation: RawObservation) -> None:
        if not self._running:
            return
        self.stats.observations_received += 1
        task = asyncio.create_task(self._process(observation))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _process(self, observation: RawObservation) -> None:
        try:
            record = await self.correlator.process(observation)
        except Exception:
            self.stats.observations_failed += 1
            logger.exception(
                "observation_failed",
                app=observation.app_identifier,
                source=observation.source_kind.value,
            )
            return

        if record is None:
            self.stats.observations_filtered += 1
            return

        self.fanout.emit(record)
        self.stats.records_emitted += 1

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for in-flight observations to finish.

        Returns:
            Number still in flight after the wait
        """
        if self._in_flight:
            await asyncio.wait(set(self._in_flight), timeout=timeout)
        return len(self._in_flight)

    def request_stop(self) -> None:
        """Ask ``run``/``wait_stopped`` to return. Safe from signal handlers."""
        if self._stop_requested is not None:
            self._stop_requested.set()

    async def wait_stopped(self) -> None:
        """Block until ``request_stop`` is called."""
        if self._stop_requested is None:
            raise RuntimeError("Pipeline not started. Call start() first.")
        await self._stop_requested.wait()

    async def run(self) -> PipelineStats:
        """Start, run until stop is requested, then shut down."""
        async with self:
            await self.wait_stopped()
        return self.stats

    async def stop(self) -> None:
        """Stop all sources, abandon in-flight work and close the sinks."""
        if not self._running:
            return
        self._running = False

        for source in self._active:
            try:
                await source.stop()
            except Exception as e:
                logger.warning("source_stop_failed", source=source.source_name, error=str(e))
        self._active = []

        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        if pending:
            self.stats.observations_abandoned += len(pending)
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*pending, return_exceptions=True)

        await self.fanout.aclose()

        self.stats.elapsed_seconds = time.monotonic() - self._start_time
        logger.info(
            "pipeline_stopped",
            received=self.stats.observations_received,
            emitted=self.stats.records_emitted,
            filtered=self.stats.observations_filtered,
            failed=self.stats.observations_failed,
            abandoned=self.stats.observations_abandoned,
            elapsed_seconds=round(self.stats.elapsed_seconds, 2),
        )
