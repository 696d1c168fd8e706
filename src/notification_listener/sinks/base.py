"""
Sink protocol and fan-out delivery.

SinkFanout hands each canonical record to every configured sink. Sinks
are isolated from each other: a sink that raises is logged and skipped,
and the remaining sinks still receive the record.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

from notification_listener.models.observations import CanonicalNotification

if TYPE_CHECKING:
    from notification_listener.config.settings import SinkConfig

logger = structlog.get_logger(__name__)


@runtime_checkable
class Sink(Protocol):
    """Interface for output sinks.

    ``write`` must return promptly; sinks that talk to slow targets
    hand the work off to a background task.
    """

    @property
    def sink_name(self) -> str:
        """Identifier used in logs."""
        ...

    def write(self, record: CanonicalNotification) -> None:
        """Deliver one record.

        Raises:
            Exception: Any failure; the fan-out logs and isolates it
        """
        ...

    async def aclose(self) -> None:
        """Release resources."""
        ...


class SinkFanout:
    """Deliver records to several independent sinks.

    Args:
        sinks: Sinks in delivery order

    Example:
        >>> fanout = SinkFanout([ConsoleSink(), FileSink("out.jsonl")])
        >>> fanout.emit(record)
        2
    """

    def __init__(self, sinks: Sequence[Sink]):
        self.sinks = list(sinks)
        self.delivered = 0
        self.failures = 0

    @classmethod
    def from_config(cls, config: SinkConfig) -> SinkFanout:
        """Build the sinks a SinkConfig asks for."""
        from notification_listener.sinks.console import ConsoleSink
        from notification_listener.sinks.file import FileSink
        from notification_listener.sinks.webhook import WebhookSink

        sinks: list[Sink] = []
        if config.stdout:
            sinks.append(ConsoleSink())
        if config.file_path is not None:
            sinks.append(FileSink(config.file_path))
        if config.webhook_url is not None:
            sinks.append(WebhookSink(config.webhook_url))
        return cls(sinks)

    def emit(self, record: CanonicalNotification) -> int:
        """Deliver a record to every sink.

        Args:
            record: Record to deliver

        Returns:
            Number of sinks that accepted the record
        """
        accepted = 0
        for sink in self.sinks:
            try:
                sink.write(record)
            except Exception as e:
                self.failures += 1
                logger.warning(
                    "sink_write_failed",
                    sink=sink.sink_name,
                    error=str(e),
                    app=record.app_identifier,
                )
                continue
            accepted += 1

        self.delivered += 1
        return accepted

    async def aclose(self) -> None:
        """Close every sink; one failing close does not skip the rest."""
        for sink in self.sinks:
            try:
                await sink.aclose()
            except Exception as e:
                logger.warning("sink_close_failed", sink=sink.sink_name, error=str(e))

    @property
    def sink_names(self) -> list[str]:
        return [sink.sink_name for sink in self.sinks]

    def __len__(self) -> int:
        return len(self.sinks)
