"""
Console sink: JSON lines on stdout for shell pipelines.
"""

from __future__ import annotations

import sys
from typing import TextIO

from notification_listener.models.observations import CanonicalNotification


class ConsoleSink:
    """Write each record as one JSON line to stdout and flush immediately.

    Args:
        stream: Output stream (defaults to the current ``sys.stdout``)
    """

    sink_name = "stdout"

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def write(self, record: CanonicalNotification) -> None:
        stream = self.stream
        stream.write(record.to_wire() + "\n")
        stream.flush()

    async def aclose(self) -> None:
        return None
