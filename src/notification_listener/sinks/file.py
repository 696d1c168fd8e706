"""
Durable JSON-lines file sink.
"""

from __future__ import annotations

import threading
from pathlib import Path

from notification_listener.models.observations import CanonicalNotification


class FileSink:
    """Append one sorted-key JSON line per record.

    The file is opened for append, written, flushed and closed on every
    record, under a lock, so concurrent writers never interleave partial
    lines. Parent directories are created on first use.

    Attributes:
        path: Output file
    """

    sink_name = "file"

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._prepared = False

    def write(self, record: CanonicalNotification) -> None:
        line = record.to_wire() + "\n"
        with self._lock:
            if not self._prepared:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._prepared = True
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()

    async def aclose(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"FileSink({str(self.path)!r})"
