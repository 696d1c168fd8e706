"""
Notification Listener

Captures desktop notifications from every app by correlating several
unreliable, partially-redacted sources (a system log stream, the
notification store and a notification bus), enriching redacted records
from the live display, and delivering one JSON record per notification
to stdout, a file and/or a webhook.

Features:
- Pattern-based extraction from log lines
- Watermarked polling of the notification store
- Best-effort live enrichment with a bounded time budget
- Isolated fan-out to independent sinks

Example:
    >>> from notification_listener import CanonicalNotification
    >>>
    >>> record = CanonicalNotification.from_wire(line)
    >>> print(record.app_display_name, record.title)

For more information, run:
    $ notification-listener --help
"""

__version__ = "0.1.0"

from notification_listener.config.settings import Settings, get_settings
from notification_listener.extract.patterns import PatternExtractor
from notification_listener.ingest.correlator import Correlator
from notification_listener.ingest.pipeline import Pipeline
from notification_listener.models.observations import (
    CanonicalNotification,
    LiveContent,
    RawObservation,
    SourceKind,
)
from notification_listener.sinks.base import SinkFanout
from notification_listener.sources.protocol import IngestionSource, SourceUnavailableError

__all__ = [
    "CanonicalNotification",
    "Correlator",
    "IngestionSource",
    "LiveContent",
    "PatternExtractor",
    "Pipeline",
    "RawObservation",
    "Settings",
    "SinkFanout",
    "SourceKind",
    "SourceUnavailableError",
    "__version__",
    "get_settings",
]
