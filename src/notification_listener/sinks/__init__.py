"""
Output sinks for canonical notification records.

- FileSink: durable JSON-lines file
- WebhookSink: fire-and-forget HTTP POST
- ConsoleSink: JSON lines on stdout
- SinkFanout: delivers to all of them with per-sink failure isolation
"""

from notification_listener.sinks.base import Sink, SinkFanout
from notification_listener.sinks.console import ConsoleSink
from notification_listener.sinks.file import FileSink
from notification_listener.sinks.webhook import WebhookSink

__all__ = [
    "ConsoleSink",
    "FileSink",
    "Sink",
    "SinkFanout",
    "WebhookSink",
]
