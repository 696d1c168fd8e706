"""
Ingestion sources for the notification listener.

This module provides the sources that implement the IngestionSource protocol:

- TailSource: Lines from the notification daemon's log stream
- StorePoller: New rows in the notification record store
- BusSubscriber: Events pushed on a system-wide bus

Example - Running sources behind one handler:
    >>> from notification_listener.sources import StorePoller, TailSource
    >>>
    >>> def handler(observation):
    ...     print(observation.app_identifier)
    >>>
    >>> for source in (TailSource(), StorePoller(poll_interval=2.0)):
    ...     await source.start(handler)

To implement a custom source, see `sources/protocol.py` for the interface.
"""

from notification_listener.sources.bus import BusEvent, BusSubscriber, EventBus, LocalEventBus
from notification_listener.sources.protocol import (
    IngestionSource,
    ObservationHandler,
    SourceUnavailableError,
    get_source,
    is_source_registered,
    list_sources,
    register_source,
)
from notification_listener.sources.store import RecordStore, SQLiteRecordStore, StorePoller
from notification_listener.sources.tail import LineSource, SubprocessLineSource, TailSource

__all__ = [
    "BusEvent",
    "BusSubscriber",
    "EventBus",
    "IngestionSource",
    "LineSource",
    "LocalEventBus",
    "ObservationHandler",
    "RecordStore",
    "SQLiteRecordStore",
    "SourceUnavailableError",
    "StorePoller",
    "SubprocessLineSource",
    "TailSource",
    "get_source",
    "is_source_registered",
    "list_sources",
    "register_source",
]
