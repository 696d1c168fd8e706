"""
Correlation and orchestration for the notification listener.

This module runs the flow from sources to sinks:

1. Sources emit RawObservations to one shared handler
2. Each observation gets its own task
3. The correlator filters, enriches and merges it
4. The canonical record fans out to every sink

Example:
    >>> from notification_listener.ingest import Correlator, Pipeline
    >>> from notification_listener.sinks import ConsoleSink, SinkFanout
    >>> from notification_listener.sources import TailSource
    >>>
    >>> pipeline = Pipeline([TailSource()], Correlator(), SinkFanout([ConsoleSink()]))
    >>> stats = await pipeline.run()  # until pipeline.request_stop()
"""

from notification_listener.ingest.correlator import AppFilter, Correlator, build_record
from notification_listener.ingest.pipeline import Pipeline, PipelineStats

__all__ = [
    "AppFilter",
    "Correlator",
    "Pipeline",
    "PipelineStats",
    "build_record",
]
