"""
Enrichment of redacted observations from a live source.
"""

from notification_listener.enrich.live import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT_BUDGET,
    CommandLiveSource,
    LiveEnricher,
    LiveSource,
    merge_enrichment,
)

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_TIMEOUT_BUDGET",
    "CommandLiveSource",
    "LiveEnricher",
    "LiveSource",
    "merge_enrichment",
]
