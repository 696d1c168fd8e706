"""
Correlation of raw observations into canonical records.

The correlator is a stateless transform plus filter:

1. Drop observations whose app is not on the allow-list (before any
   enrichment work is spent on them)
2. Enrich observations missing a title or body from the live source
3. Merge, never letting an empty enriched field erase a known value
4. Build the CanonicalNotification

No de-duplication is done across observations.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

import structlog

from notification_listener.enrich.live import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT_BUDGET,
    LiveEnricher,
    merge_enrichment,
)
from notification_listener.models.observations import (
    CanonicalNotification,
    RawObservation,
    derive_app_name,
)
from notification_listener.utils.time import now_utc, to_iso

logger = structlog.get_logger(__name__)


class AppFilter:
    """Case-insensitive app allow-list.

    An observation passes when its display name, the name derived from
    its identifier, or the raw identifier is on the list. An empty or
    missing list lets everything through.

    Example:
        >>> app_filter = AppFilter(["Chat"])
        >>> app_filter.allows_names("com.example.chat")
        True
    """

    def __init__(self, allow_list: Iterable[str] | None = None):
        names = {name.strip().lower() for name in allow_list or () if name.strip()}
        self.allow_list: frozenset[str] | None = frozenset(names) if names else None

    @property
    def enabled(self) -> bool:
        return self.allow_list is not None

    def allows_names(self, identifier: str, display_name: str = "") -> bool:
        if self.allow_list is None:
            return True
        candidates = {identifier, derive_app_name(identifier), display_name}
        return any(c and c.lower() in self.allow_list for c in candidates)

    def allows(self, observation: RawObservation) -> bool:
        return self.allows_names(observation.app_identifier, observation.display_name)


@dataclass
class CorrelatorStats:
    """Counters for correlated observations."""

    processed: int = 0
    rejected: int = 0
    enrichment_attempts: int = 0
    enriched: int = 0


def build_record(observation: RawObservation, fallback_time: datetime) -> CanonicalNotification:
    """Build the canonical record for a (merged) observation.

    Args:
        observation: Observation after enrichment
        fallback_time: Timestamp used when the source supplied none

    Returns:
        CanonicalNotification
    """
    return CanonicalNotification(
        timestamp=to_iso(observation.observed_at or fallback_time),
        app_display_name=observation.display_name,
        app_identifier=observation.app_identifier,
        title=observation.title,
        body=observation.body,
        category=observation.category,
        notification_id=observation.notification_id,
    )


class Correlator:
    """Filter, enrich and merge observations into canonical records.

    Args:
        allow_list: Case-insensitive app names/identifiers to keep
        enricher: Live enricher (None = never enrich)
        enrichment_timeout: Budget per enrichment attempt (seconds)
        enrichment_poll_interval: Seconds between live source polls
        clock: Wall clock for observations without a timestamp
    """

    def __init__(
        self,
        allow_list: Iterable[str] | None = None,
        enricher: LiveEnricher | None = None,
        *,
        enrichment_timeout: float = DEFAULT_TIMEOUT_BUDGET,
        enrichment_poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.filter = AppFilter(allow_list)
        self.enricher = enricher
        self.enrichment_timeout = enrichment_timeout
        self.enrichment_poll_interval = enrichment_poll_interval
        self.clock = clock
        self.stats = CorrelatorStats()

    async def process(self, observation: RawObservation) -> CanonicalNotification | None:
        """Turn one observation into a record, or drop it.

        Args:
            observation: Observation from any source

        Returns:
            CanonicalNotification, or None if filtered out
        """
        if not self.filter.allows(observation):
            self.stats.rejected += 1
            logger.debug(
                "observation_filtered",
                app=observation.app_identifier,
                source=observation.source_kind.value,
            )
            return None

        if self.enricher is not None and not observation.is_complete:
            self.stats.enrichment_attempts += 1
            content = await self.enricher.enrich(
                self.enrichment_timeout, self.enrichment_poll_interval
            )
            merged = merge_enrichment(observation, content)
            if merged is not observation:
                self.stats.enriched += 1
            observation = merged

        self.stats.processed += 1
        return build_record(observation, self.clock())
