"""
Best-effort enrichment from a live source.

The primary sources often announce a notification before (or without)
exposing its content. The live source shows what is currently on
screen, with no fixed latency relative to the announcement, so the
enricher polls it on a bounded budget and gives up quietly.

Example:
    >>> enricher = LiveEnricher(CommandLiveSource(["notif-peek", "--json"]))
    >>> content = await enricher.enrich(timeout_budget=2.0, poll_interval=0.1)
    >>> merged = merge_enrichment(observation, content)
"""

from __future__ import annotations

import asyncio
import json
import subprocess
import time
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from notification_listener.models.observations import LiveContent, RawObservation

logger = structlog.get_logger(__name__)

# 20 polls x 100 ms
DEFAULT_TIMEOUT_BUDGET = 2.0
DEFAULT_POLL_INTERVAL = 0.1


@runtime_checkable
class LiveSource(Protocol):
    """Capability: read the notification content currently displayed.

    The query is synchronous and may be slow; callers run it off the
    event loop. Returning None means nothing is displayed (or the
    source is unavailable right now).
    """

    def read_displayed(self) -> LiveContent | None:
        """Return the currently displayed content, if any."""
        ...


class CommandLiveSource:
    """Live source backed by an external helper command.

    The command prints one JSON object with any of ``app``, ``title`` and
    ``body`` (or nothing) describing the banner on screen. Any failure
    reads as "nothing displayed".

    Attributes:
        command: argv of the helper
        timeout: Per-query timeout in seconds
    """

    def __init__(self, command: Sequence[str], *, timeout: float = 1.0):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    def read_displayed(self) -> LiveContent | None:
        try:
            completed = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("live_query_failed", command=self.command[0], error=str(e))
            return None

        output = completed.stdout.strip()
        if completed.returncode != 0 or not output:
            return None

        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None

        try:
            return LiveContent(
                app_display_name=str(data.get("app") or data.get("app_display_name") or ""),
                title=str(data.get("title") or ""),
                body=str(data.get("body") or ""),
            )
        except ValidationError:
            return None

    def __repr__(self) -> str:
        return f"CommandLiveSource({self.command!r})"


class LiveEnricher:
    """Poll a live source for missing notification content.

    Each call is independent; many may run concurrently for rapid-fire
    observations. The live source is read-only from our side, so no
    locking is needed between them.

    Args:
        source: Live source, or None when unavailable on this host
    """

    def __init__(self, source: LiveSource | None):
        self.source = source

    async def enrich(
        self,
        timeout_budget: float = DEFAULT_TIMEOUT_BUDGET,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> LiveContent | None:
        """Poll until content shows up or the budget is spent.

        Polling stops at the first result with a title or body. A result
        carrying only an app name is remembered as the best so far but
        polling continues.

        Args:
            timeout_budget: Total seconds to keep polling (0 = no polls)
            poll_interval: Seconds between polls

        Returns:
            Best content found, or None
        """
        if self.source is None or timeout_budget <= 0:
            return None

        deadline = time.monotonic() + timeout_budget
        best: LiveContent | None = None
        attempts = 0

        while True:
            attempts += 1
            content = await self._query()
            if content is not None and not content.is_empty:
                if content.has_content:
                    logger.debug("live_content_found", attempts=attempts)
                    return content
                if best is None:
                    best = content

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval, remaining))
            if time.monotonic() >= deadline:
                break

        logger.debug("live_content_timeout", attempts=attempts, partial=best is not None)
        return best

    async def _query(self) -> LiveContent | None:
        """Run one synchronous query in a worker thread."""
        assert self.source is not None
        try:
            return await asyncio.to_thread(self.source.read_displayed)
        except Exception as e:
            # query failures degrade to no enrichment
            logger.debug("live_query_error", error=str(e))
            return None


def merge_enrichment(observation: RawObservation, content: LiveContent | None) -> RawObservation:
    """Merge live content into an observation.

    An enriched field replaces the observation's value only when it is
    non-empty, so enrichment never erases what is already known.

    Args:
        observation: Primary observation
        content: Enrichment result (None = unchanged)

    Returns:
        The merged observation (the same object when nothing changed)
    """
    if content is None:
        return observation

    updates: dict[str, str] = {}
    if content.app_display_name:
        updates["app_name"] = content.app_display_name
    if content.title:
        updates["title"] = content.title
    if content.body:
        updates["body"] = content.body

    if not updates:
        return observation
    return observation.model_copy(update=updates)
