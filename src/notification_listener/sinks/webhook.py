"""
Fire-and-forget webhook sink.

Each record is POSTed as JSON on its own background task. ``write``
returns as soon as the task is scheduled; the response is only logged.
A slow or failing endpoint therefore never blocks later records or the
other sinks.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from notification_listener.models.observations import CanonicalNotification

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0

# Posts still running this long after shutdown starts are abandoned
DEFAULT_CLOSE_GRACE = 1.0


class WebhookSink:
    """POST each record to a webhook URL without awaiting the response.

    Must be written to from inside a running event loop.

    Args:
        url: Endpoint to POST to
        client: Pre-built httpx client (the sink then does not close it)
        timeout: Per-request timeout in seconds
    """

    sink_name = "webhook"

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.url = str(url)
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._pending: set[asyncio.Task[None]] = set()
        self.posted = 0
        self.failed = 0

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @property
    def pending(self) -> int:
        """Number of posts still in flight."""
        return len(self._pending)

    def write(self, record: CanonicalNotification) -> None:
        """Schedule the POST and return immediately.

        Raises:
            RuntimeError: If no event loop is running
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._post(record.to_wire().encode("utf-8")))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, body: bytes) -> None:
        try:
            response = await self.client.post(
                self.url,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            self.failed += 1
            logger.warning("webhook_post_failed", url=self.url, error=str(e))
            return

        if response.is_error:
            self.failed += 1
            logger.warning(
                "webhook_rejected",
                url=self.url,
                status=response.status_code,
                body=response.text[:200],
            )
            return

        self.posted += 1
        logger.debug("webhook_posted", url=self.url, status=response.status_code)

    async def wait_pending(self, timeout: float | None = None) -> int:
        """Wait for in-flight posts.

        Returns:
            Number of posts still pending after the wait
        """
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)
        return len(self._pending)

    async def aclose(self, grace: float = DEFAULT_CLOSE_GRACE) -> None:
        """Give in-flight posts a short grace period, then abandon them."""
        remaining = await self.wait_pending(timeout=grace)
        if remaining:
            logger.info("webhook_posts_abandoned", count=remaining)
            for task in list(self._pending):
                task.cancel()
            await asyncio.gather(*self._pending, return_exceptions=True)

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:
        return f"WebhookSink({self.url!r})"
