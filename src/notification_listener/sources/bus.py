"""
System event bus subscriber.

Registers for every event on a push-based bus and converts each one
into a RawObservation synchronously, in delivery order, with no
buffering. The native bus is bridged in through the EventBus
capability; LocalEventBus is the in-process implementation.

Example:
    >>> bus = LocalEventBus()
    >>> source = BusSubscriber(bus)
    >>> await source.start(handler)
    >>> bus.publish(BusEvent("com.example.sync.done", sender="Example"))
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import structlog

from notification_listener.models.observations import RawObservation, SourceKind
from notification_listener.sources.protocol import (
    ObservationHandler,
    SourceUnavailableError,
    register_source,
)

logger = structlog.get_logger(__name__)

BUS_CATEGORY = "distributed"


@dataclass(frozen=True)
class BusEvent:
    """One event delivered by the bus."""

    name: str
    sender: str | None = None
    payload: Mapping[str, Any] | None = field(default=None)


BusHandler = Callable[[BusEvent], None]


@runtime_checkable
class Subscription(Protocol):
    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        ...


@runtime_checkable
class EventBus(Protocol):
    """Capability: a system-wide push event bus."""

    def subscribe(self, handler: BusHandler) -> Subscription:
        """Deliver every event to ``handler`` until cancelled."""
        ...


class _LocalSubscription:
    def __init__(self, bus: LocalEventBus, handler: BusHandler):
        self._bus = bus
        self._handler = handler

    def cancel(self) -> None:
        self._bus._remove(self._handler)


class LocalEventBus:
    """In-process EventBus.

    ``publish`` delivers to subscribers synchronously, in subscription
    order. A failing subscriber is logged and does not affect the others.
    """

    def __init__(self) -> None:
        self._handlers: list[BusHandler] = []

    def subscribe(self, handler: BusHandler) -> Subscription:
        self._handlers.append(handler)
        return _LocalSubscription(self, handler)

    def _remove(self, handler: BusHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event: BusEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("bus_handler_failed", event_name=event.name)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)


def render_payload(payload: Mapping[str, Any] | None) -> str:
    """Render an event payload as text for the observation body."""
    if not payload:
        return ""
    return json.dumps(dict(payload), sort_keys=True, default=str, ensure_ascii=False)


def event_to_observation(event: BusEvent) -> RawObservation | None:
    """Convert a bus event into an observation.

    The event name identifies the app and doubles as the title; the
    sender, when present, is the display name hint. Events without a
    name carry no identity and are dropped.
    """
    name = (event.name or "").strip()
    if not name:
        return None

    return RawObservation(
        source_kind=SourceKind.BUS,
        app_identifier=name,
        app_name=event.sender or "",
        title=name,
        body=render_payload(event.payload),
        category=BUS_CATEGORY,
        extra={"sender": event.sender} if event.sender else {},
    )


@register_source("bus")
class BusSubscriber:
    """Observations from every event on a system bus.

    Attributes:
        source_name: Always "bus"

    Args:
        bus: The bus to subscribe to, or None when no bus is available
    """

    source_name = "bus"

    def __init__(self, bus: EventBus | None = None):
        self.bus = bus
        self._subscription: Subscription | None = None
        self._handler: ObservationHandler | None = None
        self._running = False
        self.observations_emitted = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, handler: ObservationHandler) -> None:
        """Subscribe to all events.

        Raises:
            RuntimeError: If already running
            SourceUnavailableError: If there is no bus or subscribing fails
        """
        if self.is_running:
            raise RuntimeError("BusSubscriber is already running")
        if self.bus is None:
            raise SourceUnavailableError(self.source_name, "no event bus available")

        # the bus may deliver while subscribe() is still running
        self._handler = handler
        self._running = True
        try:
            self._subscription = self.bus.subscribe(self._on_event)
        except Exception as e:
            self._running = False
            self._handler = None
            raise SourceUnavailableError(self.source_name, f"subscribe failed: {e}") from e

        logger.info("source_started", source=self.source_name)

    async def stop(self) -> None:
        """Cancel the subscription."""
        if not self._running:
            return
        self._running = False
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
        logger.info("source_stopped", source=self.source_name, emitted=self.observations_emitted)

    def _on_event(self, event: BusEvent) -> None:
        if not self._running or self._handler is None:
            return
        observation = event_to_observation(event)
        if observation is None:
            return
        self.observations_emitted += 1
        self._handler(observation)

    def __repr__(self) -> str:
        return f"BusSubscriber({self.bus!r})"
