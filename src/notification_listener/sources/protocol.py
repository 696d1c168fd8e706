"""
Ingestion source protocol for the notification listener.

This module defines the interface that all ingestion sources implement,
so the pipeline can compose any number of them behind one callback.

Every source follows the same lifecycle: Stopped -> Running -> Stopped.
``start()`` on a running source raises RuntimeError; ``stop()`` releases
the external resource and is a no-op on a stopped source.

Example - Implementing a custom source:
    >>> from notification_listener.sources import register_source
    >>>
    >>> @register_source("my_source")
    >>> class MySource:
    ...     source_name = "my_source"
    ...
    ...     async def start(self, handler):
    ...         self._handler = handler
    ...         self._running = True
    ...
    ...     async def stop(self):
    ...         self._running = False
    ...
    ...     @property
    ...     def is_running(self):
    ...         return self._running

Using registered sources:
    >>> from notification_listener.sources import get_source
    >>> source = get_source("store", poll_interval=2.0)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from notification_listener.models import RawObservation


# Invoked once per accepted observation. Shared across sources, so it
# must be safe to interleave calls from different sources.
ObservationHandler = Callable[["RawObservation"], None]

# Registry of available sources
_SOURCE_REGISTRY: dict[str, type] = {}


class SourceUnavailableError(ConnectionError):
    """An ingestion source cannot be resolved or started.

    Reported once at startup; the source never emits and the other
    sources carry on.
    """

    def __init__(self, source_name: str, reason: str):
        super().__init__(f"{source_name}: {reason}")
        self.source_name = source_name
        self.reason = reason


@runtime_checkable
class IngestionSource(Protocol):
    """Interface for ingestion sources.

    Implementations:
    - TailSource: Lines from an external log streaming process
    - StorePoller: New rows in the notification record store
    - BusSubscriber: Events pushed on a system-wide bus

    All sources must implement:
    - source_name: Human-readable identifier
    - start(handler): Begin emitting observations to handler
    - stop(): Release the external resource
    - is_running: Current lifecycle state
    """

    @property
    def source_name(self) -> str:
        """Human-readable source identifier used in logs."""
        ...

    @property
    def is_running(self) -> bool:
        """Whether the source is currently running."""
        ...

    async def start(self, handler: ObservationHandler) -> None:
        """Acquire the external resource and begin emitting.

        Observations are passed to ``handler`` in this source's own
        order (read order, ascending row id, or delivery order).

        Raises:
            RuntimeError: If already running
            SourceUnavailableError: If the resource cannot be acquired
        """
        ...

    async def stop(self) -> None:
        """Release the external resource.

        Safe to call on a stopped source.
        """
        ...


def register_source(name: str):
    """Decorator to register a source implementation.

    Args:
        name: Unique name for the source

    Returns:
        Decorator function
    """

    def decorator(cls: type) -> type:
        if name in _SOURCE_REGISTRY:
            raise ValueError(f"Source '{name}' is already registered")
        _SOURCE_REGISTRY[name] = cls
        return cls

    return decorator


def get_source(name: str, *args, **kwargs) -> IngestionSource:
    """Instantiate a registered source by name.

    Args:
        name: Name of the source
        *args: Arguments to pass to source constructor
        **kwargs: Keyword arguments to pass to source constructor

    Returns:
        Instantiated source

    Raises:
        KeyError: If source is not registered
    """
    if name not in _SOURCE_REGISTRY:
        available = ", ".join(_SOURCE_REGISTRY.keys())
        raise KeyError(f"Source '{name}' not found. Available: {available}")

    source_class = _SOURCE_REGISTRY[name]
    return source_class(*args, **kwargs)


def list_sources() -> list[str]:
    """List all registered source names."""
    return list(_SOURCE_REGISTRY.keys())


def is_source_registered(name: str) -> bool:
    """Check if a source is registered."""
    return name in _SOURCE_REGISTRY
