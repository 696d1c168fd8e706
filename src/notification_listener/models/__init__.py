"""
Data models for the notification listener.

This module provides Pydantic-based data models for:
- RawObservation: Partial detection from one ingestion source
- LiveContent: Content read from the live source during enrichment
- CanonicalNotification: The merged record delivered to sinks
"""

from notification_listener.models.observations import (
    CanonicalNotification,
    LiveContent,
    RawObservation,
    SourceKind,
    derive_app_name,
)

__all__ = [
    "CanonicalNotification",
    "LiveContent",
    "RawObservation",
    "SourceKind",
    "derive_app_name",
]
