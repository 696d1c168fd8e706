"""
Observation and record models for the notification listener.

This module defines Pydantic models for:
- RawObservation: One partial detection of a notification from one source
- LiveContent: What the live source currently displays
- CanonicalNotification: The merged record delivered to sinks

Example:
    >>> from notification_listener.models import RawObservation, SourceKind
    >>>
    >>> obs = RawObservation(
    ...     source_kind=SourceKind.TAIL,
    ...     app_identifier="com.example.chat",
    ...     notification_id="id123",
    ...     title="Ann",
    ...     body="hi",
    ... )
    >>> obs.display_name
    'chat'
    >>>
    >>> # Wire format uses sorted keys and the legacy field names
    >>> record = CanonicalNotification(app_identifier="com.example.chat")
    >>> record.to_wire()
    '{"app": "", "body": "", "bundleId": "com.example.chat", ...}'
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceKind(str, Enum):
    """Which ingestion source produced an observation."""

    TAIL = "tail"
    STORE = "store"
    BUS = "bus"


def derive_app_name(identifier: str) -> str:
    """Derive a human-readable app name from a raw identifier.

    Takes the last dot-delimited segment; identifiers without a
    delimiter (or ending in one) are returned whole.

    Example:
        >>> derive_app_name("com.example.chat")
        'chat'
        >>> derive_app_name("Slack")
        'Slack'
    """
    segment = identifier.rsplit(".", 1)[-1]
    return segment or identifier


class RawObservation(BaseModel):
    """A single, possibly incomplete detection of a notification.

    Produced by an ingestion source. Title and body may be empty when the
    source redacted them; the correlator may later fill them in from the
    live source.

    Attributes:
        source_kind: Which source produced this observation
        observed_at: Source-supplied timestamp (None = use wall clock)
        app_identifier: Reverse-DNS identifier or opaque token (never empty)
        app_name: Display name hint when the source carries one
        notification_id: Opaque notification identifier (may be empty)
        title: Notification title (may be empty)
        body: Notification body (may be empty)
        category: Free-form category
        extra: Free-form source-specific data
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    source_kind: SourceKind = Field(..., description="Producing source")
    observed_at: datetime | None = Field(default=None, description="Source timestamp")
    app_identifier: str = Field(..., description="Raw application identifier")
    app_name: str = Field(default="", description="Display name hint")
    notification_id: str = Field(default="", description="Opaque notification id")
    title: str = Field(default="")
    body: str = Field(default="")
    category: str = Field(default="")
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("app_identifier")
    @classmethod
    def validate_identity(cls, v: str) -> str:
        """Reject observations without a usable identity."""
        v = v.strip()
        if not v:
            raise ValueError("app_identifier must not be empty")
        return v

    @property
    def display_name(self) -> str:
        """Display name: the source's hint, else derived from the identifier."""
        return self.app_name or derive_app_name(self.app_identifier)

    @property
    def is_complete(self) -> bool:
        """Whether both title and body are known."""
        return bool(self.title) and bool(self.body)


class LiveContent(BaseModel):
    """Content currently displayed by the live source."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    app_display_name: str = ""
    title: str = ""
    body: str = ""

    @property
    def has_content(self) -> bool:
        """Whether this carries a title or body (a name alone does not count)."""
        return bool(self.title) or bool(self.body)

    @property
    def is_empty(self) -> bool:
        """Whether every field is empty."""
        return not (self.app_display_name or self.title or self.body)


class CanonicalNotification(BaseModel):
    """The fully merged record delivered to sinks.

    Every field defaults to empty string so sink schemas stay stable.
    Serialized with the wire names ``app``, ``bundleId`` and ``identifier``
    and sorted keys.

    Attributes:
        timestamp: ISO-8601 observation time
        app_display_name: Human-readable app name (wire: ``app``)
        app_identifier: Raw identifier (wire: ``bundleId``)
        title: Notification title
        body: Notification body
        category: Free-form category
        notification_id: Opaque id (wire: ``identifier``)
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    timestamp: str = Field(default="")
    app_display_name: str = Field(default="", alias="app")
    app_identifier: str = Field(default="", alias="bundleId")
    title: str = Field(default="")
    body: str = Field(default="")
    category: str = Field(default="")
    notification_id: str = Field(default="", alias="identifier")

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """Never store null; missing values become empty strings."""
        return "" if v is None else v

    def to_wire_dict(self) -> dict[str, str]:
        """Wire-format dictionary with sorted keys."""
        data = self.model_dump(by_alias=True)
        return {key: data[key] for key in sorted(data)}

    def to_wire(self) -> str:
        """Serialize to one JSON line (no trailing newline)."""
        return json.dumps(self.to_wire_dict(), sort_keys=True, ensure_ascii=False)

    @classmethod
    def from_wire(cls, line: str | bytes) -> CanonicalNotification:
        """Deserialize one wire-format JSON object."""
        return cls.model_validate(json.loads(line))
