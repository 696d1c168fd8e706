"""
Tests for observation and record models.

Tests the Pydantic models:
- RawObservation: Identity validation, display names
- LiveContent: Content detection
- CanonicalNotification: Wire format and round-trip
"""

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from notification_listener.models import (
    CanonicalNotification,
    LiveContent,
    RawObservation,
    SourceKind,
    derive_app_name,
)


class TestDeriveAppName:
    """Tests for display name derivation."""

    def test_reverse_dns(self):
        """Test the last segment is used."""
        assert derive_app_name("com.example.chat") == "chat"

    def test_no_delimiter(self):
        """Test identifiers without a dot are returned whole."""
        assert derive_app_name("Slack") == "Slack"

    def test_trailing_delimiter(self):
        """Test a trailing dot falls back to the whole identifier."""
        assert derive_app_name("com.example.") == "com.example."


class TestRawObservation:
    """Tests for RawObservation model."""

    def test_create_minimal(self):
        """Test creating with only required fields."""
        obs = RawObservation(source_kind=SourceKind.STORE, app_identifier="com.example.mail")

        assert obs.title == ""
        assert obs.body == ""
        assert obs.notification_id == ""
        assert obs.observed_at is None
        assert obs.extra == {}

    def test_empty_identifier_rejected(self):
        """Test an observation without identity cannot exist."""
        with pytest.raises(ValidationError):
            RawObservation(source_kind=SourceKind.TAIL, app_identifier="   ")

    def test_identifier_stripped(self):
        """Test surrounding whitespace is removed."""
        obs = RawObservation(source_kind=SourceKind.TAIL, app_identifier="  com.example.chat ")

        assert obs.app_identifier == "com.example.chat"

    def test_display_name_derived(self, observation_factory):
        """Test display name falls back to the identifier's last segment."""
        obs = observation_factory.create(app_identifier="com.example.chat")

        assert obs.display_name == "chat"

    def test_display_name_hint_wins(self, observation_factory):
        """Test a source-supplied name beats the derived one."""
        obs = observation_factory.create(app_name="Chat Pro")

        assert obs.display_name == "Chat Pro"

    def test_is_complete(self, observation_factory):
        """Test completeness needs both title and body."""
        assert observation_factory.create().is_complete
        assert not observation_factory.create(title="").is_complete
        assert not observation_factory.create(body="").is_complete
        assert not observation_factory.create_redacted().is_complete

    def test_frozen(self, observation_factory):
        """Test observations are immutable."""
        obs = observation_factory.create()

        with pytest.raises(ValidationError):
            obs.title = "changed"

    def test_source_kind_values(self):
        """Test source kinds serialize to their names."""
        assert SourceKind.TAIL.value == "tail"
        assert SourceKind("store") is SourceKind.STORE
        assert SourceKind.BUS == "bus"


class TestLiveContent:
    """Tests for LiveContent model."""

    def test_empty(self):
        content = LiveContent()

        assert content.is_empty
        assert not content.has_content

    def test_name_only_is_not_content(self):
        """Test an app name alone does not count as content."""
        content = LiveContent(app_display_name="Chat")

        assert not content.is_empty
        assert not content.has_content

    @pytest.mark.parametrize("field", ["title", "body"])
    def test_title_or_body_is_content(self, field):
        content = LiveContent(**{field: "text"})

        assert content.has_content


class TestCanonicalNotification:
    """Tests for the canonical record and its wire format."""

    def test_defaults_are_empty_strings(self):
        """Test every field defaults to empty string."""
        record = CanonicalNotification()

        assert set(record.to_wire_dict().values()) == {""}

    def test_none_becomes_empty(self):
        """Test null values are never stored."""
        record = CanonicalNotification(title=None, body=None)

        assert record.title == ""
        assert record.body == ""

    def test_wire_keys_sorted(self, record_factory):
        """Test wire keys use the legacy names in sorted order."""
        record = record_factory.create()

        data = json.loads(record.to_wire())

        assert list(data) == [
            "app",
            "body",
            "bundleId",
            "category",
            "identifier",
            "timestamp",
            "title",
        ]

    def test_wire_values(self, record_factory):
        """Test fields map onto their wire names."""
        record = record_factory.create()

        data = record.to_wire_dict()

        assert data["app"] == "chat"
        assert data["bundleId"] == "com.example.chat"
        assert data["identifier"] == "id123"
        assert data["timestamp"] == "2024-05-01T16:12:33+00:00"

    def test_wire_is_single_line(self, record_factory):
        """Test embedded newlines are escaped so one record is one line."""
        record = record_factory.create(body="line one\nline two")

        assert "\n" not in record.to_wire()

    def test_round_trip(self, record_factory):
        """Test serialization round-trips losslessly."""
        record = record_factory.create(title="Ünïcode ✓", body='quote " and \\ slash')

        assert CanonicalNotification.from_wire(record.to_wire()) == record

    def test_round_trip_empty_strings(self):
        """Test empty strings survive the round-trip as empty strings."""
        record = CanonicalNotification(app_identifier="com.example.chat")

        restored = CanonicalNotification.from_wire(record.to_wire())

        assert restored == record
        assert restored.title == ""
        assert restored.notification_id == ""

    def test_from_wire_bytes(self, record_factory):
        """Test deserializing from bytes."""
        record = record_factory.create()

        assert CanonicalNotification.from_wire(record.to_wire().encode()) == record

    def test_populate_by_field_name(self):
        """Test both field names and wire names are accepted."""
        by_name = CanonicalNotification(app_display_name="chat", notification_id="x")
        by_alias = CanonicalNotification(app="chat", identifier="x")

        assert by_name == by_alias

    def test_timestamp_from_datetime_caller(self):
        """Test the record stores the timestamp string as given."""
        stamp = datetime(2024, 5, 1, tzinfo=UTC).isoformat()

        record = CanonicalNotification(timestamp=stamp)

        assert record.timestamp == "2024-05-01T00:00:00+00:00"
