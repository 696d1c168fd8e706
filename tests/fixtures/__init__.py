"""Test fixtures and factories."""

from tests.fixtures.factories import LogLineFactory, ObservationFactory, RecordFactory
from tests.fixtures.fakes import (
    FailingSink,
    FakeLineSource,
    FakeLiveSource,
    FakeRecordStore,
    ManualSource,
    RecordingSink,
    wait_until,
)

__all__ = [
    "FailingSink",
    "FakeLineSource",
    "FakeLiveSource",
    "FakeRecordStore",
    "LogLineFactory",
    "ManualSource",
    "ObservationFactory",
    "RecordFactory",
    "RecordingSink",
    "wait_until",
]
