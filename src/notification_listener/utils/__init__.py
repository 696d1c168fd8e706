"""
Utility functions for the notification listener.

Logging:
- setup_logging(): Configure structured logging with structlog
- get_logger(name): Get a logger instance

Time conversions:
- now_utc(): Current time as an aware UTC datetime
- to_iso(dt): ISO-8601 formatting for the wire format
- parse_log_timestamp(line): Leading stamp of a compact log line
- parse_store_date(value): Notification store date column
"""

from notification_listener.utils.logging import get_logger, setup_logging
from notification_listener.utils.time import (
    now_utc,
    parse_log_timestamp,
    parse_store_date,
    to_iso,
)

__all__ = [
    "get_logger",
    "now_utc",
    "parse_log_timestamp",
    "parse_store_date",
    "setup_logging",
    "to_iso",
]
