"""Date helpers for the YYYY-MM-DD partition key."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

PARTITION_KEY_FORMAT = "%Y-%m-%d"

_PARTITION_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def format_partition_key(value: date | datetime) -> str:
    """Format a date as the YYYY-MM-DD partition key."""
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(PARTITION_KEY_FORMAT)


def today_partition_key(today: date | None = None) -> str:
    """Partition key for the local calendar day."""
    return format_partition_key(today or date.today())


def is_partition_key(value: str) -> bool:
    """True if the string looks like YYYY-MM-DD."""
    return bool(_PARTITION_KEY_RE.match(value))


def parse_partition_key(value: str) -> date:
    """Parse a YYYY-MM-DD partition key.

    Raises ValueError for anything that is not a real calendar date.
    """
    if not is_partition_key(value):
        raise ValueError(f"Not a YYYY-MM-DD date: {value!r}")
    return datetime.strptime(value, PARTITION_KEY_FORMAT).date()


def date_days_ago(days: int, today: date | None = None) -> str:
    """Partition key for the date N days before today."""
    return format_partition_key((today or date.today()) - timedelta(days=days))


def is_older_than(key: str, days: int, today: date | None = None) -> bool:
    """True if the partition is strictly older than ``days`` days."""
    cutoff = (today or date.today()) - timedelta(days=days)
    return parse_partition_key(key) < cutoff


def utc_timestamp() -> str:
    """ISO-8601 timestamp for the current UTC time."""
    return datetime.now(timezone.utc).isoformat()
