"""Timestamp helpers.

Timestamps are stored as ISO-8601 UTC strings with millisecond precision so
that string order is chronological order.
"""

from __future__ import annotations

from datetime import datetime, timezone


def to_utc_iso(dt: datetime) -> str:
    """Naive datetimes are taken to be UTC already."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def utc_now_iso() -> str:
    return to_utc_iso(datetime.now(timezone.utc))
