"""
Timestamp normalization.

Callers send transaction dates with or without an offset. Every date is
turned into a timezone-aware UTC ``datetime`` before it is compared or
stored, so two submissions of the same instant always compare equal.

A value without any timezone information is read as UTC wall-clock time,
never as the host's local time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum


class TimestampKind(str, Enum):
    UTC = "utc"
    LOCAL = "local"
    UNSPECIFIED = "unspecified"


def infer_kind(value: datetime) -> TimestampKind:
    """Classify a ``datetime`` by the timezone information it carries."""
    offset = value.utcoffset()
    if offset is None:
        return TimestampKind.UNSPECIFIED
    if offset == timedelta(0):
        return TimestampKind.UTC
    return TimestampKind.LOCAL


def normalize(value: datetime, kind: TimestampKind | None = None) -> datetime:
    """Return ``value`` as an aware UTC instant.

    * ``UTC``: zero offset. A naive value is tagged UTC as-is.
    * ``LOCAL``: converted with its offset; a naive value is read as
      system-local wall time.
    * ``UNSPECIFIED``: the wall-clock fields are tagged UTC without any
      conversion, dropping whatever tzinfo the value had.

    When ``kind`` is omitted it is inferred with ``infer_kind``.
    """
    if kind is None:
        kind = infer_kind(value)

    if kind is TimestampKind.UNSPECIFIED:
        return value.replace(tzinfo=timezone.utc)

    if value.tzinfo is None:
        if kind is TimestampKind.UTC:
            return value.replace(tzinfo=timezone.utc)
        # naive astimezone() assumes the host's local zone
        return value.astimezone(timezone.utc)

    return value.astimezone(timezone.utc)
