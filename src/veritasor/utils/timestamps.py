"""
Timestamp utilities used across Veritasor:
- UTC datetime helpers
- ISO-8601 rendering and parsing
- Epoch milliseconds (attestation timestamps)
"""

from __future__ import annotations

import datetime as _dt

from dateutil.parser import isoparse


def utc_now() -> _dt.datetime:
    """Return a timezone-aware UTC datetime."""
    return _dt.datetime.now(tz=_dt.timezone.utc)


def to_iso(value: _dt.datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=_dt.timezone.utc)
    value = value.astimezone(_dt.timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> _dt.datetime:
    parsed = isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)
    return parsed


def now_iso() -> str:
    return to_iso(utc_now())


def epoch_ms(value: _dt.datetime) -> int:
    return int(value.timestamp() * 1000)


