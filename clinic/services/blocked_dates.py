"""
Blocked date normalization.

Doctors' ``blocked_dates`` accumulated entries in several shapes over
time (plain strings, ``{"date": ...}`` objects, Firestore-style
timestamps, ``{"seconds": ...}`` epoch objects).  Everything here reduces
an entry to a canonical ``YYYY-MM-DD`` string so that entries can be
compared with a requested appointment date.
"""
from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from django.utils import timezone

DEFAULT_BLOCK_REASON = "Doctor not available"

_TIMESTAMP_METHODS = ('to_datetime', 'ToDatetime', 'toDate')


def _date_from_datetime(value: dt.datetime) -> dt.date:
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.date()


def _date_from_epoch(seconds: float) -> Optional[dt.date]:
    try:
        instant = dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc)
        return timezone.localtime(instant).date()
    except (OverflowError, OSError, ValueError):
        # NaN, infinity or outside the platform time_t range
        return None


def _epoch_seconds(entry: Mapping) -> Optional[float]:
    for key in ('seconds', '_seconds'):
        value = entry.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
            return float(value)
    return None


def normalize_blocked_date(entry: Any) -> str:
    """Return ``entry`` as ``YYYY-MM-DD`` or ``""`` when it is not a date.

    Accepted shapes:

    * ``"2024-01-15"`` or an ISO datetime string (first ten characters);
    * ``{"date": "2024-01-15", ...}``;
    * a ``date``/``datetime`` or a timestamp object exposing
      ``to_datetime()``/``ToDatetime()``/``toDate()``;
    * ``{"seconds": 1705276800}`` (also ``_seconds`` as serialized by
      the Firestore REST API), read in the configured time zone.

    Only the calendar day is kept.  Normalizing an already canonical
    string returns it unchanged.
    """
    if not entry:
        return ""

    if isinstance(entry, str):
        return entry.strip()[:10]

    if isinstance(entry, dt.datetime):
        return _date_from_datetime(entry).isoformat()

    if isinstance(entry, dt.date):
        return entry.isoformat()

    if isinstance(entry, Mapping):
        if isinstance(entry.get('date'), str):
            return entry['date'].strip()[:10]
        seconds = _epoch_seconds(entry)
        day = _date_from_epoch(seconds) if seconds is not None else None
        return day.isoformat() if day else ""

    for method in _TIMESTAMP_METHODS:
        converter = getattr(entry, method, None)
        if callable(converter):
            value = converter()
            if isinstance(value, dt.datetime):
                return _date_from_datetime(value).isoformat()
            if isinstance(value, dt.date):
                return value.isoformat()
            return ""

    seconds = getattr(entry, 'seconds', None)
    if isinstance(seconds, (int, float)) and not isinstance(seconds, bool) and seconds:
        day = _date_from_epoch(seconds)
        return day.isoformat() if day else ""

    return ""


def normalize_blocked_dates(entries: Any) -> list[str]:
    """Normalize every entry, dropping the ones that are not dates."""
    if not isinstance(entries, (list, tuple)):
        return []
    return [d for d in (normalize_blocked_date(e) for e in entries) if d]


def _day_string(on_date: Any) -> str:
    if isinstance(on_date, dt.datetime):
        return _date_from_datetime(on_date).isoformat()
    if isinstance(on_date, dt.date):
        return on_date.isoformat()
    if isinstance(on_date, str):
        return on_date.strip()[:10]
    return ""


def is_date_blocked(on_date: Any, entries: Any) -> bool:
    day = _day_string(on_date)
    if len(day) != 10 or not entries:
        return False
    return day in normalize_blocked_dates(entries)


def blocked_date_reason(on_date: Any, entries: Iterable[Any] | None) -> Optional[str]:
    """Reason attached to the entry blocking ``on_date``, if any."""
    day = _day_string(on_date)
    if not day or not entries:
        return None
    for entry in entries:
        if normalize_blocked_date(entry) == day:
            reason = entry.get('reason') if isinstance(entry, Mapping) else None
            return reason or DEFAULT_BLOCK_REASON
    return None
