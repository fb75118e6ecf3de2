"""
Visiting hours and bookable slot computation.

A doctor's week is described by ``visiting_hours``: lowercase weekday
name -> day schedule ``{"isAvailable": bool, "slots": [{"start": "HH:MM",
"end": "HH:MM"}, ...]}``.  A bare ``{"start", "end"}`` day (the shape
branch timings use) is accepted as a single window.  Candidate slots
step through each window by the doctor's slot duration; booked and past
slots are then removed.

Everything in this module is a pure function of its arguments.
Malformed schedules produce empty results instead of exceptions so that
callers always have a list to render.
"""
from __future__ import annotations

import datetime as dt
import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from django.conf import settings
from django.utils import timezone

from .blocked_dates import is_date_blocked

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

_WEEKDAY_WINDOWS = [{'start': '09:00', 'end': '13:00'}, {'start': '14:00', 'end': '17:00'}]

DEFAULT_VISITING_HOURS: dict[str, dict] = {
    'monday': {'isAvailable': True, 'slots': _WEEKDAY_WINDOWS},
    'tuesday': {'isAvailable': True, 'slots': _WEEKDAY_WINDOWS},
    'wednesday': {'isAvailable': True, 'slots': _WEEKDAY_WINDOWS},
    'thursday': {'isAvailable': True, 'slots': _WEEKDAY_WINDOWS},
    'friday': {'isAvailable': True, 'slots': _WEEKDAY_WINDOWS},
    'saturday': {'isAvailable': True, 'slots': [{'start': '09:00', 'end': '13:00'}]},
    'sunday': {'isAvailable': False, 'slots': []},
}

_TWELVE_HOUR = re.compile(r'^(\d{1,2})[:\-.]?(\d{2})(AM|PM)$')
_TWENTY_FOUR_HOUR = re.compile(r'^(\d{1,2})[:\-.](\d{1,2})$')


# ---------------------------------------------------------------------------
# Time strings
# ---------------------------------------------------------------------------

def normalize_time(value: Any) -> str:
    """Convert ``"2:30 PM"``, ``"02-30pm"``, ``"9:5"`` etc. to ``"HH:MM"``.

    Input that cannot be parsed is returned stripped and upper-cased so
    that comparisons against it simply never match.
    """
    if not isinstance(value, str):
        return ''
    text = re.sub(r'\s+', '', value).upper()

    m = _TWELVE_HOUR.match(text)
    if m:
        hours, minutes, period = int(m.group(1)), int(m.group(2)), m.group(3)
        if not (1 <= hours <= 12 and minutes < 60):
            return text
        if period == 'PM' and hours != 12:
            hours += 12
        elif period == 'AM' and hours == 12:
            hours = 0
        return f'{hours:02d}:{minutes:02d}'

    m = _TWENTY_FOUR_HOUR.match(text)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        # 24:00 is allowed as a window end
        if hours < 24 and minutes < 60 or (hours == 24 and minutes == 0):
            return f'{hours:02d}:{minutes:02d}'
    return text


def time_to_minutes(value: Any) -> Optional[int]:
    """Minutes since midnight, or ``None`` for an unparseable time."""
    normalized = normalize_time(value)
    m = re.match(r'^(\d{2}):(\d{2})$', normalized)
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def minutes_to_time(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def format_time_display(value: str) -> str:
    """24h ``"14:30"`` -> ``"2:30 PM"``."""
    minutes = time_to_minutes(value)
    if minutes is None:
        return value
    hours, mins = divmod(minutes, 60)
    period = 'PM' if hours >= 12 else 'AM'
    return f'{hours % 12 or 12}:{mins:02d} {period}'


# ---------------------------------------------------------------------------
# Doctor schedule lookup
# ---------------------------------------------------------------------------

def _field(obj: Any, *names: str, default: Any = None) -> Any:
    for name in names:
        if isinstance(obj, Mapping):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return default


def get_visiting_hours(doctor: Any) -> Any:
    """The doctor's weekly schedule, or the clinic default when unset."""
    hours = _field(doctor, 'visiting_hours', 'visitingHours')
    if not hours:
        return DEFAULT_VISITING_HOURS
    return hours


def get_slot_duration(doctor: Any) -> int:
    duration = _field(doctor, 'slot_duration', 'slotDuration')
    if duration in (None, ''):
        return settings.CLINIC_DEFAULT_SLOT_MINUTES
    try:
        return int(duration)
    except (TypeError, ValueError):
        return 0


def weekday_name(on_date: dt.date) -> str:
    return WEEKDAYS[on_date.weekday()]


def _day_windows(day_schedule: Any) -> Optional[list[tuple[int, int]]]:
    """Parsed ``(start, end)`` minute windows, ``[]`` when closed, ``None`` when malformed."""
    if not isinstance(day_schedule, Mapping):
        return None
    if 'slots' in day_schedule:
        if not day_schedule.get('isAvailable', True):
            return []
        raw_windows = day_schedule.get('slots')
    elif 'start' in day_schedule and 'end' in day_schedule:
        raw_windows = [day_schedule]
    else:
        return None
    if not isinstance(raw_windows, (list, tuple)):
        return None

    windows = []
    for window in raw_windows:
        if not isinstance(window, Mapping):
            return None
        start = time_to_minutes(window.get('start'))
        end = time_to_minutes(window.get('end'))
        if start is None or end is None:
            return None
        windows.append((start, end))
    return windows


def generate_time_slots(day_schedule: Any, slot_duration: Optional[int] = None) -> list[str]:
    """All slot start times of one day, sorted and without duplicates."""
    duration = settings.CLINIC_DEFAULT_SLOT_MINUTES if slot_duration is None else slot_duration
    if not isinstance(duration, int) or duration <= 0:
        return []
    windows = _day_windows(day_schedule)
    if not windows:
        return []
    slots = set()
    for start, end in windows:
        slots.update(minutes_to_time(m) for m in range(start, end, duration))
    return sorted(slots)


def day_schedule_for(doctor: Any, on_date: dt.date) -> Any:
    hours = get_visiting_hours(doctor)
    if not isinstance(hours, Mapping):
        return None
    return hours.get(weekday_name(on_date))


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------

def _as_date(value: Any) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _local_naive(now: Optional[dt.datetime]) -> dt.datetime:
    now = now or timezone.now()
    if timezone.is_aware(now):
        now = timezone.localtime(now)
    return now.replace(tzinfo=None)


def is_slot_in_past(slot: str, on_date: Any, now: Optional[dt.datetime] = None) -> bool:
    """True when ``slot`` on ``on_date`` starts at or before ``now`` (local time)."""
    day = _as_date(on_date)
    minutes = time_to_minutes(slot)
    if day is None or minutes is None:
        return True
    hours, mins = divmod(minutes, 60)
    slot_start = dt.datetime.combine(day, dt.time(hours % 24, mins)) + dt.timedelta(days=hours // 24)
    return slot_start <= _local_naive(now)


def _doctor_id(doctor: Any) -> Any:
    return _field(doctor, 'pk', 'id')


def _booked_minutes(doctor: Any, on_date: dt.date, existing: Iterable[Any]) -> list[int]:
    doctor_id = _doctor_id(doctor)
    booked = []
    for apt in existing or ():
        status = _field(apt, 'status')
        if status and status != 'confirmed':
            continue
        apt_date = _field(apt, 'appointment_date', 'appointmentDate')
        if apt_date is not None and _as_date(apt_date) != on_date:
            continue
        apt_doctor = _field(apt, 'doctor_id', 'doctorId')
        if apt_doctor is not None and doctor_id is not None and str(apt_doctor) != str(doctor_id):
            continue
        minutes = time_to_minutes(_field(apt, 'appointment_time', 'appointmentTime'))
        if minutes is not None:
            booked.append(minutes)
    return booked


def is_time_slot_available(slot: str, booked: Iterable[int], slot_duration: int) -> bool:
    """A booking at ``t`` occupies ``[t, t + slot_duration)``."""
    minutes = time_to_minutes(slot)
    if minutes is None:
        return False
    return not any(start <= minutes < start + slot_duration for start in booked)


def compute_available_slots(
    doctor: Any,
    on_date: Any,
    existing_appointments: Iterable[Any] = (),
    now: Optional[dt.datetime] = None,
) -> list[str]:
    """Ordered bookable ``HH:MM`` slots of ``doctor`` on ``on_date``.

    ``existing_appointments`` may contain Appointment or AppointmentSlot
    instances or plain mappings; entries with a non-confirmed status or
    another doctor/date are ignored.  Blocked dates and malformed
    schedules yield ``[]``.
    """
    day = _as_date(on_date)
    if day is None:
        return []
    if is_date_blocked(day, _field(doctor, 'blocked_dates', 'blockedDates', default=[])):
        return []

    duration = get_slot_duration(doctor)
    candidates = generate_time_slots(day_schedule_for(doctor, day), duration)
    if not candidates:
        return []

    booked = _booked_minutes(doctor, day, existing_appointments)
    return [
        slot for slot in candidates
        if is_time_slot_available(slot, booked, duration) and not is_slot_in_past(slot, day, now)
    ]


def is_doctor_available_on(doctor: Any, on_date: Any) -> bool:
    day = _as_date(on_date)
    if day is None:
        return False
    return bool(_day_windows(day_schedule_for(doctor, day)))


def get_availability_days(visiting_hours: Any = None) -> list[str]:
    """Short names of the days with at least one window, e.g. ``["Mon", "Tue"]``."""
    hours = visiting_hours or DEFAULT_VISITING_HOURS
    if not isinstance(hours, Mapping):
        return []
    return [day[:3].capitalize() for day in WEEKDAYS if _day_windows(hours.get(day))]


def visiting_hours_text(day_schedule: Any) -> str:
    windows = _day_windows(day_schedule)
    if not windows:
        return 'Closed'
    return ', '.join(
        f'{format_time_display(minutes_to_time(start))} - {format_time_display(minutes_to_time(end))}'
        for start, end in windows
    )


def validate_visiting_hours(data: Any) -> dict[str, dict]:
    """Clean a schedule submitted by a doctor or admin.

    Raises ``ValueError`` describing the first problem found.  Times are
    normalized to ``HH:MM`` and days that are left out become closed.
    """
    if not isinstance(data, Mapping):
        raise ValueError('visiting hours must be an object keyed by weekday')
    unknown = set(data) - set(WEEKDAYS)
    if unknown:
        raise ValueError(f'unknown weekday: {sorted(unknown)[0]}')

    cleaned: dict[str, dict] = {}
    for day in WEEKDAYS:
        schedule = data.get(day) or {'isAvailable': False, 'slots': []}
        windows = _day_windows(schedule)
        if windows is None:
            raise ValueError(f'{day}: malformed schedule')
        for start, end in windows:
            if start >= end:
                raise ValueError(f'{day}: window must end after it starts')
        ordered = sorted(windows)
        for (_, prev_end), (next_start, _) in zip(ordered, ordered[1:]):
            if next_start < prev_end:
                raise ValueError(f'{day}: windows overlap')
        available = bool(schedule.get('isAvailable', True)) and bool(windows)
        cleaned[day] = {
            'isAvailable': available,
            'slots': [{'start': minutes_to_time(s), 'end': minutes_to_time(e)} for s, e in ordered],
        }
    return cleaned
