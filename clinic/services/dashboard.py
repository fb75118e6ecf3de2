"""
Appointment statistics for the admin dashboard.

Counts appointments per day of the current week, per five-day bucket of
the current month and per month of the current year, plus revenue from
completed visits and the most common complaints.
"""
from __future__ import annotations

import calendar
import datetime as dt
from collections import Counter
from typing import Any, Iterable, Optional

from django.utils import timezone

from .analytics import MONTH_ABBR

WEEKDAY_ABBR = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')

CONDITION_KEYWORDS = (
    'fever', 'cough', 'headache', 'pain', 'cold', 'flu', 'diabetes', 'hypertension',
    'asthma', 'depression', 'anxiety', 'back pain', 'chest pain', 'stomach pain',
    'skin problem', 'allergy', 'infection', 'blood pressure', 'heart', 'lung',
    'kidney', 'liver', 'eye', 'ear', 'nose', 'throat', 'dental', 'mental health',
)
TOP_CONDITIONS = 8


def _today(now: Optional[dt.datetime]) -> dt.date:
    return timezone.localdate(now) if now is not None else timezone.localdate()


def _appointment_day(value: Any) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and value:
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def parse_appointment_dates(appointments: Iterable[dict]) -> list[dt.date]:
    days = (_appointment_day(a.get('appointmentDate')) for a in appointments)
    return [d for d in days if d is not None]


def _count(days: list[dt.date], start: dt.date, end: dt.date) -> int:
    return sum(1 for d in days if start <= d < end)


def weekly_trend(days: list[dt.date], now: Optional[dt.datetime] = None) -> tuple[list[dict], int]:
    """Monday to Sunday of the current week."""
    today = _today(now)
    monday = today - dt.timedelta(days=today.weekday())
    trends = []
    for offset in range(7):
        day = monday + dt.timedelta(days=offset)
        trends.append({
            'label': WEEKDAY_ABBR[offset],
            'fullLabel': f'{WEEKDAY_ABBR[offset]}, {MONTH_ABBR[day.month - 1]} {day.day}',
            'count': _count(days, day, day + dt.timedelta(days=1)),
        })
    return trends, sum(t['count'] for t in trends)


def monthly_trend(days: list[dt.date], now: Optional[dt.datetime] = None) -> tuple[list[dict], int]:
    """Five-day buckets of the current month; the last bucket runs to month end."""
    today = _today(now)
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    buckets = [(1, 5), (6, 10), (11, 15), (16, 20), (21, 25), (26, days_in_month)]
    trends = []
    for first, last in buckets:
        start = dt.date(today.year, today.month, first)
        end = dt.date(today.year, today.month, last) + dt.timedelta(days=1)
        label = f'{first}-{last}'
        trends.append({
            'label': label,
            'fullLabel': f'{label} {MONTH_ABBR[today.month - 1]} {today.year}',
            'count': _count(days, start, end),
        })
    return trends, sum(t['count'] for t in trends)


def yearly_trend(days: list[dt.date], now: Optional[dt.datetime] = None) -> tuple[list[dict], int]:
    year = _today(now).year
    trends = []
    for month in range(1, 13):
        start = dt.date(year, month, 1)
        end = dt.date(year + 1, 1, 1) if month == 12 else dt.date(year, month + 1, 1)
        trends.append({
            'label': MONTH_ABBR[month - 1],
            'fullLabel': f'{calendar.month_name[month]} {year}',
            'count': _count(days, start, end),
        })
    return trends, sum(t['count'] for t in trends)


def calculate_all_trends(appointments: Iterable[dict], now: Optional[dt.datetime] = None) -> dict:
    days = parse_appointment_dates(appointments)
    weekly, weekly_total = weekly_trend(days, now)
    monthly, monthly_total = monthly_trend(days, now)
    yearly, yearly_total = yearly_trend(days, now)
    return {
        'weekly': weekly,
        'monthly': monthly,
        'yearly': yearly,
        'totals': {'weekly': weekly_total, 'monthly': monthly_total, 'yearly': yearly_total},
    }


def calculate_revenue(appointments: Iterable[dict], days: int, now: Optional[dt.datetime] = None) -> float:
    """Payment amounts of completed appointments dated within the last ``days`` days."""
    cutoff = _today(now) - dt.timedelta(days=days)
    total = 0.0
    for a in appointments:
        day = _appointment_day(a.get('appointmentDate'))
        if a.get('status') == 'completed' and day is not None and day >= cutoff:
            total += float(a.get('paymentAmount') or 0)
    return total


def common_conditions(appointments: Iterable[dict]) -> list[dict]:
    """Keyword hits in chief complaints, most frequent first."""
    counts: Counter[str] = Counter()
    for a in appointments:
        complaint = (a.get('chiefComplaint') or '').lower()
        if not complaint:
            continue
        counts.update(keyword for keyword in CONDITION_KEYWORDS if keyword in complaint)
    return [{'condition': c, 'count': n} for c, n in counts.most_common(TOP_CONDITIONS)]
