"""
Financial analytics for the admin dashboard.

:func:`compute_analytics` is a pure recomputation over billing records
and appointments in their API dict shapes (see
:mod:`clinic.services.billing`).  It is cheap at the data sizes a single
hospital produces, so the dashboard simply recomputes it for every time
range change; :func:`load_financial_analytics` fetches the records and
the view caches the result for a few minutes.

Appointments that already have a billing record are counted once, through
the billing record.
"""
from __future__ import annotations

import datetime as dt
import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from clinic.models import Appointment, BillingRecord

logger = logging.getLogger(__name__)

AnalyticsSnapshot = Dict[str, Any]

TIME_RANGES: dict[str, Optional[int]] = {
    '7days': 7,
    '30days': 30,
    '3months': 90,
    '6months': 180,
    '1year': 365,
    'all': None,
}
DEFAULT_TIME_RANGE = '1year'

MONTH_ABBR = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')
SEASONS = ('Winter', 'Spring', 'Summer', 'Fall')

TREND_MONTHS = 12
FORECAST_MONTHS = 6
FORECAST_MIN_MONTHS = 3
ANOMALY_THRESHOLD = 20
SEASON_NEUTRAL_BAND = 5
TOP_DOCTORS = 10
TOP_TRANSACTIONS = 10
TOP_OUTSTANDING = 20


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def _pct(value: float) -> float:
    return round_half_up(value, 1)


def _parse_moment(value: Any) -> Optional[dt.datetime]:
    """Aware local datetime for an ISO string/date/datetime, else None."""
    if value is None or value == '':
        return None
    if isinstance(value, dt.datetime):
        moment = value
    elif isinstance(value, dt.date):
        moment = dt.datetime.combine(value, dt.time.min)
    elif isinstance(value, str):
        try:
            moment = parse_datetime(value)
            if moment is None:
                day = parse_date(value[:10])
                moment = dt.datetime.combine(day, dt.time.min) if day else None
        except ValueError:
            moment = None
        if moment is None:
            return None
    else:
        return None
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return timezone.localtime(moment)


def _amount(value: Any) -> float:
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def month_bounds(now: dt.datetime, months_back: int) -> tuple[dt.datetime, dt.datetime]:
    """``[start, end)`` of the calendar month ``months_back`` before ``now``'s month."""
    index = now.year * 12 + (now.month - 1) - months_back
    year, month = divmod(index, 12)
    start = timezone.make_aware(dt.datetime(year, month + 1, 1))
    nyear, nmonth = divmod(index + 1, 12)
    end = timezone.make_aware(dt.datetime(nyear, nmonth + 1, 1))
    return start, end


def month_label(moment: dt.datetime) -> str:
    return f'{MONTH_ABBR[moment.month - 1]} {moment.year}'


def season_for_month(month: int) -> str:
    if month == 12 or month <= 2:
        return 'Winter'
    if month <= 5:
        return 'Spring'
    if month <= 8:
        return 'Summer'
    return 'Fall'


# ---------------------------------------------------------------------------
# Forecast, seasons, anomalies
# ---------------------------------------------------------------------------

def linear_forecast(values: List[float]) -> dict:
    """Least-squares line over ``values`` (x = 1..n), evaluated at n + 1.

    Confidence comes from the coefficient of variation of the points:
    under 20% is high, under 40% medium, otherwise low.  Fewer than three
    points with data give the neutral default.
    """
    default = {'predictedRevenue': 0, 'confidence': 'low', 'trend': 'stable', 'percentageChange': 0}
    n = len(values)
    if n < 2 or sum(1 for v in values if v) < FORECAST_MIN_MONTHS:
        return default

    xs = range(1, n + 1)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_x2 = sum(x * x for x in xs)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    predicted = slope * (n + 1) + intercept

    trend = 'increasing' if slope > 0 else 'decreasing' if slope < 0 else 'stable'

    last = values[-1]
    change = (predicted - last) / last * 100 if last > 0 else 0

    mean = sum_y / n
    std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / n)
    cv = std_dev / mean * 100 if mean > 0 else 100
    confidence = 'high' if cv < 20 else 'medium' if cv < 40 else 'low'

    return {
        'predictedRevenue': max(0, round_half_up(predicted)),
        'confidence': confidence,
        'trend': trend,
        'percentageChange': _pct(change),
    }


def seasonal_changes(monthly_trends: List[dict], now: dt.datetime) -> List[dict]:
    """Average revenue per meteorological season over the trend series.

    Each season's trend compares the mean of its earlier half of months
    with its later half; changes within +/-5% count as stable.
    """
    buckets: dict[str, list[float]] = {season: [] for season in SEASONS}
    count = len(monthly_trends)
    for i, point in enumerate(monthly_trends):
        start, _ = month_bounds(now, count - 1 - i)
        buckets[season_for_month(start.month)].append(point['revenue'])

    result = []
    for season, revenues in buckets.items():
        if not revenues:
            continue
        average = sum(revenues) / len(revenues)
        mid = len(revenues) // 2
        first, second = revenues[:mid], revenues[mid:]
        first_avg = sum(first) / len(first) if first else average
        second_avg = sum(second) / len(second) if second else average
        change = (second_avg - first_avg) / first_avg * 100 if first_avg > 0 else 0
        trend = 'up' if change > SEASON_NEUTRAL_BAND else 'down' if change < -SEASON_NEUTRAL_BAND else 'stable'
        result.append({
            'season': season,
            'averageRevenue': round_half_up(average),
            'percentageChange': _pct(change),
            'trend': trend,
        })
    return result


def _anomaly_reason(change: float) -> Optional[str]:
    if change > 50:
        return 'Major growth - possible campaign success or seasonal peak'
    if change > 30:
        return 'Significant growth - new doctor or service launch'
    if change < -50:
        return 'Major decline - investigate operational issues'
    if change < -30:
        return 'Significant decline - check for service disruptions'
    return None


def detect_anomalies(monthly_trends: List[dict]) -> List[dict]:
    """Months whose revenue moved more than 20% against the previous month."""
    anomalies = []
    for previous, current in zip(monthly_trends, monthly_trends[1:]):
        if previous['revenue'] <= 0:
            continue
        change = (current['revenue'] - previous['revenue']) / previous['revenue'] * 100
        if abs(change) <= ANOMALY_THRESHOLD:
            continue
        anomalies.append({
            'month': current['month'],
            'revenue': current['revenue'],
            'type': 'spike' if change > 0 else 'drop',
            'percentageChange': _pct(change),
            'previousMonth': previous['revenue'],
            'reason': _anomaly_reason(change),
        })
    return anomalies


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _in_range(value: Any, cutoff: Optional[dt.datetime]) -> bool:
    if cutoff is None:
        return True
    moment = _parse_moment(value)
    return moment is not None and moment >= cutoff


def _sum(entries: Iterable[dict]) -> float:
    return sum(e['amount'] for e in entries)


def compute_analytics(
    billing_records: Iterable[dict],
    appointments: Iterable[dict],
    time_range: str = DEFAULT_TIME_RANGE,
    *,
    now: Optional[dt.datetime] = None,
    overdue_days: Optional[int] = None,
) -> AnalyticsSnapshot:
    """Build the financial analytics snapshot.

    ``billing_records`` and ``appointments`` use the dict shapes produced
    by :func:`clinic.services.billing.billing_record_to_dict` and
    :func:`clinic.services.billing.appointment_to_dict`.  Unknown time
    ranges fall back to one year.  The result depends only on the
    arguments.
    """
    now = timezone.localtime(now or timezone.now())
    overdue_days = settings.CLINIC_OVERDUE_DAYS if overdue_days is None else overdue_days
    days = TIME_RANGES.get(time_range, TIME_RANGES[DEFAULT_TIME_RANGE])
    cutoff = now - dt.timedelta(days=days) if days is not None else None

    bills = [r for r in billing_records if _in_range(r.get('generatedAt'), cutoff)]
    appts = [a for a in appointments if _in_range(a.get('createdAt'), cutoff)]
    billed_appointments = {str(r['appointmentId']) for r in bills if r.get('appointmentId')}
    direct_appts = [a for a in appts if str(a.get('id')) not in billed_appointments]

    paid: list[dict] = []
    pending: list[dict] = []
    for r in bills:
        amount = _amount(r.get('totalAmount'))
        entry = {
            'id': str(r.get('id')),
            'key': f"billing-{r.get('id')}",
            'amount': amount,
            'method': r.get('paymentMethod'),
            'type': r.get('type') or 'appointment',
            'doctorId': r.get('doctorId') or '',
            'doctorName': r.get('doctorName'),
            'specialization': r.get('specialization') or '',
            'patientName': r.get('patientName'),
            'status': r.get('status'),
        }
        if r.get('status') == 'paid':
            paid.append({**entry, 'date': r.get('paidAt') or r.get('generatedAt')})
        elif r.get('status') == 'pending':
            pending.append({**entry, 'date': r.get('generatedAt')})

    for a in direct_appts:
        amount = _amount(a.get('paymentAmount'))
        if amount <= 0:
            continue
        entry = {
            'id': str(a.get('id')),
            'key': f"appointment-{a.get('id')}",
            'amount': amount,
            'method': a.get('paymentMethod'),
            'type': 'appointment',
            'doctorId': a.get('doctorId') or '',
            'doctorName': a.get('doctorName'),
            'specialization': a.get('doctorSpecialization') or '',
            'patientName': a.get('patientName'),
            'status': a.get('paymentStatus'),
        }
        if a.get('paymentStatus') == 'paid':
            paid.append({**entry, 'date': a.get('paidAt') or a.get('createdAt')})
        elif a.get('paymentStatus') in ('pending', 'unpaid'):
            pending.append({**entry, 'date': a.get('createdAt')})

    for entry in paid + pending:
        entry['moment'] = _parse_moment(entry['date'])

    total_revenue = _sum(paid)
    total_outstanding = _sum(pending)
    thirty_days_ago = now - dt.timedelta(days=30)
    seven_days_ago = now - dt.timedelta(days=7)
    overdue_cutoff = now - dt.timedelta(days=overdue_days)
    overdue = [e for e in pending if e['moment'] is not None and e['moment'] < overdue_cutoff]

    methods: dict[str, dict] = {}
    for e in paid:
        bucket = methods.setdefault(e['method'] or 'unknown', {'count': 0, 'amount': 0.0})
        bucket['count'] += 1
        bucket['amount'] += e['amount']

    by_doctor: dict[str, dict] = {}
    for e in paid:
        if not e['doctorId']:
            continue
        doc = by_doctor.setdefault(str(e['doctorId']), {
            'doctorId': str(e['doctorId']),
            'doctorName': e['doctorName'] or 'Unknown',
            'specialization': '',
            'totalRevenue': 0.0,
            'transactionCount': 0,
        })
        doc['totalRevenue'] += e['amount']
        doc['transactionCount'] += 1
        if not doc['specialization'] and e['specialization']:
            doc['specialization'] = e['specialization']
    doctors = sorted(
        (d for d in by_doctor.values() if d['totalRevenue'] > 0),
        key=lambda d: d['totalRevenue'],
        reverse=True,
    )
    for d in doctors:
        d['specialization'] = d['specialization'] or 'Unknown'
        d['averageTransaction'] = d['totalRevenue'] / d['transactionCount']

    top_doctors = doctors[:TOP_DOCTORS]
    by_specialty: dict[str, dict] = {}
    for d in top_doctors:
        bucket = by_specialty.setdefault(d['specialization'], {'revenue': 0.0, 'count': 0})
        bucket['revenue'] += d['totalRevenue']
        bucket['count'] += d['transactionCount']
    by_specialty = dict(sorted(by_specialty.items(), key=lambda kv: kv[1]['revenue'], reverse=True))

    monthly_trends = []
    for back in range(TREND_MONTHS - 1, -1, -1):
        start, end = month_bounds(now, back)
        month_paid = [e for e in paid if e['moment'] is not None and start <= e['moment'] < end]
        month_pending = [e for e in pending if e['moment'] is not None and start <= e['moment'] < end]
        revenue = _sum(month_paid)
        monthly_trends.append({
            'month': month_label(start),
            'revenue': revenue,
            'transactions': len(month_paid),
            'paid': revenue,
            'pending': _sum(month_pending),
        })

    top_transactions = [
        {
            'id': e['key'],
            'patientName': e['patientName'] or 'Unknown',
            'doctorName': e['doctorName'] or 'Unknown',
            'amount': e['amount'],
            'date': e['date'],
            'status': 'paid',
            'type': e['type'],
        }
        for e in sorted(paid, key=lambda e: e['amount'], reverse=True)[:TOP_TRANSACTIONS]
    ]

    outstanding = []
    for e in pending:
        age = (now - e['moment']).days if e['moment'] is not None else 0
        outstanding.append({
            'id': e['id'],
            'patientName': e['patientName'] or 'Unknown',
            'doctorName': e['doctorName'] or 'Unknown',
            'amount': e['amount'],
            'date': e['date'],
            'daysOverdue': age - overdue_days if age > overdue_days else 0,
            'type': e['type'],
        })
    outstanding.sort(key=lambda o: (o['daysOverdue'] == 0, -o['amount']))

    collected_base = total_revenue + total_outstanding
    return {
        'timeRange': time_range if time_range in TIME_RANGES else DEFAULT_TIME_RANGE,
        'generatedAt': now.isoformat(),
        'currency': settings.CLINIC_CURRENCY,
        'totalRevenue': round_half_up(total_revenue),
        'paidRevenue': round_half_up(total_revenue),
        'pendingRevenue': round_half_up(total_outstanding),
        'monthlyRevenue': round_half_up(_sum(e for e in paid if e['moment'] and e['moment'] >= thirty_days_ago)),
        'weeklyRevenue': round_half_up(_sum(e for e in paid if e['moment'] and e['moment'] >= seven_days_ago)),
        'averageTransactionValue': round_half_up(total_revenue / len(paid)) if paid else 0,
        'totalOutstanding': round_half_up(total_outstanding),
        'outstandingCount': len(pending),
        'overdueCount': len(overdue),
        'overdueAmount': round_half_up(_sum(overdue)),
        'collectionRate': _pct(total_revenue / collected_base * 100) if collected_base > 0 else 0,
        'paymentMethodDistribution': methods,
        'revenueByDoctor': top_doctors,
        'revenueBySpecialty': by_specialty,
        'monthlyTrends': monthly_trends,
        'topTransactions': top_transactions,
        'outstandingPayments': outstanding[:TOP_OUTSTANDING],
        'nextMonthPrediction': linear_forecast([m['revenue'] for m in monthly_trends[-FORECAST_MONTHS:]]),
        'seasonalRevenueChanges': seasonal_changes(monthly_trends, now),
        'revenueAnomalies': detect_anomalies(monthly_trends),
    }


def load_financial_analytics(time_range: str = DEFAULT_TIME_RANGE, *, doctor_id: Optional[int] = None,
                             now: Optional[dt.datetime] = None) -> Optional[AnalyticsSnapshot]:
    """Fetch billing data and compute the snapshot.

    A database failure while fetching is logged and reported as ``None``
    ("no data available"); the dashboard treats it like an empty period.
    """
    from clinic.services.billing import appointment_to_dict, billing_record_to_dict

    try:
        bills = BillingRecord.objects.select_related('patient')
        appts = Appointment.objects.select_related('patient', 'doctor__user')
        if doctor_id is not None:
            bills = bills.filter(doctor_id=doctor_id)
            appts = appts.filter(doctor_id=doctor_id)
        billing_records = [billing_record_to_dict(r) for r in bills]
        appointments = [appointment_to_dict(a) for a in appts]
    except DatabaseError:
        logger.exception("could not load billing data for financial analytics")
        return None

    return compute_analytics(billing_records, appointments, time_range, now=now)
