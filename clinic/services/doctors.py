"""
Doctor management: listing, approval, fees, blocked dates and visiting hours.
"""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from clinic.models import DoctorProfile, User
from clinic.services.audit import log_action
from clinic.services.blocked_dates import DEFAULT_BLOCK_REASON, normalize_blocked_date
from clinic.services.sanitize import plain_text
from clinic.services.time_slots import (
    WEEKDAYS,
    get_availability_days,
    get_visiting_hours,
    validate_visiting_hours,
    visiting_hours_text,
)

logger = logging.getLogger(__name__)


class DoctorError(Exception):
    status_code = 400
    code = 'doctor_error'


def doctor_to_dict(doctor: DoctorProfile) -> dict:
    hours = get_visiting_hours(doctor)
    week = hours if isinstance(hours, dict) else {}
    return {
        'id': doctor.id,
        'userId': doctor.user_id,
        'name': doctor.name,
        'email': doctor.user.email,
        'phone': doctor.user.phone,
        'specialization': doctor.specialization,
        'qualification': doctor.qualification,
        'experience': doctor.experience,
        'consultationFee': float(doctor.consultation_fee),
        'status': doctor.status,
        'slotDuration': doctor.slot_duration,
        'visitingHours': hours,
        'availableDays': get_availability_days(hours),
        'visitingHoursText': {day: visiting_hours_text(week.get(day)) for day in WEEKDAYS},
        'blockedDates': doctor.blocked_dates or [],
        'approvedAt': doctor.approved_at.isoformat() if doctor.approved_at else None,
    }


def list_doctors(*, q: Optional[str] = None, status: Optional[str] = None,
                 specialization: Optional[str] = None) -> QuerySet:
    qs = DoctorProfile.objects.select_related('user')
    if q:
        qs = qs.filter(
            Q(user__first_name__icontains=q) | Q(user__last_name__icontains=q)
            | Q(user__username__icontains=q) | Q(specialization__icontains=q)
        )
    if status:
        qs = qs.filter(status=status)
    if specialization:
        qs = qs.filter(specialization__iexact=specialization)
    return qs.order_by('user__first_name', 'id')


def approve_doctor(doctor: DoctorProfile, *, actor: Optional[User] = None) -> DoctorProfile:
    doctor.status = DoctorProfile.STATUS_ACTIVE
    doctor.approved_at = timezone.now()
    doctor.rejection_reason = ''
    doctor.save(update_fields=['status', 'approved_at', 'rejection_reason', 'updated_at'])
    log_action(user=actor, action='doctor_approve', object_type='doctor', object_id=doctor.id)
    logger.info("doctor %s approved", doctor.id)
    return doctor


def reject_doctor(doctor: DoctorProfile, *, reason: str = '', actor: Optional[User] = None) -> DoctorProfile:
    doctor.status = DoctorProfile.STATUS_INACTIVE
    doctor.rejection_reason = plain_text(reason)
    doctor.save(update_fields=['status', 'rejection_reason', 'updated_at'])
    log_action(user=actor, action='doctor_reject', object_type='doctor', object_id=doctor.id,
               detail={'reason': doctor.rejection_reason})
    logger.info("doctor %s rejected", doctor.id)
    return doctor


def update_fee(doctor: DoctorProfile, fee: Any, *, actor: Optional[User] = None) -> DoctorProfile:
    try:
        amount = Decimal(str(fee))
    except (InvalidOperation, TypeError, ValueError):
        raise DoctorError('Consultation fee must be a number') from None
    if not amount.is_finite() or amount < 0:
        raise DoctorError('Consultation fee must be zero or positive')
    old = doctor.consultation_fee
    doctor.consultation_fee = amount.quantize(Decimal('0.01'))
    doctor.save(update_fields=['consultation_fee', 'updated_at'])
    log_action(user=actor, action='doctor_fee', object_type='doctor', object_id=doctor.id,
               detail={'from': float(old), 'to': float(doctor.consultation_fee)})
    return doctor


def add_blocked_date(doctor: DoctorProfile, on_date: Any, *, reason: str = '',
                     actor: Optional[User] = None) -> dict:
    """Block a whole day; stored as ``{"date", "reason", "createdAt"}``."""
    day = normalize_blocked_date(on_date)
    try:
        dt.date.fromisoformat(day)
    except ValueError:
        raise DoctorError('Blocked date must be YYYY-MM-DD') from None

    entry = {
        'date': day,
        'reason': plain_text(reason, 255) or DEFAULT_BLOCK_REASON,
        'createdAt': timezone.now().isoformat(),
    }
    with transaction.atomic():
        doctor = DoctorProfile.objects.select_for_update().get(pk=doctor.pk)
        existing = doctor.blocked_dates if isinstance(doctor.blocked_dates, list) else []
        if any(normalize_blocked_date(e) == day for e in existing):
            raise DoctorError(f'{day} is already blocked')
        doctor.blocked_dates = [*existing, entry]
        doctor.save(update_fields=['blocked_dates', 'updated_at'])
        log_action(user=actor, action='doctor_block_date', object_type='doctor', object_id=doctor.id,
                   detail={'date': day})
    return entry


def remove_blocked_date(doctor: DoctorProfile, on_date: Any, *, actor: Optional[User] = None) -> bool:
    """Drop every entry for the day, whatever shape it was stored in."""
    day = normalize_blocked_date(on_date)
    with transaction.atomic():
        doctor = DoctorProfile.objects.select_for_update().get(pk=doctor.pk)
        existing = doctor.blocked_dates if isinstance(doctor.blocked_dates, list) else []
        kept = [e for e in existing if normalize_blocked_date(e) != day]
        if len(kept) == len(existing):
            return False
        doctor.blocked_dates = kept
        doctor.save(update_fields=['blocked_dates', 'updated_at'])
        log_action(user=actor, action='doctor_unblock_date', object_type='doctor', object_id=doctor.id,
                   detail={'date': day})
    return True


def update_visiting_hours(doctor: DoctorProfile, data: Any, *, slot_duration: Any = None,
                          actor: Optional[User] = None) -> DoctorProfile:
    try:
        cleaned = validate_visiting_hours(data)
    except ValueError as e:
        raise DoctorError(str(e)) from None
    fields = ['visiting_hours', 'updated_at']
    doctor.visiting_hours = cleaned
    if slot_duration is not None:
        try:
            minutes = int(slot_duration)
        except (TypeError, ValueError):
            minutes = 0
        if not 5 <= minutes <= 240:
            raise DoctorError('Slot duration must be between 5 and 240 minutes')
        doctor.slot_duration = minutes
        fields.append('slot_duration')
    doctor.save(update_fields=fields)
    log_action(user=actor, action='doctor_visiting_hours', object_type='doctor', object_id=doctor.id)
    return doctor
