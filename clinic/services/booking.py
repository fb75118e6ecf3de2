"""
Appointment booking, rescheduling and cancellation.

A booking holds an :class:`~clinic.models.AppointmentSlot` row for its
doctor/date/time.  The unique constraint on that table is what prevents
double booking: two receptionists racing for the same slot both pass the
availability check, but only one insert commits and the other surfaces as
:class:`SlotAlreadyBooked`.  :func:`check_slot` remains available as an
advisory pre-check for the booking form.
"""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import IntegrityError, transaction
from django.utils import timezone

from clinic.models import Appointment, AppointmentSlot, BillingRecord, DoctorProfile, User
from clinic.services.audit import log_action
from clinic.services.sanitize import plain_text
from clinic.services.blocked_dates import blocked_date_reason
from clinic.services.time_slots import (
    compute_available_slots,
    is_doctor_available_on,
    normalize_time,
    time_to_minutes,
    weekday_name,
)

logger = logging.getLogger(__name__)

UPDATES_GROUP = "updates"


class BookingError(Exception):
    status_code = 400
    code = 'booking_error'
    default_message = 'Unable to book appointment'

    def __init__(self, message: str = ''):
        super().__init__(message or self.default_message)


class SlotAlreadyBooked(BookingError):
    status_code = 409
    code = 'slot_taken'
    default_message = 'This slot was just booked. Please choose another time.'


class SlotUnavailable(BookingError):
    code = 'slot_unavailable'
    default_message = 'The selected time is not available for this doctor'


class DoctorUnavailable(BookingError):
    code = 'doctor_unavailable'
    default_message = 'Doctor is not accepting appointments'


class AppointmentStateError(BookingError):
    status_code = 409
    code = 'invalid_state'
    default_message = 'Only confirmed appointments can be changed'


def parse_date(value) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise SlotUnavailable('Invalid appointment date') from None


def _parse_time(value) -> str:
    normalized = normalize_time(value)
    if time_to_minutes(normalized) is None:
        raise SlotUnavailable('Invalid appointment time')
    return normalized


def check_slot(doctor: DoctorProfile, on_date, time) -> bool:
    """Advisory check: True when nobody holds the slot right now."""
    return not AppointmentSlot.objects.filter(
        doctor=doctor, appointment_date=parse_date(on_date), appointment_time=_parse_time(time)
    ).exists()


def _ensure_bookable(doctor: DoctorProfile, day: dt.date, time: str, *,
                     now: Optional[dt.datetime] = None,
                     exclude: Optional[Appointment] = None) -> None:
    if doctor.status != DoctorProfile.STATUS_ACTIVE:
        raise DoctorUnavailable()
    reason = blocked_date_reason(day, doctor.blocked_dates)
    if reason:
        raise DoctorUnavailable(f'Doctor unavailable on {day.isoformat()}: {reason}')
    if not is_doctor_available_on(doctor, day):
        raise DoctorUnavailable(f'Doctor has no visiting hours on {weekday_name(day).capitalize()}')

    locks = AppointmentSlot.objects.filter(doctor=doctor, appointment_date=day)
    if exclude is not None:
        locks = locks.exclude(appointment=exclude)
    locks = list(locks)
    if time in compute_available_slots(doctor, day, locks, now=now):
        return
    if any(lock.appointment_time == time for lock in locks):
        raise SlotAlreadyBooked()
    raise SlotUnavailable()


def _broadcast_slots_changed(doctor_id: int, day: dt.date) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {"type": "slots.changed", "doctorId": doctor_id, "date": day.isoformat()}
    async_to_sync(channel_layer.group_send)(UPDATES_GROUP, event)


def _on_commit_broadcast(doctor_id: int, *days: dt.date) -> None:
    for day in set(days):
        transaction.on_commit(lambda day=day: _broadcast_slots_changed(doctor_id, day))


def book_appointment(*, patient: User, doctor: DoctorProfile, on_date, time,
                     actor: Optional[User] = None, chief_complaint: str = '',
                     now: Optional[dt.datetime] = None) -> Appointment:
    """Create a confirmed appointment and its pending consultation bill."""
    day = parse_date(on_date)
    slot_time = _parse_time(time)
    fee = Decimal(doctor.consultation_fee or 0)

    try:
        with transaction.atomic():
            _ensure_bookable(doctor, day, slot_time, now=now)
            appointment = Appointment.objects.create(
                patient=patient,
                doctor=doctor,
                appointment_date=day,
                appointment_time=slot_time,
                status=Appointment.STATUS_CONFIRMED,
                chief_complaint=plain_text(chief_complaint),
                payment_amount=fee,
                payment_status='pending',
                created_by=actor or patient,
            )
            AppointmentSlot.objects.create(
                doctor=doctor, appointment_date=day, appointment_time=slot_time, appointment=appointment,
            )
            if fee > 0:
                BillingRecord.objects.create(
                    record_type=BillingRecord.TYPE_APPOINTMENT,
                    appointment=appointment,
                    patient=patient,
                    doctor=doctor,
                    doctor_name=doctor.name,
                    specialization=doctor.specialization,
                    consultation_fee=fee,
                    total_amount=fee,
                )
            log_action(user=actor or patient, action='appointment_book', object_type='appointment',
                       object_id=appointment.id,
                       detail={'doctorId': doctor.id, 'date': day.isoformat(), 'time': slot_time})
    except IntegrityError:
        logger.warning("slot conflict doctor=%s date=%s time=%s", doctor.id, day, slot_time)
        raise SlotAlreadyBooked() from None

    logger.info("booked appointment %s doctor=%s %s %s", appointment.id, doctor.id, day, slot_time)
    _on_commit_broadcast(doctor.id, day)
    return appointment


def reschedule_appointment(appointment: Appointment, *, on_date, time,
                           actor: Optional[User] = None,
                           now: Optional[dt.datetime] = None) -> Appointment:
    """Move a confirmed appointment to another slot of the same doctor."""
    day = parse_date(on_date)
    slot_time = _parse_time(time)
    old_day = appointment.appointment_date
    old_time = appointment.appointment_time

    try:
        with transaction.atomic():
            appointment = Appointment.objects.select_for_update().select_related('doctor').get(pk=appointment.pk)
            if appointment.status != Appointment.STATUS_CONFIRMED:
                raise AppointmentStateError()
            _ensure_bookable(appointment.doctor, day, slot_time, now=now, exclude=appointment)
            AppointmentSlot.objects.filter(appointment=appointment).delete()
            appointment.appointment_date = day
            appointment.appointment_time = slot_time
            appointment.save(update_fields=['appointment_date', 'appointment_time', 'updated_at'])
            AppointmentSlot.objects.create(
                doctor=appointment.doctor, appointment_date=day, appointment_time=slot_time,
                appointment=appointment,
            )
            log_action(user=actor, action='appointment_reschedule', object_type='appointment',
                       object_id=appointment.id,
                       detail={'from': f'{old_day.isoformat()} {old_time}', 'to': f'{day.isoformat()} {slot_time}'})
    except IntegrityError:
        logger.warning("slot conflict on reschedule appointment=%s date=%s time=%s", appointment.pk, day, slot_time)
        raise SlotAlreadyBooked() from None

    _on_commit_broadcast(appointment.doctor_id, old_day, day)
    return appointment


def cancel_appointment(appointment: Appointment, *, actor: Optional[User] = None, reason: str = '') -> Appointment:
    """Cancel, release the slot and void the unpaid bill."""
    with transaction.atomic():
        appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)
        if appointment.status != Appointment.STATUS_CONFIRMED:
            raise AppointmentStateError()
        appointment.status = Appointment.STATUS_CANCELLED
        appointment.cancelled_at = timezone.now()
        appointment.cancellation_reason = plain_text(reason, 255)
        appointment.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])
        AppointmentSlot.objects.filter(appointment=appointment).delete()
        voided = BillingRecord.objects.filter(
            appointment=appointment, status=BillingRecord.STATUS_PENDING,
        ).update(status=BillingRecord.STATUS_VOID)
        log_action(user=actor, action='appointment_cancel', object_type='appointment', object_id=appointment.id,
                   detail={'reason': appointment.cancellation_reason, 'voidedBills': voided})

    _on_commit_broadcast(appointment.doctor_id, appointment.appointment_date)
    return appointment
