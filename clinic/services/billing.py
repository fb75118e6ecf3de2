"""
Billing records: listing, payment and the dict shapes used by analytics.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from clinic.models import Appointment, BillingRecord, User
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {choice for choice, _ in BillingRecord.METHOD_CHOICES}


class BillingError(Exception):
    status_code = 400
    code = 'billing_error'


class AlreadyPaid(BillingError):
    status_code = 409
    code = 'already_paid'


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def billing_record_to_dict(record: BillingRecord) -> dict:
    return {
        'id': str(record.id),
        'type': record.record_type,
        'appointmentId': str(record.appointment_id) if record.appointment_id else None,
        'patientId': str(record.patient_id),
        'patientName': record.patient.get_full_name() or record.patient.username,
        'doctorId': str(record.doctor_id) if record.doctor_id else '',
        'doctorName': record.doctor_name or None,
        'specialization': record.specialization or None,
        'roomCharges': float(record.room_charges),
        'doctorFee': float(record.doctor_fee),
        'consultationFee': float(record.consultation_fee),
        'otherServices': record.other_services or [],
        'totalAmount': float(record.total_amount),
        'generatedAt': _iso(record.generated_at),
        'status': record.status,
        'paymentMethod': record.payment_method or None,
        'paidAt': _iso(record.paid_at),
    }


def appointment_to_dict(appointment: Appointment) -> dict:
    doctor = appointment.doctor
    return {
        'id': str(appointment.id),
        'patientId': str(appointment.patient_id),
        'patientName': appointment.patient.get_full_name() or appointment.patient.username,
        'doctorId': str(appointment.doctor_id),
        'doctorName': doctor.name,
        'doctorSpecialization': doctor.specialization,
        'appointmentDate': appointment.appointment_date.isoformat(),
        'appointmentTime': appointment.appointment_time,
        'chiefComplaint': appointment.chief_complaint,
        'status': appointment.status,
        'paymentAmount': float(appointment.payment_amount),
        'paymentStatus': appointment.payment_status,
        'paymentMethod': appointment.payment_method or None,
        'createdAt': _iso(appointment.created_at),
        'paidAt': _iso(appointment.paid_at),
    }


def list_billing_records(*, status: Optional[str] = None, patient: Optional[User] = None,
                         record_type: Optional[str] = None) -> QuerySet:
    qs = BillingRecord.objects.select_related('patient', 'doctor')
    if status:
        qs = qs.filter(status=status)
    if patient is not None:
        qs = qs.filter(patient=patient)
    if record_type:
        qs = qs.filter(record_type=record_type)
    return qs.order_by('-generated_at', '-id')


def pay_billing_record(record: BillingRecord, *, method: str, actor: Optional[User] = None) -> BillingRecord:
    """Settle a pending bill; appointment bills are mirrored onto the appointment."""
    if method not in PAYMENT_METHODS:
        raise BillingError(f'Unsupported payment method: {method}')

    with transaction.atomic():
        record = BillingRecord.objects.select_for_update().get(pk=record.pk)
        if record.status == BillingRecord.STATUS_PAID:
            raise AlreadyPaid('Billing record already paid')
        if record.status != BillingRecord.STATUS_PENDING:
            raise BillingError(f'Cannot pay a {record.status} billing record')

        now = timezone.now()
        record.status = BillingRecord.STATUS_PAID
        record.payment_method = method
        record.paid_at = now
        record.payment_reference = f'BILL-{int(now.timestamp() * 1000)}'
        record.save(update_fields=['status', 'payment_method', 'paid_at', 'payment_reference'])

        if record.appointment_id:
            Appointment.objects.filter(pk=record.appointment_id).update(
                payment_status='paid', payment_method=method, paid_at=now, updated_at=now,
            )
        log_action(user=actor, action='billing_pay', object_type='billing', object_id=record.id,
                   detail={'method': method, 'amount': float(record.total_amount)})

    logger.info("billing record %s paid via %s", record.id, method)
    return record
