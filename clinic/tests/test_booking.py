from datetime import timedelta

import pytest
from django.utils import timezone

from clinic.models import Appointment, AppointmentSlot, AuditEvent, BillingRecord, DoctorProfile
from clinic.services import booking
from clinic.services.billing import AlreadyPaid, BillingError, pay_billing_record
from clinic.services.booking import (
    AppointmentStateError,
    DoctorUnavailable,
    SlotAlreadyBooked,
    SlotUnavailable,
    book_appointment,
    cancel_appointment,
    check_slot,
    reschedule_appointment,
)
from clinic.services.doctors import add_blocked_date, reject_doctor

from .conftest import make_doctor

pytestmark = pytest.mark.django_db


def test_booking_holds_slot_and_creates_pending_bill(doctor, patient, next_week):
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00 AM')

    assert appt.status == Appointment.STATUS_CONFIRMED
    assert appt.appointment_time == '10:00'
    assert AppointmentSlot.objects.filter(doctor=doctor, appointment_date=next_week, appointment_time='10:00').exists()
    bill = BillingRecord.objects.get(appointment=appt)
    assert bill.status == BillingRecord.STATUS_PENDING
    assert bill.total_amount == doctor.consultation_fee
    assert bill.doctor_name == doctor.name
    assert AuditEvent.objects.filter(action='appointment_book', object_id=appt.id).exists()
    assert not check_slot(doctor, next_week, '10:00')


def test_free_doctor_books_without_bill(patient, next_week):
    doctor = make_doctor('dr_free', fee='0')
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='09:00')
    assert not BillingRecord.objects.filter(appointment=appt).exists()


def test_second_booking_of_same_slot_is_rejected(doctor, patient, next_week):
    book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    with pytest.raises(SlotAlreadyBooked):
        book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    assert Appointment.objects.count() == 1


def test_unique_slot_lock_wins_when_precheck_is_bypassed(monkeypatch, doctor, patient, next_week):
    # two requests that both passed the availability check
    monkeypatch.setattr(booking, '_ensure_bookable', lambda *args, **kwargs: None)
    book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    with pytest.raises(SlotAlreadyBooked) as exc:
        book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    assert exc.value.status_code == 409
    assert Appointment.objects.count() == 1
    assert BillingRecord.objects.count() == 1


def test_booking_checks_doctor_and_schedule(patient, next_week):
    pending = make_doctor('dr_pending', status=DoctorProfile.STATUS_PENDING)
    with pytest.raises(DoctorUnavailable):
        book_appointment(patient=patient, doctor=pending, on_date=next_week, time='10:00')

    blocked = make_doctor('dr_away', blocked_dates=[{'date': next_week.isoformat(), 'reason': 'Conference'}])
    with pytest.raises(DoctorUnavailable, match='Conference'):
        book_appointment(patient=patient, doctor=blocked, on_date=next_week, time='10:00')

    closed = make_doctor('dr_closed', visiting_hours={
        day: {'isAvailable': False, 'slots': []}
        for day in ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
    })
    with pytest.raises(DoctorUnavailable, match='no visiting hours'):
        book_appointment(patient=patient, doctor=closed, on_date=next_week, time='10:00')


@pytest.mark.parametrize('time', ['08:30', '10:15', '17:00', 'noon'])
def test_times_outside_the_grid_are_unavailable(doctor, patient, next_week, time):
    with pytest.raises(SlotUnavailable):
        book_appointment(patient=patient, doctor=doctor, on_date=next_week, time=time)


def test_past_slots_cannot_be_booked(doctor, patient):
    yesterday = timezone.localdate() - timedelta(days=1)
    with pytest.raises(SlotUnavailable):
        book_appointment(patient=patient, doctor=doctor, on_date=yesterday, time='10:00')


def test_cancel_releases_slot_and_voids_bill(doctor, patient, next_week):
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='11:00')
    cancel_appointment(appt, actor=patient, reason='<b>Feeling better</b>')

    appt.refresh_from_db()
    assert appt.status == Appointment.STATUS_CANCELLED
    assert appt.cancellation_reason == 'Feeling better'
    assert not AppointmentSlot.objects.filter(appointment=appt).exists()
    assert BillingRecord.objects.get(appointment=appt).status == BillingRecord.STATUS_VOID
    assert check_slot(doctor, next_week, '11:00')

    again = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='11:00')
    assert again.pk != appt.pk

    with pytest.raises(AppointmentStateError):
        cancel_appointment(appt)


def test_free_text_fields_are_stored_without_markup(doctor, patient, next_week):
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00',
                            chief_complaint='<i>Chest pain</i> <a href="x">since Monday</a>')
    assert appt.chief_complaint == 'Chest pain since Monday'

    entry = add_blocked_date(doctor, next_week + timedelta(days=1), reason='<b>Conference</b>')
    assert entry['reason'] == 'Conference'

    rejected = reject_doctor(make_doctor('dr_new'), reason='<em>Licence</em> expired')
    assert rejected.rejection_reason == 'Licence expired'


def test_reschedule_moves_the_lock(doctor, patient, next_week):
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='11:00')
    other = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='12:00')

    moved = reschedule_appointment(appt, on_date=next_week, time='14:30')
    assert moved.appointment_time == '14:30'
    assert check_slot(doctor, next_week, '11:00')
    assert not check_slot(doctor, next_week, '14:30')

    with pytest.raises(SlotAlreadyBooked):
        reschedule_appointment(moved, on_date=next_week, time=other.appointment_time)


def test_slot_change_is_broadcast_after_commit(django_capture_on_commit_callbacks, doctor, patient, next_week):
    with django_capture_on_commit_callbacks() as callbacks:
        book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    assert len(callbacks) == 1


def test_paying_a_bill_sets_paid_at_and_mirrors_appointment(doctor, patient, next_week):
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    bill = BillingRecord.objects.get(appointment=appt)

    paid = pay_billing_record(bill, method='upi', actor=patient)
    assert paid.status == BillingRecord.STATUS_PAID
    assert paid.paid_at is not None
    appt.refresh_from_db()
    assert appt.payment_status == 'paid'
    assert appt.payment_method == 'upi'

    with pytest.raises(AlreadyPaid):
        pay_billing_record(bill, method='cash')


def test_paying_rejects_unknown_method_and_void_bills(doctor, patient, next_week):
    appt = book_appointment(patient=patient, doctor=doctor, on_date=next_week, time='10:00')
    bill = BillingRecord.objects.get(appointment=appt)
    with pytest.raises(BillingError):
        pay_billing_record(bill, method='bitcoin')

    cancel_appointment(appt)
    with pytest.raises(BillingError):
        pay_billing_record(bill, method='cash')


def test_saving_a_paid_bill_always_records_paid_at(patient):
    bill = BillingRecord.objects.create(record_type=BillingRecord.TYPE_ADMISSION, patient=patient,
                                        total_amount=1200, status=BillingRecord.STATUS_PAID)
    assert bill.paid_at is not None
