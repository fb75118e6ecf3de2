import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.test import RequestFactory

from clinic.models import Appointment, AppointmentSlot, BillingRecord, DoctorProfile, User
from clinic.services.audit import client_ip
from clinic.views.analytics import analytics_cache_key

pytestmark = pytest.mark.django_db


def test_populate_data_creates_consistent_demo_records():
    call_command('populate_data', patients=3, days=30, seed=7)

    assert User.objects.filter(username='admin', role='admin').exists()
    assert User.objects.filter(role='patient').count() == 3
    assert DoctorProfile.objects.filter(status=DoctorProfile.STATUS_ACTIVE).count() == 4
    assert Appointment.objects.exists()

    for appt in Appointment.objects.all():
        bill = BillingRecord.objects.get(appointment=appt)
        has_lock = AppointmentSlot.objects.filter(appointment=appt).exists()
        if appt.status == Appointment.STATUS_CANCELLED:
            assert bill.status == BillingRecord.STATUS_VOID
            assert not has_lock
        else:
            assert has_lock
        if bill.status == BillingRecord.STATUS_PAID:
            assert bill.paid_at is not None


def test_refresh_caches_warms_analytics(doctor):
    call_command('refresh_caches', per_doctor=True)

    for time_range in ('7days', '1year', 'all'):
        assert cache.get(analytics_cache_key(time_range))['ok'] is True
    assert cache.get(analytics_cache_key('30days', doctor.id))['data']['totalRevenue'] == 0


def test_client_ip_prefers_forwarded_header():
    rf = RequestFactory()
    assert client_ip(rf.get('/', REMOTE_ADDR='10.0.0.9')) == '10.0.0.9'
    assert client_ip(rf.get('/', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1')) == '203.0.113.5'
