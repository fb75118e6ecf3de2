from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from clinic.models import DoctorProfile, User

ALL_WEEK = {
    day: {'isAvailable': True, 'slots': [{'start': '09:00', 'end': '17:00'}]}
    for day in ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
}


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttles and analytics share the cache
    cache.clear()
    yield
    cache.clear()


def make_doctor(username='dr_house', *, status=DoctorProfile.STATUS_ACTIVE, fee='500', **fields):
    user = User.objects.create_user(username=username, password='P@ssw0rd1', role='doctor',
                                    first_name='Greg', last_name=username.title())
    defaults = {
        'specialization': 'Cardiology',
        'consultation_fee': Decimal(fee),
        'status': status,
        'visiting_hours': ALL_WEEK,
        'slot_duration': 30,
    }
    defaults.update(fields)
    return DoctorProfile.objects.create(user=user, **defaults)


@pytest.fixture
def doctor(db):
    return make_doctor()


@pytest.fixture
def patient(db):
    return User.objects.create_user(username='pat1', password='P@ssw0rd1', role='patient', first_name='Pat')


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='P@ssw0rd1', role='admin')


@pytest.fixture
def next_week():
    return timezone.localdate() + timedelta(days=7)
