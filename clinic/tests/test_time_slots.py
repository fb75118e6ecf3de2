import datetime as dt

import pytest
from django.utils import timezone

from clinic.services.time_slots import (
    compute_available_slots,
    format_time_display,
    generate_time_slots,
    get_availability_days,
    is_slot_in_past,
    normalize_time,
    validate_visiting_hours,
    visiting_hours_text,
)

MONDAY = dt.date(2030, 1, 7)
SUNDAY = dt.date(2030, 1, 6)
EARLIER = timezone.make_aware(dt.datetime(2029, 12, 1, 8, 0))


def morning_doctor(**extra):
    doctor = {
        'id': 7,
        'visitingHours': {
            'monday': {'isAvailable': True, 'slots': [{'start': '09:00', 'end': '12:00'}]},
            'sunday': {'isAvailable': False, 'slots': []},
        },
        'slotDuration': 30,
        'blockedDates': [],
    }
    doctor.update(extra)
    return doctor


def at(day, hour, minute):
    return timezone.make_aware(dt.datetime.combine(day, dt.time(hour, minute)))


@pytest.mark.parametrize('raw, expected', [
    ('2:30 PM', '14:30'),
    ('02-30pm', '14:30'),
    ('12:00 AM', '00:00'),
    ('12:15 pm', '12:15'),
    ('9:5', '09:05'),
    ('17:00', '17:00'),
    ('garbage', 'GARBAGE'),
    (None, ''),
])
def test_normalize_time(raw, expected):
    assert normalize_time(raw) == expected


def test_format_time_display():
    assert format_time_display('14:30') == '2:30 PM'
    assert format_time_display('00:05') == '12:05 AM'


def test_future_day_lists_every_window_slot():
    slots = compute_available_slots(morning_doctor(), MONDAY, [], now=EARLIER)
    assert slots == ['09:00', '09:30', '10:00', '10:30', '11:00', '11:30']


def test_today_drops_slots_at_or_before_now():
    doctor = morning_doctor()
    assert compute_available_slots(doctor, MONDAY, [], now=at(MONDAY, 10, 15)) == ['10:30', '11:00', '11:30']
    assert compute_available_slots(doctor, MONDAY, [], now=at(MONDAY, 10, 30)) == ['11:00', '11:30']


def test_booked_slot_is_excluded_until_cancelled():
    doctor = morning_doctor()
    booked = [{'doctorId': 7, 'appointmentDate': '2030-01-07', 'appointmentTime': '10:00', 'status': 'confirmed'}]
    assert compute_available_slots(doctor, MONDAY, booked, now=EARLIER) == ['09:00', '09:30', '10:30', '11:00', '11:30']

    cancelled = [dict(booked[0], status='cancelled')]
    assert '10:00' in compute_available_slots(doctor, MONDAY, cancelled, now=EARLIER)


def test_other_doctors_and_days_do_not_block():
    doctor = morning_doctor()
    existing = [
        {'doctorId': 8, 'appointmentDate': '2030-01-07', 'appointmentTime': '10:00', 'status': 'confirmed'},
        {'doctorId': 7, 'appointmentDate': '2030-01-08', 'appointmentTime': '10:00', 'status': 'confirmed'},
    ]
    assert len(compute_available_slots(doctor, MONDAY, existing, now=EARLIER)) == 6


def test_booking_occupies_its_whole_duration():
    # a legacy 09:15 booking overlaps the 09:30 slot but not 09:00
    existing = [{'appointmentDate': '2030-01-07', 'appointmentTime': '9:15 AM', 'status': 'confirmed'}]
    slots = compute_available_slots(morning_doctor(), MONDAY, existing, now=EARLIER)
    assert '09:00' in slots
    assert '09:30' not in slots


def test_blocked_date_returns_nothing():
    doctor = morning_doctor(blockedDates=[{'date': '2030-01-07', 'reason': 'Conference'}])
    assert compute_available_slots(doctor, MONDAY, [], now=EARLIER) == []


def test_corrupt_blocked_entries_are_ignored():
    doctor = morning_doctor(blockedDates=[{'seconds': 1e20}, {'seconds': float('nan')}, 'junk'])
    assert compute_available_slots(doctor, MONDAY, [], now=EARLIER) == ['09:00', '09:30', '10:00', '10:30', '11:00', '11:30']


def test_closed_and_missing_days_return_nothing():
    doctor = morning_doctor()
    assert compute_available_slots(doctor, SUNDAY, [], now=EARLIER) == []
    assert compute_available_slots(doctor, MONDAY + dt.timedelta(days=1), [], now=EARLIER) == []


@pytest.mark.parametrize('monday', [
    'nine to five',
    {'isAvailable': True, 'slots': [{'start': '09:00'}]},
    {'isAvailable': True, 'slots': 'morning'},
    {'isAvailable': True, 'slots': [{'start': 'soon', 'end': '12:00'}]},
])
def test_malformed_schedule_returns_nothing(monday):
    doctor = morning_doctor(visitingHours={'monday': monday})
    assert compute_available_slots(doctor, MONDAY, [], now=EARLIER) == []


def test_invalid_date_returns_nothing():
    assert compute_available_slots(morning_doctor(), 'not-a-date', [], now=EARLIER) == []


def test_default_hours_apply_without_schedule():
    doctor = {'id': 1, 'slotDuration': 15}
    slots = compute_available_slots(doctor, MONDAY, [], now=EARLIER)
    assert slots[0] == '09:00' and slots[-1] == '16:45'
    assert '13:00' not in slots
    assert len(slots) == 28
    assert compute_available_slots(doctor, SUNDAY, [], now=EARLIER) == []


def test_generate_time_slots_merges_windows():
    day = {'isAvailable': True, 'slots': [{'start': '14:00', 'end': '15:00'}, {'start': '09:00', 'end': '10:00'}]}
    assert generate_time_slots(day, 30) == ['09:00', '09:30', '14:00', '14:30']
    assert generate_time_slots({'start': '09:00', 'end': '10:00'}, 30) == ['09:00', '09:30']
    assert generate_time_slots(day, 0) == []


def test_is_slot_in_past():
    assert is_slot_in_past('10:00', MONDAY, at(MONDAY, 10, 0))
    assert not is_slot_in_past('10:01', MONDAY, at(MONDAY, 10, 0))
    assert is_slot_in_past('bogus', MONDAY, at(MONDAY, 10, 0))


def test_availability_summary():
    hours = morning_doctor()['visitingHours']
    assert get_availability_days(hours) == ['Mon']
    assert visiting_hours_text(hours['monday']) == '9:00 AM - 12:00 PM'
    assert visiting_hours_text(hours['sunday']) == 'Closed'


def test_validate_visiting_hours_cleans_and_fills_week():
    cleaned = validate_visiting_hours({'monday': {'isAvailable': True, 'slots': [{'start': '9:00 AM', 'end': '1:00 PM'}]}})
    assert cleaned['monday'] == {'isAvailable': True, 'slots': [{'start': '09:00', 'end': '13:00'}]}
    assert cleaned['sunday'] == {'isAvailable': False, 'slots': []}
    assert len(cleaned) == 7


@pytest.mark.parametrize('data', [
    {'funday': {'isAvailable': True, 'slots': []}},
    {'monday': {'isAvailable': True, 'slots': [{'start': '12:00', 'end': '09:00'}]}},
    {'monday': {'isAvailable': True, 'slots': [{'start': '09:00', 'end': '12:00'}, {'start': '11:00', 'end': '13:00'}]}},
    {'monday': 'all day'},
    ['monday'],
])
def test_validate_visiting_hours_rejects_bad_input(data):
    with pytest.raises(ValueError):
        validate_visiting_hours(data)
