"""
Integration tests for the clinic API.

These exercise the HTTP layer end to end: slot listing, booking
conflicts, schedule management, billing visibility and the admin
analytics and dashboard endpoints.
"""
from datetime import timedelta

from django.core.cache import cache
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Appointment, BillingRecord, DoctorProfile, User
from ..views.analytics import analytics_cache_key
from .conftest import make_doctor


class ClinicAPITests(APITestCase):
    def setUp(self) -> None:
        cache.clear()
        self.admin = User.objects.create_user(username='admin1', password='P@ssw0rd1', role='admin')
        self.reception = User.objects.create_user(username='desk1', password='P@ssw0rd1', role='receptionist')
        self.patient = User.objects.create_user(username='pat1', password='P@ssw0rd1', role='patient')
        self.other_patient = User.objects.create_user(username='pat2', password='P@ssw0rd1', role='patient')
        self.doctor = make_doctor('dr_one')
        self.other_doctor = make_doctor('dr_two')
        self.day = timezone.localdate() + timedelta(days=7)

    def authenticate(self, user: User) -> APIClient:
        """Return an authenticated APIClient for the given user."""
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def book(self, client, time='10:00', **extra):
        payload = {'doctorId': self.doctor.id, 'date': self.day.isoformat(), 'time': time, **extra}
        return client.post('/api/appointments/book', payload, format='json')

    def test_slots_endpoint_lists_free_slots(self):
        client = self.authenticate(self.patient)
        response = client.get(f'/api/doctors/{self.doctor.id}/slots', {'date': self.day.isoformat()})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        slots = response.data['data']['slots']
        self.assertEqual(slots[0], '09:00')
        self.assertEqual(slots[-1], '16:30')

        self.book(client, '10:00')
        response = client.get(f'/api/doctors/{self.doctor.id}/slots', {'date': self.day.isoformat()})
        self.assertNotIn('10:00', response.data['data']['slots'])

    def test_slots_endpoint_requires_a_valid_date(self):
        client = self.authenticate(self.patient)
        response = client.get(f'/api/doctors/{self.doctor.id}/slots', {'date': 'tomorrow'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['ok'])

    def test_patient_books_and_duplicate_gets_409(self):
        client = self.authenticate(self.patient)
        response = self.book(client, chiefComplaint='Fever and cough')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['appointmentTime'], '10:00')
        self.assertEqual(response.data['data']['patientId'], str(self.patient.id))

        response = self.book(self.authenticate(self.other_patient))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'slot_taken')
        self.assertEqual(Appointment.objects.count(), 1)

    def test_check_slot_is_public_and_reports_conflicts(self):
        anon = APIClient()
        params = {'doctorId': self.doctor.id, 'date': self.day.isoformat(), 'time': '10:00'}
        response = anon.get('/api/appointments/check-slot', params)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['available'])

        self.book(self.authenticate(self.patient))
        response = anon.get('/api/appointments/check-slot', params)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_reception_books_for_patient(self):
        client = self.authenticate(self.reception)
        response = self.book(client)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.book(client, patientId=self.patient.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        appt = Appointment.objects.get()
        self.assertEqual(appt.patient, self.patient)
        self.assertEqual(appt.created_by, self.reception)

    def test_doctor_cannot_book(self):
        response = self.book(self.authenticate(self.doctor.user))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_owner_or_staff_can_cancel(self):
        response = self.book(self.authenticate(self.patient))
        appt_id = response.data['data']['id']

        response = self.authenticate(self.other_patient).post(f'/api/appointments/{appt_id}/cancel', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.authenticate(self.patient).post(f'/api/appointments/{appt_id}/cancel',
                                                        {'reason': 'Travel'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'cancelled')

        response = self.authenticate(self.reception).post(f'/api/appointments/{appt_id}/cancel', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_reschedule_endpoint(self):
        response = self.book(self.authenticate(self.patient))
        appt_id = response.data['data']['id']
        response = self.authenticate(self.patient).post(
            f'/api/appointments/{appt_id}/reschedule', {'date': self.day.isoformat(), 'time': '15:00'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['appointmentTime'], '15:00')

    def test_doctor_manages_own_blocked_dates(self):
        client = self.authenticate(self.doctor.user)
        url = f'/api/doctors/{self.doctor.id}/blocked-dates'
        response = client.post(url, {'date': self.day.isoformat(), 'reason': 'Conference'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['date'], self.day.isoformat())

        response = client.post(url, {'date': self.day.isoformat()}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        slots = self.authenticate(self.patient).get(f'/api/doctors/{self.doctor.id}/slots',
                                                    {'date': self.day.isoformat()})
        self.assertEqual(slots.data['data']['slots'], [])
        self.assertEqual(slots.data['data']['blockedReason'], 'Conference')

        other = self.authenticate(self.other_doctor.user).get(url)
        self.assertEqual(other.status_code, status.HTTP_403_FORBIDDEN)

        response = client.delete(f'{url}?date={self.day.isoformat()}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.blocked_dates, [])

    def test_visiting_hours_validation(self):
        client = self.authenticate(self.admin)
        url = f'/api/doctors/{self.doctor.id}/visiting-hours'
        bad = {'visitingHours': {'monday': {'isAvailable': True, 'slots': [{'start': '12:00', 'end': '09:00'}]}}}
        response = client.put(url, bad, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        good = {'visitingHours': {'monday': {'isAvailable': True, 'slots': [{'start': '09:00', 'end': '11:00'}]}},
                'slotDuration': 20}
        response = client.put(url, good, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['availableDays'], ['Mon'])
        self.assertEqual(response.data['data']['slotDuration'], 20)

    def test_admin_approves_and_non_admin_sees_only_active(self):
        pending = make_doctor('dr_new', status=DoctorProfile.STATUS_PENDING)
        ids = [d['id'] for d in self.authenticate(self.patient).get('/api/doctors').data['data']]
        self.assertNotIn(pending.id, ids)

        response = self.authenticate(self.patient).post(f'/api/doctors/{pending.id}/approve')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.authenticate(self.admin).post(f'/api/doctors/{pending.id}/approve')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'active')

        response = self.authenticate(self.admin).post(f'/api/doctors/{pending.id}/fee',
                                                      {'consultationFee': '750.00'}, format='json')
        self.assertEqual(response.data['data']['consultationFee'], 750.0)

    def test_billing_visibility_and_payment(self):
        self.book(self.authenticate(self.patient), '10:00')
        self.book(self.authenticate(self.other_patient), '11:00')

        records = self.authenticate(self.patient).get('/api/billing/records').data['data']
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]['patientId'], str(self.patient.id))
        self.assertEqual(len(self.authenticate(self.reception).get('/api/billing/records').data['data']), 2)

        other_bill = BillingRecord.objects.get(patient=self.other_patient)
        response = self.authenticate(self.patient).post('/api/billing/pay',
                                                        {'billingId': other_bill.id, 'method': 'upi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        own_bill = BillingRecord.objects.get(patient=self.patient)
        response = self.authenticate(self.patient).post('/api/billing/pay',
                                                        {'billingId': own_bill.id, 'method': 'upi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'paid')
        self.assertIsNotNone(response.data['data']['paidAt'])

        response = self.authenticate(self.reception).post('/api/billing/pay',
                                                          {'billingId': own_bill.id, 'method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_financial_analytics_is_admin_only_and_cached(self):
        self.book(self.authenticate(self.patient), '10:00')
        bill = BillingRecord.objects.get()
        self.authenticate(self.patient).post('/api/billing/pay', {'billingId': bill.id, 'method': 'card'},
                                             format='json')

        response = self.authenticate(self.reception).get('/api/admin/analytics/financial')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.authenticate(self.admin).get('/api/admin/analytics/financial', {'timeRange': '30days'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['totalRevenue'], 500)
        self.assertEqual(data['collectionRate'], 100.0)
        self.assertEqual(data['paymentMethodDistribution']['card']['count'], 1)
        self.assertIsNotNone(cache.get(analytics_cache_key('30days')))

        response = self.authenticate(self.admin).get('/api/admin/analytics/financial', {'timeRange': 'decade'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_for_staff(self):
        self.book(self.authenticate(self.patient), '10:00', chiefComplaint='Headache and fever')
        response = self.authenticate(self.reception).get('/api/admin/dashboard')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['appointments']['confirmed'], 1)
        self.assertEqual(data['doctors']['active'], 2)
        self.assertEqual(data['pendingBills'], 1)
        conditions = {c['condition'] for c in data['commonConditions']}
        self.assertEqual(conditions, {'headache', 'fever'})
        self.assertEqual(len(data['trends']['weekly']), 7)

        response = self.authenticate(self.patient).get('/api/admin/dashboard')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_healthz(self):
        response = self.client.get('/healthz')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['ok'])
