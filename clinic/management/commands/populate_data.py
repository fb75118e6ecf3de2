"""
Management command to populate the database with demo data.
"""
import datetime as dt
import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.models import Appointment, AppointmentSlot, BillingRecord, DoctorProfile, PatientProfile, User
from clinic.services.time_slots import compute_available_slots

DEMO_PASSWORD = 'Demo@12345'

DOCTORS = [
    ('asha', 'Asha', 'Menon', 'Cardiology', 'MD, DM', Decimal('800')),
    ('ravi', 'Ravi', 'Kumar', 'Orthopedics', 'MS (Ortho)', Decimal('600')),
    ('neha', 'Neha', 'Sharma', 'Dermatology', 'MD', Decimal('500')),
    ('vikram', 'Vikram', 'Rao', 'General Medicine', 'MBBS, MD', Decimal('400')),
]

COMPLAINTS = [
    'Fever and cough for three days', 'Chest pain on exertion', 'Back pain', 'Skin problem with itching',
    'Headache and cold', 'Follow-up for diabetes', 'High blood pressure', 'Ear pain', 'Allergy',
]


class Command(BaseCommand):
    help = 'Populate database with demo doctors, patients, appointments and bills'

    def add_arguments(self, parser):
        parser.add_argument('--patients', type=int, default=20)
        parser.add_argument('--days', type=int, default=365, help='spread past appointments over N days')
        parser.add_argument('--seed', type=int, default=None)

    def handle(self, *args, **options):
        rng = random.Random(options['seed'])
        self.stdout.write('Creating demo data...')

        self.create_staff()
        doctors = self.create_doctors()
        patients = self.create_patients(options['patients'])
        created = self.create_appointments(rng, doctors, patients, options['days'])

        self.stdout.write(self.style.SUCCESS(
            f'Demo data ready: {len(doctors)} doctors, {len(patients)} patients, {created} appointments'
        ))

    def _user(self, username, role, **fields):
        user, created = User.objects.get_or_create(username=username, defaults={'role': role, **fields})
        if created:
            user.set_password(DEMO_PASSWORD)
            user.save()
        return user

    def create_staff(self):
        self._user('admin', 'admin', first_name='Hospital', last_name='Admin', is_staff=True)
        self._user('reception', 'receptionist', first_name='Front', last_name='Desk')

    def create_doctors(self):
        doctors = []
        for username, first, last, specialization, qualification, fee in DOCTORS:
            user = self._user(f'dr_{username}', 'doctor', first_name=first, last_name=last)
            profile, _ = DoctorProfile.objects.get_or_create(user=user, defaults={
                'specialization': specialization,
                'qualification': qualification,
                'experience': f'{len(username) + 5} years',
                'consultation_fee': fee,
                'status': DoctorProfile.STATUS_ACTIVE,
                'approved_at': timezone.now(),
            })
            doctors.append(profile)
        return doctors

    def create_patients(self, count):
        patients = []
        for i in range(1, count + 1):
            user = self._user(f'patient{i}', 'patient', first_name=f'Patient{i}', last_name='Demo')
            PatientProfile.objects.get_or_create(user=user, defaults={'patient_code': f'P{i:05d}'})
            patients.append(user)
        return patients

    def create_appointments(self, rng, doctors, patients, days):
        """Past appointments (completed or cancelled) with bills, a few upcoming ones."""
        now = timezone.now()
        today = timezone.localdate()
        created = 0
        for offset in range(days, -8, -3):
            day = today - timedelta(days=offset)
            doctor = rng.choice(doctors)
            # past days: ignore "now" so that every visiting hour counts
            locks = AppointmentSlot.objects.filter(doctor=doctor, appointment_date=day)
            free = compute_available_slots(doctor, day, locks,
                                           now=now if offset <= 0 else now - timedelta(days=days + 1))
            if not free:
                continue
            time = rng.choice(free)
            patient = rng.choice(patients)
            created_at = timezone.make_aware(dt.datetime.combine(day, dt.time(8))) - timedelta(days=2)
            past = offset > 0
            status = Appointment.STATUS_CONFIRMED
            if past:
                status = Appointment.STATUS_CANCELLED if rng.random() < 0.1 else Appointment.STATUS_COMPLETED
            paid = past and status == Appointment.STATUS_COMPLETED and rng.random() < 0.85
            method = rng.choice(['upi', 'card', 'cash']) if paid else ''
            appointment = Appointment.objects.create(
                patient=patient, doctor=doctor, appointment_date=day, appointment_time=time, status=status,
                chief_complaint=rng.choice(COMPLAINTS), payment_amount=doctor.consultation_fee,
                payment_status='paid' if paid else 'pending', payment_method=method,
                paid_at=created_at + timedelta(days=2) if paid else None, created_at=created_at,
            )
            if status != Appointment.STATUS_CANCELLED:
                AppointmentSlot.objects.create(doctor=doctor, appointment_date=day, appointment_time=time,
                                               appointment=appointment)
            BillingRecord.objects.create(
                record_type=BillingRecord.TYPE_APPOINTMENT, appointment=appointment, patient=patient,
                doctor=doctor, doctor_name=doctor.name, specialization=doctor.specialization,
                consultation_fee=doctor.consultation_fee, total_amount=doctor.consultation_fee,
                status=(BillingRecord.STATUS_VOID if status == Appointment.STATUS_CANCELLED
                        else BillingRecord.STATUS_PAID if paid else BillingRecord.STATUS_PENDING),
                payment_method=method,
                generated_at=created_at, paid_at=created_at + timedelta(days=2) if paid else None,
            )
            created += 1
        return created
