"""
Database models for the hospital operations backend.

These models capture the records the admin and receptionist dashboards
work with: users and their roles, doctor and patient profiles,
appointments with their slot locks, and unified billing records.  Field
names follow the JSON shapes the dashboards consume so that the
conversion helpers in :mod:`clinic.services.billing` stay trivial.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """Custom user model with a role.

    Roles mirror the dashboards: 'admin', 'receptionist', 'doctor' and
    'patient'.  Doctor and patient specific fields live on
    :class:`DoctorProfile` and :class:`PatientProfile`.
    """
    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('receptionist', 'Receptionist'),
        ('doctor', 'Doctor'),
        ('patient', 'Patient'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='patient', db_index=True)
    phone = models.CharField(max_length=20, blank=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class DoctorProfile(models.Model):
    """Doctor specific information.

    ``visiting_hours`` maps lowercase weekday names to a day schedule of
    the form ``{"isAvailable": bool, "slots": [{"start": "09:00", "end":
    "13:00"}]}``.  An empty value means the clinic default applies.
    ``blocked_dates`` holds entries in any of the shapes accepted by
    :func:`clinic.services.blocked_dates.normalize_blocked_date`; new
    entries are always written as ``{"date", "reason", "createdAt"}``.
    """
    STATUS_ACTIVE = 'active'
    STATUS_PENDING = 'pending'
    STATUS_INACTIVE = 'inactive'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_PENDING, 'Pending approval'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    specialization = models.CharField(max_length=128, blank=True, db_index=True)
    qualification = models.CharField(max_length=255, blank=True)
    experience = models.CharField(max_length=64, blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    visiting_hours = models.JSONField(default=dict, blank=True)
    slot_duration = models.PositiveIntegerField(default=15, help_text="Slot length in minutes")
    blocked_dates = models.JSONField(default=list, blank=True)
    rejection_reason = models.TextField(blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def name(self) -> str:
        return self.user.get_full_name() or self.user.username

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.specialization or 'general'})"


class PatientProfile(models.Model):
    """Patient demographics kept apart from the login account."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_profile')
    patient_code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    gender = models.CharField(max_length=16, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    blood_group = models.CharField(max_length=8, blank=True)
    address = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def name(self) -> str:
        return self.user.get_full_name() or self.user.username

    def __str__(self) -> str:
        return f"{self.name} ({self.patient_code or self.user_id})"


class Appointment(models.Model):
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('unpaid', 'Unpaid'),
        ('paid', 'Paid'),
        ('refunded', 'Refunded'),
    ]

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='patient_appointments')
    doctor = models.ForeignKey(DoctorProfile, on_delete=models.CASCADE, related_name='appointments')
    appointment_date = models.DateField(db_index=True)
    # Always stored as normalized "HH:MM"
    appointment_time = models.CharField(max_length=5)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CONFIRMED, db_index=True)
    chief_complaint = models.TextField(blank=True)
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=16, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments_created'
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'appointment_date', 'status']),
        ]

    def __str__(self) -> str:
        return f"Appt #{self.pk} d={self.doctor_id} {self.appointment_date} {self.appointment_time} ({self.status})"


class AppointmentSlot(models.Model):
    """Lock row guaranteeing one booking per doctor/date/time.

    A row exists exactly while its appointment holds the slot; cancelling
    or rescheduling deletes it.  The unique constraint turns a concurrent
    double booking into an ``IntegrityError`` inside the booking
    transaction.
    """
    doctor = models.ForeignKey(DoctorProfile, on_delete=models.CASCADE, related_name='slot_locks')
    appointment_date = models.DateField()
    appointment_time = models.CharField(max_length=5)
    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='slot_lock')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'appointment_time'],
                name='uniq_doctor_slot',
            ),
        ]

    def __str__(self) -> str:
        return f"Slot({self.doctor_id}, {self.appointment_date}, {self.appointment_time})"


class BillingRecord(models.Model):
    """Unified invoice covering either an admission or an appointment."""
    TYPE_ADMISSION = 'admission'
    TYPE_APPOINTMENT = 'appointment'
    TYPE_CHOICES = [(TYPE_ADMISSION, 'Admission'), (TYPE_APPOINTMENT, 'Appointment')]

    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_VOID = 'void'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_VOID, 'Void'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    METHOD_CHOICES = [
        ('card', 'Card'),
        ('upi', 'UPI'),
        ('cash', 'Cash'),
        ('wallet', 'Wallet'),
        ('demo', 'Demo'),
    ]

    record_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_APPOINTMENT)
    appointment = models.ForeignKey(
        Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='billing_records'
    )
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='billing_records')
    doctor = models.ForeignKey(
        DoctorProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name='billing_records'
    )
    # Denormalized for reporting; kept even if the doctor is removed
    doctor_name = models.CharField(max_length=255, blank=True)
    specialization = models.CharField(max_length=128, blank=True)
    room_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    doctor_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    consultation_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    other_services = models.JSONField(default=list, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=16, choices=METHOD_CHOICES, blank=True)
    payment_reference = models.CharField(max_length=64, blank=True)
    generated_at = models.DateTimeField(default=timezone.now, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'generated_at']),
        ]

    def save(self, *args, **kwargs):
        # paid records always carry paid_at
        if self.status == self.STATUS_PAID and self.paid_at is None:
            self.paid_at = timezone.now()
            update_fields = kwargs.get('update_fields')
            if update_fields is not None and 'paid_at' not in update_fields:
                kwargs['update_fields'] = [*update_fields, 'paid_at']
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"Bill #{self.pk} {self.record_type} {self.total_amount} ({self.status})"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
