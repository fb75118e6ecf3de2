"""
Django admin registrations for the clinic models.
"""

from django.contrib import admin

from .models import (
    User,
    DoctorProfile,
    PatientProfile,
    Appointment,
    AppointmentSlot,
    BillingRecord,
    AuditEvent,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'specialization', 'consultation_fee', 'status', 'slot_duration')
    list_filter = ('status', 'specialization')
    search_fields = ('user__username', 'user__first_name', 'user__last_name', 'specialization')


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'patient_code', 'gender', 'blood_group')
    search_fields = ('user__username', 'user__first_name', 'patient_code')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'appointment_date', 'appointment_time', 'status', 'payment_status')
    list_filter = ('status', 'payment_status', 'appointment_date')
    search_fields = ('id', 'patient__username', 'doctor__user__username')


@admin.register(AppointmentSlot)
class AppointmentSlotAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'appointment_date', 'appointment_time', 'appointment')
    list_filter = ('appointment_date',)


@admin.register(BillingRecord)
class BillingRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'record_type', 'patient', 'doctor_name', 'total_amount', 'status', 'generated_at')
    list_filter = ('status', 'record_type', 'payment_method')
    search_fields = ('id', 'patient__username', 'doctor_name')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
