"""
URL mappings for the clinic API.

Trailing slashes are omitted to match the dashboard client.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view
from .views import analytics, appointments, billing, dashboard, doctors, health


urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    # Doctors
    path('api/doctors', doctors.doctor_list, name='doctor_list'),
    path('api/doctors/<int:doctor_id>/slots', doctors.doctor_slots, name='doctor_slots'),
    path('api/doctors/<int:doctor_id>/approve', doctors.approve_doctor, name='doctor_approve'),
    path('api/doctors/<int:doctor_id>/reject', doctors.reject_doctor, name='doctor_reject'),
    path('api/doctors/<int:doctor_id>/fee', doctors.update_fee, name='doctor_fee'),
    path('api/doctors/<int:doctor_id>/blocked-dates', doctors.blocked_dates, name='doctor_blocked_dates'),
    path('api/doctors/<int:doctor_id>/visiting-hours', doctors.visiting_hours, name='doctor_visiting_hours'),
    # Appointments
    path('api/appointments/check-slot', appointments.check_slot, name='appointment_check_slot'),
    path('api/appointments/book', appointments.book, name='appointment_book'),
    path('api/appointments/<int:appointment_id>/reschedule', appointments.reschedule,
         name='appointment_reschedule'),
    path('api/appointments/<int:appointment_id>/cancel', appointments.cancel, name='appointment_cancel'),
    # Billing
    path('api/billing/records', billing.billing_records, name='billing_records'),
    path('api/billing/pay', billing.pay, name='billing_pay'),
    # Admin
    path('api/admin/analytics/financial', analytics.financial_analytics, name='financial_analytics'),
    path('api/admin/dashboard', dashboard.admin_dashboard, name='admin_dashboard'),
]
