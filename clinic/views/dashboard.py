"""
Administrative dashboard endpoint.

Headline counts plus appointment trends for the admin and reception
dashboards.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Appointment, BillingRecord, DoctorProfile, User
from ..permissions import IsStaffRole
from ..services.billing import appointment_to_dict
from ..services.dashboard import calculate_all_trends, calculate_revenue, common_conditions


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def admin_dashboard(request):
    today = timezone.localdate()
    appointments = [
        appointment_to_dict(a)
        for a in Appointment.objects.select_related('patient', 'doctor__user')
    ]
    doctors = DoctorProfile.objects.all()
    return Response({'ok': True, 'data': {
        'doctors': {
            'total': doctors.count(),
            'active': doctors.filter(status=DoctorProfile.STATUS_ACTIVE).count(),
            'pending': doctors.filter(status=DoctorProfile.STATUS_PENDING).count(),
        },
        'patients': User.objects.filter(role='patient').count(),
        'appointments': {
            'total': len(appointments),
            'today': sum(1 for a in appointments if a['appointmentDate'] == today.isoformat()),
            'confirmed': sum(1 for a in appointments if a['status'] == Appointment.STATUS_CONFIRMED),
            'completed': sum(1 for a in appointments if a['status'] == Appointment.STATUS_COMPLETED),
            'cancelled': sum(1 for a in appointments if a['status'] == Appointment.STATUS_CANCELLED),
        },
        'pendingBills': BillingRecord.objects.filter(status=BillingRecord.STATUS_PENDING).count(),
        'revenue': {
            'last7Days': calculate_revenue(appointments, 7),
            'last30Days': calculate_revenue(appointments, 30),
        },
        'trends': calculate_all_trends(appointments),
        'commonConditions': common_conditions(appointments),
    }})
