"""
Doctor directory, slot availability and schedule management.

Slots are computed on every request from the doctor's visiting hours,
blocked dates and the slot locks of that day, so the picker always shows
the current state.  Booking re-checks inside its transaction.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from ..models import AppointmentSlot, DoctorProfile
from ..permissions import IsAdminRole, can_manage_doctor
from ..serializers.appointments import SlotQuerySerializer
from ..serializers.doctors import (
    BlockedDateSerializer,
    DoctorListQuerySerializer,
    FeeSerializer,
    RejectDoctorSerializer,
    VisitingHoursSerializer,
)
from ..services import doctors as doctor_svc
from ..services.blocked_dates import blocked_date_reason
from ..services.time_slots import compute_available_slots, format_time_display, get_slot_duration


def _get_doctor(doctor_id: int) -> DoctorProfile:
    return get_object_or_404(DoctorProfile.objects.select_related('user'), pk=doctor_id)


def _ensure_can_manage(request, doctor: DoctorProfile) -> None:
    if not can_manage_doctor(request.user, doctor):
        raise PermissionDenied('You cannot manage this doctor')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_list(request):
    """List doctors. Only admins see pending and inactive profiles.

    Query params:
      - q: name, username or specialization contains
      - status: active|pending|inactive (admin only)
      - specialization: exact match, case-insensitive
    """
    s = DoctorListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    doctor_status = vd.get('status')
    if request.user.role != 'admin':
        doctor_status = DoctorProfile.STATUS_ACTIVE
    qs = doctor_svc.list_doctors(q=vd.get('q'), status=doctor_status, specialization=vd.get('specialization'))
    return Response({'ok': True, 'data': [doctor_svc.doctor_to_dict(d) for d in qs]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_slots(request, doctor_id: int):
    """Bookable slots of one doctor on ``?date=YYYY-MM-DD``."""
    doctor = _get_doctor(doctor_id)
    s = SlotQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    day = s.validated_data['date']
    slots = []
    if doctor.status == DoctorProfile.STATUS_ACTIVE:
        locks = AppointmentSlot.objects.filter(doctor=doctor, appointment_date=day)
        slots = compute_available_slots(doctor, day, list(locks))
    return Response({'ok': True, 'data': {
        'doctorId': doctor.id,
        'date': day.isoformat(),
        'slotDuration': get_slot_duration(doctor),
        'blockedReason': blocked_date_reason(day, doctor.blocked_dates),
        'slots': slots,
        'labels': [format_time_display(slot) for slot in slots],
    }})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def approve_doctor(request, doctor_id: int):
    doctor = doctor_svc.approve_doctor(_get_doctor(doctor_id), actor=request.user)
    return Response({'ok': True, 'data': doctor_svc.doctor_to_dict(doctor)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def reject_doctor(request, doctor_id: int):
    s = RejectDoctorSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = doctor_svc.reject_doctor(_get_doctor(doctor_id), reason=s.validated_data.get('reason', ''),
                                      actor=request.user)
    return Response({'ok': True, 'data': doctor_svc.doctor_to_dict(doctor)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def update_fee(request, doctor_id: int):
    s = FeeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = doctor_svc.update_fee(_get_doctor(doctor_id), s.validated_data['consultationFee'], actor=request.user)
    return Response({'ok': True, 'data': doctor_svc.doctor_to_dict(doctor)})


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def blocked_dates(request, doctor_id: int):
    """GET lists, POST adds ``{date, reason}``, DELETE removes ``?date=``."""
    doctor = _get_doctor(doctor_id)
    _ensure_can_manage(request, doctor)

    if request.method == 'GET':
        return Response({'ok': True, 'data': doctor.blocked_dates or []})

    if request.method == 'POST':
        s = BlockedDateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        entry = doctor_svc.add_blocked_date(doctor, s.validated_data['date'],
                                            reason=s.validated_data.get('reason', ''), actor=request.user)
        return Response({'ok': True, 'data': entry}, status=status.HTTP_201_CREATED)

    day = request.query_params.get('date') or request.data.get('date')
    if not day:
        raise ValidationError({'date': 'This field is required.'})
    if not doctor_svc.remove_blocked_date(doctor, day, actor=request.user):
        return Response({'ok': False, 'error': {'code': 'not_found', 'message': f'{day} is not blocked'}},
                        status=status.HTTP_404_NOT_FOUND)
    return Response({'ok': True})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def visiting_hours(request, doctor_id: int):
    doctor = _get_doctor(doctor_id)
    _ensure_can_manage(request, doctor)
    s = VisitingHoursSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = doctor_svc.update_visiting_hours(
        doctor, s.validated_data['visitingHours'],
        slot_duration=s.validated_data.get('slotDuration'), actor=request.user,
    )
    return Response({'ok': True, 'data': doctor_svc.doctor_to_dict(doctor)})
