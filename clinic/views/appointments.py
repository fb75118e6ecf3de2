"""
Appointment booking endpoints.

Booking errors raised by :mod:`clinic.services.booking` carry their own
HTTP status and are rendered by the project exception handler; a slot
taken by a concurrent booking comes back as 409.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from ..models import Appointment, DoctorProfile, User
from ..permissions import STAFF_ROLES, can_access_appointment
from ..serializers.appointments import (
    BookAppointmentSerializer,
    CancelSerializer,
    CheckSlotQuerySerializer,
    RescheduleSerializer,
)
from ..services import booking
from ..services.billing import appointment_to_dict
from ..throttles import BookingRateThrottle

BOOKING_ROLES = STAFF_ROLES | {'patient'}


def _get_appointment(request, appointment_id: int) -> Appointment:
    appointment = get_object_or_404(
        Appointment.objects.select_related('patient', 'doctor__user'), pk=appointment_id,
    )
    if not can_access_appointment(request.user, appointment):
        raise PermissionDenied('You cannot change this appointment')
    return appointment


@api_view(['GET'])
@permission_classes([AllowAny])
def check_slot(request):
    """Advisory check used by the booking form; 409 when the slot is held."""
    s = CheckSlotQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    doctor = get_object_or_404(DoctorProfile, pk=vd['doctorId'])
    if not booking.check_slot(doctor, vd['date'], vd['time']):
        raise booking.SlotAlreadyBooked()
    return Response({'ok': True, 'data': {'available': True}})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([BookingRateThrottle])
def book(request):
    """Book a slot. Patients book for themselves; staff pass ``patientId``."""
    user = request.user
    if user.role not in BOOKING_ROLES:
        raise PermissionDenied('Only patients and front desk staff can book appointments')
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    if user.role == 'patient':
        patient = user
    else:
        if not vd.get('patientId'):
            raise ValidationError({'patientId': 'Required when booking on behalf of a patient.'})
        patient = get_object_or_404(User, pk=vd['patientId'], role='patient')

    doctor = get_object_or_404(DoctorProfile.objects.select_related('user'), pk=vd['doctorId'])
    appointment = booking.book_appointment(
        patient=patient,
        doctor=doctor,
        on_date=vd['date'],
        time=vd['time'],
        actor=user,
        chief_complaint=vd.get('chiefComplaint', ''),
    )
    return Response({'ok': True, 'data': appointment_to_dict(appointment)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([BookingRateThrottle])
def reschedule(request, appointment_id: int):
    appointment = _get_appointment(request, appointment_id)
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = booking.reschedule_appointment(
        appointment, on_date=s.validated_data['date'], time=s.validated_data['time'], actor=request.user,
    )
    return Response({'ok': True, 'data': appointment_to_dict(appointment)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel(request, appointment_id: int):
    appointment = _get_appointment(request, appointment_id)
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = booking.cancel_appointment(appointment, actor=request.user,
                                             reason=s.validated_data.get('reason', ''))
    return Response({'ok': True, 'data': appointment_to_dict(appointment)})
