from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import BillingRecord
from ..permissions import STAFF_ROLES
from ..serializers.billing import BillingListQuerySerializer, PaySerializer
from ..services.billing import billing_record_to_dict, list_billing_records, pay_billing_record


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def billing_records(request):
    """Staff see every record; patients only their own."""
    user = request.user
    if user.role not in STAFF_ROLES and user.role != 'patient':
        raise PermissionDenied('Billing records are not available for this role')
    s = BillingListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    qs = list_billing_records(
        status=s.validated_data.get('status'),
        record_type=s.validated_data.get('type'),
        patient=user if user.role == 'patient' else None,
    )
    return Response({'ok': True, 'data': [billing_record_to_dict(r) for r in qs]})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def pay(request):
    s = PaySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = request.user
    record = get_object_or_404(BillingRecord, pk=s.validated_data['billingId'])
    if user.role not in STAFF_ROLES and not (user.role == 'patient' and record.patient_id == user.id):
        raise PermissionDenied('You cannot pay this bill')
    record = pay_billing_record(record, method=s.validated_data['method'], actor=user)
    record = BillingRecord.objects.select_related('patient').get(pk=record.pk)
    return Response({'ok': True, 'data': billing_record_to_dict(record)})
