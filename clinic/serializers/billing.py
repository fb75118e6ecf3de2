from rest_framework import serializers

from clinic.models import BillingRecord
from clinic.services.analytics import DEFAULT_TIME_RANGE, TIME_RANGES


class BillingListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in BillingRecord.STATUS_CHOICES], required=False)
    type = serializers.ChoiceField(choices=[c for c, _ in BillingRecord.TYPE_CHOICES], required=False)


class PaySerializer(serializers.Serializer):
    billingId = serializers.IntegerField(min_value=1)
    method = serializers.ChoiceField(choices=[c for c, _ in BillingRecord.METHOD_CHOICES])


class AnalyticsQuerySerializer(serializers.Serializer):
    timeRange = serializers.ChoiceField(choices=list(TIME_RANGES), required=False, default=DEFAULT_TIME_RANGE)
    doctorId = serializers.IntegerField(min_value=1, required=False)
