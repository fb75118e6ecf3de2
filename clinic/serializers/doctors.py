from rest_framework import serializers

from clinic.models import DoctorProfile


class DoctorListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False)
    status = serializers.ChoiceField(choices=[c for c, _ in DoctorProfile.STATUS_CHOICES], required=False)
    specialization = serializers.CharField(max_length=128, required=False)


class RejectDoctorSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class FeeSerializer(serializers.Serializer):
    consultationFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class BlockedDateSerializer(serializers.Serializer):
    date = serializers.DateField()
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class VisitingHoursSerializer(serializers.Serializer):
    visitingHours = serializers.DictField()
    slotDuration = serializers.IntegerField(min_value=5, max_value=240, required=False)
