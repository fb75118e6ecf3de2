from rest_framework import serializers


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class CheckSlotQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    time = serializers.CharField(max_length=16)


class BookAppointmentSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    time = serializers.CharField(max_length=16)
    chiefComplaint = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    # staff booking on behalf of a patient
    patientId = serializers.IntegerField(min_value=1, required=False)


class RescheduleSerializer(serializers.Serializer):
    date = serializers.DateField()
    time = serializers.CharField(max_length=16)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
