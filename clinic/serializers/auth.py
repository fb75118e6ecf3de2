from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    """Credentials only; any ``role`` sent by the client is ignored."""
    username = serializers.CharField(max_length=150, error_messages={'blank': 'Username is required'})
    password = serializers.CharField(max_length=128, trim_whitespace=False,
                                     error_messages={'blank': 'Password is required'})
