from django.conf import settings
from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.permissions import IsAdminRole
from clinic.serializers.billing import AnalyticsQuerySerializer
from clinic.services.analytics import load_financial_analytics


def analytics_cache_key(time_range: str, doctor_id=None) -> str:
    return f"analytics:financial:{time_range}:{doctor_id or 'all'}"


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def financial_analytics(request):
    """Financial analytics snapshot for ``?timeRange=`` (cached, 5 min by default).

    ``data`` is null when billing data could not be loaded.
    """
    s = AnalyticsQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    time_range = s.validated_data['timeRange']
    doctor_id = s.validated_data.get('doctorId')

    ck = analytics_cache_key(time_range, doctor_id)
    cached = cache.get(ck)
    if cached:
        return Response(cached)
    snapshot = load_financial_analytics(time_range, doctor_id=doctor_id)
    payload = {'ok': True, 'data': snapshot}
    if snapshot is not None:
        cache.set(ck, payload, settings.CLINIC_ANALYTICS_CACHE_SECONDS)
    return Response(payload)
