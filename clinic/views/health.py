"""Liveness probe for the load balancer."""
import logging

from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    """Database round trip plus a cache write; 500 if the database is down."""
    try:
        with connections['default'].cursor() as cursor:
            cursor.execute('SELECT 1')
            db_ok = cursor.fetchone() == (1,)
    except DatabaseError as e:
        logger.exception("health check failed")
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=500)
    cache.set('healthz', 1, 5)
    return JsonResponse({'ok': db_ok, 'db': db_ok, 'cache': cache.get('healthz') == 1})
