import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from clinic.services.billing import BillingError
from clinic.services.booking import BookingError
from clinic.services.doctors import DoctorError

logger = logging.getLogger(__name__)

DOMAIN_ERRORS = (BookingError, BillingError, DoctorError)


def api_exception_handler(exc, context):
    if isinstance(exc, DOMAIN_ERRORS):
        return Response({'ok': False, 'error': {'code': exc.code, 'message': str(exc)}},
                        status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception("unhandled error in %s", context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', None) or 'api_error'
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
