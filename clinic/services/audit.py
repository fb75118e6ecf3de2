"""
Audit trail for bookings, payments, schedule changes and logins.
"""
from typing import Any, Dict, Optional

from clinic.models import AuditEvent, User


def client_ip(request) -> Optional[str]:
    """First address of ``X-Forwarded-For`` when proxied, else ``REMOTE_ADDR``."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR')


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    # failed logins and system jobs have no acting user
    actor = user if getattr(user, 'pk', None) else None
    return AuditEvent.objects.create(
        user=actor,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail or {},
    )
