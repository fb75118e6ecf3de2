"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

ADMIN_ROLES = {"admin"}
STAFF_ROLES = {"admin", "receptionist"}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsAdminRole(BasePermission):
    """Allow access only to users with an administrative role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in ADMIN_ROLES


class IsStaffRole(BasePermission):
    """Admins and receptionists."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in STAFF_ROLES


def can_manage_doctor(user, doctor) -> bool:
    """Admins manage every doctor; a doctor manages only their own profile."""
    role = getattr(user, "role", None)
    if role in ADMIN_ROLES:
        return True
    return role == "doctor" and doctor.user_id == getattr(user, "id", None)


def can_access_appointment(user, appointment) -> bool:
    role = getattr(user, "role", None)
    if role in STAFF_ROLES:
        return True
    if role == "doctor":
        return appointment.doctor.user_id == user.id
    return appointment.patient_id == getattr(user, "id", None)
