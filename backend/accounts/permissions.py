# accounts/permissions.py
from rest_framework.permissions import BasePermission


class _RolePermission(BasePermission):
    """
    Allows access only to authenticated users whose role is ``role``.
    Keeps role check logic centralized.
    """
    role = None

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsPassenger(_RolePermission):
    role = "passenger"


class IsDriver(_RolePermission):
    role = "driver"


class IsTodaAdmin(_RolePermission):
    role = "admin"


class IsDriverOrTodaAdmin(BasePermission):
    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) in ("driver", "admin")
