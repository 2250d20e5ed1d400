"""
Accounts permissions

Role checks shared by the user and organization endpoints.
"""
from rest_framework import permissions


def _is_admin(user) -> bool:
    return bool(user and user.is_authenticated and getattr(user, 'is_admin', False))


class IsAdminRole(permissions.BasePermission):
    """Only users whose role is ADMIN."""

    message = 'Admin role required.'

    def has_permission(self, request, view):
        return _is_admin(request.user)


class IsAdminOrSelf(permissions.BasePermission):
    """Admins reach any user object; everybody else only their own."""

    def has_object_permission(self, request, view, obj):
        return _is_admin(request.user) or obj.pk == request.user.pk
