"""Custom DRF permissions for the incentive API."""
from rest_framework.permissions import SAFE_METHODS, BasePermission


def is_admin_or_manager(user) -> bool:
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    return getattr(user, "role", None) in ("ADMIN", "MANAGER")


class IsAdminOrManager(BasePermission):
    message = "Action reservee aux administrateurs et gestionnaires."

    def has_permission(self, request, view):
        return is_admin_or_manager(request.user)


class IsAdminOrManagerOrReadOnly(BasePermission):
    """Any authenticated employee may read; writes need a manager."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return is_admin_or_manager(request.user)
