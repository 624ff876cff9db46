"""
Role-based permissions shared by all MealRoute apps.
"""

from rest_framework import permissions

from .models import UserRole


def HasAnyRole(*roles):
    """
    Build a permission class granting access to users holding any of `roles`.

    Usage: permission_classes = [HasAnyRole(UserRole.SELLER, UserRole.ADMIN)]
    """

    class _HasAnyRole(permissions.BasePermission):
        message = f"Requires one of the roles: {', '.join(roles)}"

        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            return user.is_superuser or user.has_any_role(roles)

    _HasAnyRole.__name__ = f"HasAnyRole_{'_'.join(roles)}"
    return _HasAnyRole


class IsAdmin(permissions.BasePermission):
    """Permission for admin users only."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_admin


IsDeliveryManager = HasAnyRole(UserRole.ADMIN, UserRole.DELIVERY_MANAGER)

IsDeliveryStaff = HasAnyRole(UserRole.ADMIN, UserRole.DELIVERY_MANAGER, UserRole.SELLER)

IsDeliveryExecutive = HasAnyRole(UserRole.DELIVERY_EXECUTIVE)

IsRouteOperator = HasAnyRole(
    UserRole.ADMIN, UserRole.DELIVERY_MANAGER, UserRole.DELIVERY_EXECUTIVE
)
