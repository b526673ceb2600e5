"""
Surveillance permissions for API endpoints.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices
from apps.authz.permissions import get_user_roles


class SurveillancePermission(permissions.BasePermission):
    """
    Permission for surveillance plan endpoints based on role.

    - Admin: Full access (read, write, delete)
    - Pharmacist: Read, create, record results, transitions (no delete)
    - Assistant: Read only
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)

        if request.method in permissions.SAFE_METHODS:
            allowed_roles = {RoleChoices.ADMIN, RoleChoices.PHARMACIST, RoleChoices.ASSISTANT}
            return bool(user_roles & allowed_roles)

        if request.method in ['POST', 'PATCH', 'PUT']:
            allowed_roles = {RoleChoices.ADMIN, RoleChoices.PHARMACIST}
            return bool(user_roles & allowed_roles)

        if request.method == 'DELETE':
            return RoleChoices.ADMIN in user_roles

        return False

    def has_object_permission(self, request, view, obj):
        return self.has_permission(request, view)
