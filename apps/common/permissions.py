"""
Permission classes for order administration
"""
from rest_framework.permissions import BasePermission


class IsStaffUser(BasePermission):
    """Allow access to authenticated staff accounts only"""

    message = 'Admin access required'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_staff)
