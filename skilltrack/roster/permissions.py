"""
Role-based access control on top of the token-to-profile mapping
"""
from rest_framework import permissions

from roster.auth import caller_context_from_request
from skilltrack.exceptions import AuthorizationError


class HasActiveProfile(permissions.BasePermission):
    """Authenticated user that maps to an active profile"""
    message = 'An active user profile is required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        try:
            caller_context_from_request(request)
        except AuthorizationError:
            return False
        return True


class IsInstructor(permissions.BasePermission):
    """Only instructors and admins"""
    message = 'Only instructors can perform this action.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        try:
            return caller_context_from_request(request).is_instructor
        except AuthorizationError:
            return False
