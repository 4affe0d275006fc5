from rest_framework.permissions import BasePermission

from .exceptions import AuthenticationRequired, AuthorizationError


def is_super_admin(user):
    return bool(user and user.is_authenticated and user.role == 'super_admin' and user.is_active)


def is_admin(user):
    return bool(user and user.is_authenticated and user.role in ('admin', 'super_admin') and user.is_active)


def require_role(user, *roles):
    if not user or not user.is_authenticated:
        raise AuthenticationRequired()
    if user.role not in roles or not user.is_active:
        raise AuthorizationError()


class IsSuperAdmin(BasePermission):
    message = 'Not authorized. Only super admins can perform this action.'

    def has_permission(self, request, view):
        return is_super_admin(request.user)
