"""
Permission decorators for role-based access control.
Extends require_principal with tenant membership and role checks.
"""

from functools import wraps
from flask import g

from tenantkit.exceptions import AuthenticationError, PermissionDeniedError


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('owner')
        @require_role('owner', 'admin')

    Must be used AFTER require_principal. Without arguments any tenant
    member passes.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            context = g.get('session_context')
            if context is None:
                raise AuthenticationError()

            profile = context.require_profile()
            if allowed_roles and profile.role not in allowed_roles:
                raise PermissionDeniedError("You do not have permission to access this resource")

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def admin_or_owner(f):
    """Shortcut for @require_role('owner', 'admin')."""
    return require_role('owner', 'admin')(f)
