"""
Permission decorators for role-based access control.
Extends require_auth with role checks.
"""

from functools import wraps
from flask import g

from shopsmart.exceptions import UnauthorizedError
from shopsmart.middleware import require_auth
from shopsmart.models import UserRole


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('admin')
        @require_role('admin', 'customer')

    Authentication failures are reported first (401/403 from require_auth);
    an authenticated user with another role gets 403.
    """
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            user_role = g.get('user_role')
            if not user_role or user_role not in allowed_roles:
                raise UnauthorizedError(f"{' or '.join(r.capitalize() for r in allowed_roles)} access required")
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    """Decorator: only administrators ('Admin access required' otherwise)."""
    return require_role(UserRole.ADMIN.value)(f)
