"""
Permission Decorators — role checks for route protection.

Usage:
    @bp.route("/tasks/mine", methods=["GET"])
    @login_required
    def my_tasks():
        ...

    @bp.route("/edges", methods=["POST"])
    @admin_required
    def create_edge():
        ...
"""

import functools
import logging

from flask import g

from taskflow.models.auth import Role
from taskflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def login_required(f):
    """Decorator: require an authenticated user (401 otherwise)."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)
    return decorated


def require_role(minimum: Role):
    """
    Decorator: require the authenticated user's role to be at least *minimum*.

    Unauthenticated → 401, insufficient role → 403.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")
            if user.role < minimum:
                logger.warning(
                    "User %d denied: role %s below %s on %s",
                    user.id, Role(user.role).name, minimum.name, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Permission denied")
            return f(*args, **kwargs)
        return decorated
    return decorator


admin_required = require_role(Role.ADMIN)
