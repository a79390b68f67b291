"""Decorators for the API blueprints."""

from functools import wraps

from flask import g, session

from slipstream.errors import ForbiddenError, UnauthorizedError


def login_required(f=None, admin_required=False):
    """Reject the request if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(admin_required=True)
    def admin_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session or not g.get("user"):
                raise UnauthorizedError()
            if admin_required and not session.get("is_admin"):
                raise ForbiddenError()
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
