"""Middleware for authentication and role checks on the JSON API."""
from functools import wraps
from flask import session, g, jsonify
from quotedesk.database import get_session
from quotedesk.models import AppUser, UserRole


def load_user():
    """
    Load the current user into g (Flask's per-request global).

    Called before each request. Sets g.user and g.user_role when the session
    carries the id of an active user.
    """
    g.user = None
    g.user_role = None

    user_id = session.get('user_id')
    if user_id:
        user = get_session().query(AppUser).filter_by(id=user_id, active=True).first()
        if user:
            g.user = user
            g.user_id = user.id
            g.user_role = user.role
        else:
            # Stale session for a removed or deactivated user
            session.pop('user_id', None)


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Returns a JSON 401 response when there is no authenticated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_role(min_role='member'):
    """
    Decorator: Require minimum role.

    Roles hierarchy: admin > member

    Args:
        min_role: Minimum role required ('admin' or 'member')
    """
    role_hierarchy = {UserRole.ADMIN.value: 2, UserRole.MEMBER.value: 1}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('user') is None:
                return jsonify({'status': 'error', 'message': 'Authentication required'}), 401

            user_role_level = role_hierarchy.get(g.user_role, 0)
            required_level = role_hierarchy.get(min_role, 1)
            if user_role_level < required_level:
                return jsonify({'status': 'error', 'message': f'The {min_role} role is required'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
