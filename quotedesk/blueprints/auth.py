"""
Authentication blueprint.
Handles login, logout and the current-user endpoint for the JSON API.
"""

from flask import Blueprint, jsonify, session, g
from flask_wtf.csrf import generate_csrf
from quotedesk.database import get_session
from quotedesk.exceptions import BusinessLogicError, UnauthorizedError
from quotedesk.middleware import require_login
from quotedesk.models import AppUser
from quotedesk.utils.request_parsing import get_payload, parse_text
import logging

logger = logging.getLogger(__name__)


auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _user_to_dict(user: AppUser) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'full_name': user.full_name,
        'role': user.role,
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Validate email + password and start a session."""
    data = get_payload()
    email = parse_text(data.get('email'), 'email').strip().lower()
    password = parse_text(data.get('password'), 'password')

    if not email or not password:
        raise BusinessLogicError('Email and password are required.')

    user = get_session().query(AppUser).filter_by(email=email).first()
    if not user or not user.active or not user.check_password(password):
        logger.warning(f"Failed login attempt for {email}")
        raise UnauthorizedError('Invalid email or password.')

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    logger.info(f"User {user.id} logged in")
    return jsonify({'status': 'ok', 'user': _user_to_dict(user)})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the session."""
    session.clear()
    return jsonify({'status': 'ok'})


@auth_bp.route('/me')
@require_login
def me():
    return jsonify({'status': 'ok', 'user': _user_to_dict(g.user)})


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token to send back in the X-CSRFToken header on state-changing requests."""
    return jsonify({'status': 'ok', 'csrf_token': generate_csrf()})
