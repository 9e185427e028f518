"""Notifications blueprint - in-app notification list (JSON API)."""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.services import notification_service
from quotedesk.utils.request_parsing import parse_bool, parse_int

notifications_bp = Blueprint('notifications', __name__, url_prefix='/notifications')


@notifications_bp.route('/')
@require_login
def list_notifications():
    session = get_session()
    notifications = notification_service.list_notifications(
        session, g.user.id,
        unread_only=parse_bool(request.args.get('unread')),
        limit=parse_int(request.args.get('limit'), 'limit') or 50,
    )
    return jsonify({
        'status': 'ok',
        'unread_count': notification_service.unread_count(session, g.user.id),
        'notifications': [
            {
                'id': n.id,
                'type': n.type,
                'title': n.title,
                'message': n.message,
                'entity_type': n.entity_type,
                'entity_id': n.entity_id,
                'link_url': n.link_url,
                'priority': n.priority,
                'is_read': n.is_read,
                'created_at': n.created_at.isoformat() if n.created_at else None,
            }
            for n in notifications
        ],
    })


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@require_login
def mark_read(notification_id):
    notification_service.mark_read(get_session(), notification_id, g.user.id)
    return jsonify({'status': 'ok'})


@notifications_bp.route('/read-all', methods=['POST'])
@require_login
def mark_all_read():
    count = notification_service.mark_all_read(get_session(), g.user.id)
    return jsonify({'status': 'ok', 'updated': count})
