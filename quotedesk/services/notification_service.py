"""Notification service - stores quote and project events for the in-app notification list."""
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from quotedesk.exceptions import NotFoundError
from quotedesk.models import Notification, AppUser, Quote, UserRole
from quotedesk.quoting.events import NotificationEvent

logger = logging.getLogger(__name__)


def _recipients(session: Session, event: NotificationEvent) -> List[Optional[int]]:
    """Acting user, quote creator and active admins; None (everyone) when nobody matches."""
    user_ids = set()
    if event.recipient_id is not None:
        user_ids.add(event.recipient_id)
    if event.quote_id is not None:
        created_by = session.query(Quote.created_by).filter(Quote.id == event.quote_id).scalar()
        if created_by:
            user_ids.add(created_by)

    admins = session.query(AppUser.id).filter(
        AppUser.role == UserRole.ADMIN.value,
        AppUser.active == True
    ).all()
    user_ids.update(row.id for row in admins)

    return sorted(user_ids) if user_ids else [None]


def emit(session: Session, event: NotificationEvent) -> List[Notification]:
    """
    Persist a notification for each recipient of the event.

    This function never raises: a failure is logged and an empty list is
    returned, so the operation that produced the event is never undone.
    """
    try:
        link_url = event.link_url
        if link_url is None and event.quote_id is not None:
            link_url = f'/quotes/{event.quote_id}'
        notifications = []
        for user_id in _recipients(session, event):
            notification = Notification(
                user_id=user_id,
                type=event.type,
                title=event.title or event.type.replace('_', ' ').capitalize(),
                message=event.message,
                entity_type=event.entity_type,
                entity_id=event.entity_id if event.entity_id is not None else event.quote_id,
                link_url=link_url,
                priority=event.priority,
            )
            session.add(notification)
            notifications.append(notification)

        session.commit()
        logger.info(f"Notification {event.type} stored for {len(notifications)} recipient(s)")
        return notifications
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to store {event.type} notification for quote {event.quote_id}: {e}")
        return []


def _visible_to(user_id: int):
    return or_(Notification.user_id == user_id, Notification.user_id.is_(None))


def list_notifications(session: Session, user_id: int, unread_only: bool = False,
                       limit: int = 50) -> List[Notification]:
    """Latest notifications for a user (own and broadcast)."""
    query = session.query(Notification).filter(_visible_to(user_id))
    if unread_only:
        query = query.filter(Notification.is_read == False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def unread_count(session: Session, user_id: int) -> int:
    return session.query(Notification).filter(
        _visible_to(user_id),
        Notification.is_read == False
    ).count()


def mark_read(session: Session, notification_id: int, user_id: int) -> Notification:
    notification = session.query(Notification).filter(
        Notification.id == notification_id,
        _visible_to(user_id)
    ).first()
    if not notification:
        raise NotFoundError(f'Notification {notification_id} not found.')

    notification.is_read = True
    session.commit()
    return notification


def mark_all_read(session: Session, user_id: int) -> int:
    """Mark every unread notification of the user as read. Returns how many changed."""
    count = session.query(Notification).filter(
        _visible_to(user_id),
        Notification.is_read == False
    ).update({Notification.is_read: True}, synchronize_session=False)
    session.commit()
    return count
