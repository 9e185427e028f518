"""Notification model for in-app notifications."""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType


class Notification(Base):
    """
    Notification stored for the in-app bell.
    user_id NULL means the notification is shown to every user.
    """

    __tablename__ = 'notification'

    id = Column(IdType, primary_key=True, autoincrement=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=True, index=True)
    type = Column(String(40), nullable=False, index=True)
    title = Column(String(200), nullable=False, default='')
    message = Column(Text, nullable=False)
    entity_type = Column(String(40), nullable=True)
    entity_id = Column(IdType, nullable=True)
    link_url = Column(String(255), nullable=True)
    priority = Column(String(10), nullable=False, default='normal')  # low, normal, high, urgent
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', read={self.is_read})>"
