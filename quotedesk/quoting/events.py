"""Events raised by quote operations for an external notifier."""
import enum
from dataclasses import dataclass
from typing import Optional


class NotificationType(enum.Enum):
    QUOTE_CREATED = 'quote_created'
    QUOTE_APPROVED = 'quote_approved'
    QUOTE_REJECTED = 'quote_rejected'
    PROJECT_CREATED = 'project_created'
    GENERAL = 'general'
    ISSUE = 'issue'


@dataclass(frozen=True)
class NotificationEvent:
    """
    Something users should hear about.

    ``link_url`` defaults to the quote page; ``recipient_id`` adds the acting
    user to the quote creator and the admins.
    """
    type: str
    quote_id: Optional[int]
    message: str
    title: str = ''
    priority: str = 'normal'
    entity_type: str = 'quote'
    entity_id: Optional[int] = None
    link_url: Optional[str] = None
    recipient_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {'type': self.type, 'quoteId': self.quote_id, 'message': self.message}
