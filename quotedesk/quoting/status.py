"""Quote status state machine."""
import enum

from quotedesk.exceptions import InvalidStateTransitionError, ValidationError


class QuoteStatus(enum.Enum):
    """Quote status enum."""
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    UNDER_REVIEW = 'under_review'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    EXPIRED = 'expired'


ALLOWED_TRANSITIONS = {
    QuoteStatus.DRAFT.value: {QuoteStatus.SUBMITTED.value},
    QuoteStatus.SUBMITTED.value: {QuoteStatus.UNDER_REVIEW.value},
    QuoteStatus.UNDER_REVIEW.value: {QuoteStatus.APPROVED.value, QuoteStatus.REJECTED.value},
    QuoteStatus.REJECTED.value: {QuoteStatus.DRAFT.value},
    QuoteStatus.APPROVED.value: {QuoteStatus.EXPIRED.value},
    QuoteStatus.EXPIRED.value: set(),
}

# Structure edits are refused in these states
LOCKED_STATUSES = frozenset({QuoteStatus.APPROVED.value, QuoteStatus.EXPIRED.value})


def parse_status(value) -> str:
    """Normalize a status given as enum or string; unknown values are rejected."""
    if isinstance(value, QuoteStatus):
        return value.value
    try:
        return QuoteStatus(str(value).strip().lower()).value
    except ValueError:
        raise ValidationError(f"Unknown quote status '{value}'", field='status')


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(current: str, target: str) -> None:
    """Raise InvalidStateTransitionError unless ``current -> target`` is in the table."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(current, target)


def is_mutable(status: str) -> bool:
    return status not in LOCKED_STATUSES
