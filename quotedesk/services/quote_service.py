"""Quote service for creating, editing, copying and reviewing project quotes."""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from quotedesk.exceptions import BusinessLogicError, NotFoundError
from quotedesk.models import Customer, Quote
from quotedesk.quoting.assembly import QuoteAssembler, build_groups, export_groups
from quotedesk.quoting.calculator import QuoteCalculation, calculate_tree, parse_vat_type
from quotedesk.quoting.events import NotificationEvent, NotificationType
from quotedesk.quoting.snapshot import DEFAULT_COST_RATIO
from quotedesk.quoting.status import QuoteStatus, parse_status
from quotedesk.quoting.structure import QuoteTree
from quotedesk.services import notification_service
from quotedesk.services.repository import SqlRepository
from quotedesk.services.template_service import get_template_data
from quotedesk.utils.number_format import MONEY_PLACES, RATE_PLACES, to_decimal

logger = logging.getLogger(__name__)


def _customer_snapshot(session: Session, customer_id, customer_name_snapshot=None) -> str:
    """Customer name frozen on the quote; an explicit name wins over the record."""
    if customer_id is None:
        return (customer_name_snapshot or '').strip()
    customer = session.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError(f'Customer {customer_id} not found.')
    return (customer_name_snapshot or '').strip() or customer.name


def _emit_events(session: Session, events: List[NotificationEvent]) -> None:
    for event in events:
        notification_service.emit(session, event)


def create_quote(session: Session, project_title: str, customer_id: Optional[int] = None,
                 customer_name_snapshot: Optional[str] = None, issue_date: Optional[date] = None,
                 valid_days: int = 30, agency_fee_rate=Decimal('0.15'), discount_amount=0,
                 vat_type: str = 'exclusive', notes: Optional[str] = None,
                 created_by: Optional[int] = None, template_id: Optional[int] = None) -> QuoteTree:
    """
    Create and persist a new draft quote, optionally filled from a template.

    Returns:
        The saved QuoteTree (version 1).
    """
    issue_date = issue_date or date.today()
    tree = QuoteTree(
        issue_date=issue_date,
        valid_until=issue_date + timedelta(days=int(valid_days)) if valid_days else None,
        vat_type=parse_vat_type(vat_type),
        discount_amount=to_decimal(discount_amount, 'discount_amount', default=Decimal('0'), places=MONEY_PLACES),
        agency_fee_rate=to_decimal(agency_fee_rate, 'agency_fee_rate', places=RATE_PLACES),
        notes=notes,
        created_by=created_by,
    )
    assembler = QuoteAssembler(tree)
    assembler.update_header(project_title=project_title)
    tree.customer_id = customer_id
    tree.customer_name_snapshot = _customer_snapshot(session, customer_id, customer_name_snapshot)

    if template_id is not None:
        assembler.apply_template(get_template_data(session, template_id))

    repository = SqlRepository(session)
    repository.save_quote(tree)
    logger.info(f"Quote {tree.quote_number} created")

    notification_service.emit(session, NotificationEvent(
        type=NotificationType.QUOTE_CREATED.value,
        quote_id=tree.quote_id,
        title='New quote',
        message=f'Quote "{tree.project_title}" ({tree.quote_number}) was created.',
        entity_id=tree.quote_id,
    ))
    return tree


def get_quote(session: Session, quote_id: int) -> Tuple[QuoteTree, QuoteCalculation]:
    tree = SqlRepository(session).load_quote(quote_id)
    return tree, calculate_tree(tree)


def list_quotes(session: Session, status: Optional[str] = None, customer_id: Optional[int] = None,
                date_from: Optional[date] = None, date_to: Optional[date] = None,
                amount_min=None, amount_max=None, search: Optional[str] = None) -> List[Quote]:
    """List quotes, newest first, filtered by the given criteria."""
    query = session.query(Quote)

    if status:
        query = query.filter(Quote.status == parse_status(status))
    if customer_id is not None:
        query = query.filter(Quote.customer_id == customer_id)
    if date_from:
        query = query.filter(Quote.issue_date >= date_from)
    if date_to:
        query = query.filter(Quote.issue_date <= date_to)
    if amount_min not in (None, ''):
        query = query.filter(Quote.total_amount >= to_decimal(amount_min, 'amount_min'))
    if amount_max not in (None, ''):
        query = query.filter(Quote.total_amount <= to_decimal(amount_max, 'amount_max'))
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(
            Quote.project_title.ilike(pattern),
            Quote.quote_number.ilike(pattern),
            Quote.customer_name_snapshot.ilike(pattern),
        ))

    return query.order_by(Quote.issue_date.desc(), Quote.id.desc()).all()


def edit_quote(session: Session, quote_id: int, expected_version: Optional[int],
               mutate: Callable[[QuoteAssembler], Any],
               default_cost_ratio: Optional[Decimal] = DEFAULT_COST_RATIO) -> Tuple[QuoteTree, Any]:
    """
    Load a quote, apply ``mutate`` to its assembler and save it.

    The save compares ``expected_version`` (the version the editor started
    from; None means the version just loaded) with the stored one.

    Returns:
        (saved tree, value returned by ``mutate``)

    Raises:
        ConcurrentModificationError: if the quote changed since ``expected_version``.
    """
    repository = SqlRepository(session)
    tree = repository.load_quote(quote_id)
    assembler = QuoteAssembler(tree, repository=repository, default_cost_ratio=default_cost_ratio)

    result = mutate(assembler)

    if assembler.dirty:
        repository.save_quote(tree, expected_version)
        _emit_events(session, assembler.events)
    return tree, result


def update_quote_header(session: Session, quote_id: int, expected_version: Optional[int],
                        changes: Dict[str, Any]) -> QuoteTree:
    """
    Update header fields of a quote.

    ``customer_id`` and ``customer_name_snapshot`` are resolved against the
    customer table: a new customer refreshes the frozen name unless an
    explicit name is given, and an unknown customer is rejected before
    anything is saved.

    Raises:
        NotFoundError: if the customer does not exist.
        ValidationError: if a header value is invalid.
    """
    changes = dict(changes)
    customer_changes = {
        key: changes.pop(key) for key in ('customer_id', 'customer_name_snapshot') if key in changes
    }

    def mutate(assembler: QuoteAssembler):
        if customer_changes:
            customer_id = customer_changes.get('customer_id', assembler.tree.customer_id)
            assembler.set_customer(customer_id, _customer_snapshot(
                session, customer_id, customer_changes.get('customer_name_snapshot')
            ))
        if changes:
            assembler.update_header(**changes)

    tree, _ = edit_quote(session, quote_id, expected_version, mutate)
    return tree


def apply_template_to_quote(session: Session, quote_id: int, template_id: int,
                            expected_version: Optional[int] = None) -> QuoteTree:
    template_data = get_template_data(session, template_id)
    tree, _ = edit_quote(session, quote_id, expected_version,
                         lambda assembler: assembler.apply_template(template_data))
    return tree


def change_quote_status(session: Session, quote_id: int, target: str,
                        expected_version: Optional[int] = None, actor_id: Optional[int] = None,
                        reason: Optional[str] = None) -> QuoteTree:
    """
    Move a quote through the review workflow.

    Approval and rejection notifications are stored after the status change
    is committed; a notification failure never rolls the status back.
    """
    tree, _ = edit_quote(
        session, quote_id, expected_version,
        lambda assembler: assembler.change_status(target, actor_id=actor_id, reason=reason),
    )
    logger.info(f"Quote {tree.quote_number} moved to {tree.status}")
    return tree


def copy_quote(session: Session, source_id: int, project_title: str,
               customer_id: Optional[int] = None, customer_name_snapshot: Optional[str] = None,
               copy_structure_only: bool = False, created_by: Optional[int] = None) -> QuoteTree:
    """
    Create a new draft quote with the structure of an existing one.

    With ``copy_structure_only`` every detail line keeps its name, unit and
    prices but its quantity is reset to 0.
    """
    source = SqlRepository(session).load_quote(source_id)

    groups = build_groups(export_groups(source))
    if copy_structure_only:
        for group in groups.values():
            for item in group.items.values():
                for detail in item.details.values():
                    detail.quantity = Decimal('0')

    valid_days = (source.valid_until - source.issue_date).days if source.valid_until else 0
    if customer_id is None and not customer_name_snapshot:
        customer_id = source.customer_id
        customer_name_snapshot = source.customer_name_snapshot

    tree = QuoteTree(
        issue_date=date.today(),
        valid_until=date.today() + timedelta(days=valid_days) if valid_days > 0 else None,
        vat_type=source.vat_type,
        discount_amount=source.discount_amount,
        agency_fee_rate=source.agency_fee_rate,
        notes=source.notes,
        created_by=created_by,
        groups=groups,
    )
    QuoteAssembler(tree).update_header(project_title=project_title)
    tree.customer_id = customer_id
    tree.customer_name_snapshot = _customer_snapshot(session, customer_id, customer_name_snapshot)

    SqlRepository(session).save_quote(tree)
    logger.info(f"Quote {source.quote_number} copied to {tree.quote_number}")
    return tree


def delete_quote(session: Session, quote_id: int) -> None:
    """Delete a draft quote. Quotes that entered review are kept."""
    quote = SqlRepository(session).get_quote_row(quote_id)
    if quote.status != QuoteStatus.DRAFT.value:
        raise BusinessLogicError('Only draft quotes can be deleted.')

    try:
        session.delete(quote)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Quote {quote_id} deleted")


def expire_due_quotes(session: Session, today: Optional[date] = None) -> int:
    """Expire every approved quote whose validity date has passed. Returns the count."""
    today = today or date.today()
    due_ids = [
        row.id for row in session.query(Quote.id).filter(
            Quote.status == QuoteStatus.APPROVED.value,
            Quote.valid_until < today
        ).all()
    ]

    expired = 0
    for quote_id in due_ids:
        tree, changed = edit_quote(session, quote_id, None, lambda assembler: assembler.expire(today))
        if changed:
            expired += 1
            logger.info(f"Quote {tree.quote_number} expired (valid until {tree.valid_until})")
    return expired
