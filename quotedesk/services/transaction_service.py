"""Transaction service - income and expense entries recorded against projects."""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from quotedesk.exceptions import BusinessLogicError, NotFoundError, ValidationError
from quotedesk.models import (
    Project, ProjectTransaction, TaxInvoiceStatus, TransactionStatus, TransactionType,
)
from quotedesk.quoting.events import NotificationEvent, NotificationType
from quotedesk.services import notification_service
from quotedesk.utils.number_format import MONEY_PLACES, format_krw, to_decimal

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    'status', 'tax_invoice_status', 'notes', 'partner_name', 'item_name', 'amount', 'due_date',
})


def _parse_choice(enum_class, value, field: str) -> str:
    try:
        return enum_class(str(value).strip().lower()).value
    except ValueError:
        allowed = ', '.join(e.value for e in enum_class)
        raise ValidationError(f'Unknown {field}: {value}. Expected one of: {allowed}', field=field)


def parse_type(value) -> str:
    return _parse_choice(TransactionType, value, 'type')


def parse_status(value) -> str:
    return _parse_choice(TransactionStatus, value, 'status')


def parse_tax_invoice_status(value) -> str:
    return _parse_choice(TaxInvoiceStatus, value, 'tax_invoice_status')


def _required_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required', field=field)
    return value.strip()


def _amount(value) -> Decimal:
    amount = to_decimal(value, 'amount', places=MONEY_PLACES)
    if amount <= 0:
        raise ValidationError('amount must be greater than zero', field='amount')
    return amount


def _type_label(transaction_type: str) -> str:
    return 'income' if transaction_type == TransactionType.INCOME.value else 'expense'


def create_transaction(session: Session, project_id: int, type: str, partner_name: str,
                       item_name: str, amount, due_date: Optional[date] = None,
                       notes: Optional[str] = None, created_by: Optional[int] = None) -> ProjectTransaction:
    """
    Record a pending income or expense against a project.

    Raises:
        NotFoundError: if the project does not exist.
        ValidationError: if a field is missing or the amount is not positive.
    """
    transaction_type = parse_type(type)
    partner_name = _required_text(partner_name, 'partner_name')
    item_name = _required_text(item_name, 'item_name')
    amount = _amount(amount)

    try:
        project = session.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError(f'Project {project_id} not found.')

        transaction = ProjectTransaction(
            project_id=project.id,
            type=transaction_type,
            partner_name=partner_name,
            item_name=item_name,
            amount=amount,
            due_date=due_date,
            status=TransactionStatus.PENDING.value,
            tax_invoice_status=TaxInvoiceStatus.NOT_ISSUED.value,
            notes=notes,
            created_by=created_by,
        )
        session.add(transaction)
        session.commit()
    except NotFoundError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    logger.info(f"Transaction {transaction.id} ({transaction_type}, {amount}) added to project {project_id}")

    notification_service.emit(session, NotificationEvent(
        type=NotificationType.GENERAL.value,
        quote_id=project.quote_id,
        title='New transaction',
        message=f'New {_type_label(transaction_type)} transaction registered: {item_name} ({format_krw(amount)})',
        entity_type='transaction',
        entity_id=transaction.id,
        link_url=f'/projects/{project_id}',
        recipient_id=created_by,
    ))
    return transaction


def get_transaction(session: Session, transaction_id: int) -> ProjectTransaction:
    transaction = session.query(ProjectTransaction).filter(ProjectTransaction.id == transaction_id).first()
    if not transaction:
        raise NotFoundError(f'Transaction {transaction_id} not found.')
    return transaction


def list_transactions(session: Session, project_id: Optional[int] = None, status: Optional[str] = None,
                      type: Optional[str] = None, due_date_from: Optional[date] = None,
                      due_date_to: Optional[date] = None) -> List[ProjectTransaction]:
    """
    List transactions, newest first.

    A due date range leaves out transactions without a due date.
    """
    query = session.query(ProjectTransaction)

    if project_id is not None:
        query = query.filter(ProjectTransaction.project_id == project_id)
    if status:
        query = query.filter(ProjectTransaction.status == parse_status(status))
    if type:
        query = query.filter(ProjectTransaction.type == parse_type(type))
    if due_date_from:
        query = query.filter(ProjectTransaction.due_date >= due_date_from)
    if due_date_to:
        query = query.filter(ProjectTransaction.due_date <= due_date_to)

    return query.order_by(ProjectTransaction.created_at.desc(), ProjectTransaction.id.desc()).all()


def update_transaction(session: Session, transaction_id: int, changes: Dict[str, Any],
                       actor_id: Optional[int] = None) -> ProjectTransaction:
    """
    Update a transaction. A status change notifies the project's people;
    moving to ``issue`` raises an issue notification.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

    values = {}
    for key, value in changes.items():
        if key == 'status':
            values[key] = parse_status(value)
        elif key == 'tax_invoice_status':
            values[key] = parse_tax_invoice_status(value)
        elif key == 'amount':
            values[key] = _amount(value)
        elif key in ('partner_name', 'item_name'):
            values[key] = _required_text(value, key)
        elif key == 'due_date':
            if value is not None and not isinstance(value, date):
                raise ValidationError('due_date must be a date', field='due_date')
            values[key] = value
        else:
            if value is not None and not isinstance(value, str):
                raise ValidationError(f'{key} must be a string', field=key)
            values[key] = value

    transaction = get_transaction(session, transaction_id)
    previous_status = transaction.status

    try:
        for key, value in values.items():
            setattr(transaction, key, value)
        session.commit()
    except Exception:
        session.rollback()
        raise

    if transaction.status != previous_status:
        logger.info(f"Transaction {transaction_id} moved from {previous_status} to {transaction.status}")
        is_issue = transaction.status == TransactionStatus.ISSUE.value
        notification_service.emit(session, NotificationEvent(
            type=NotificationType.ISSUE.value if is_issue else NotificationType.GENERAL.value,
            quote_id=transaction.project.quote_id,
            title='Transaction issue' if is_issue else 'Transaction updated',
            message=f'Transaction "{transaction.item_name}" is now {transaction.status.replace("_", " ")}.',
            priority='high' if is_issue else 'normal',
            entity_type='transaction',
            entity_id=transaction.id,
            link_url=f'/projects/{transaction.project_id}',
            recipient_id=actor_id,
        ))
    return transaction


def delete_transaction(session: Session, transaction_id: int) -> None:
    """Delete a transaction. Completed transactions are kept."""
    transaction = get_transaction(session, transaction_id)
    if transaction.status == TransactionStatus.COMPLETED.value:
        raise BusinessLogicError('Completed transactions cannot be deleted.')

    try:
        session.delete(transaction)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Transaction {transaction_id} deleted")
