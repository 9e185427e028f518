"""Project service - converts approved quotes into projects and tracks their money."""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from quotedesk.exceptions import BusinessLogicError, NotFoundError, ValidationError
from quotedesk.models import (
    Project, ProjectStatus, ProjectTransaction, Quote, TransactionStatus, TransactionType,
)
from quotedesk.quoting.calculator import calculate_tree
from quotedesk.quoting.events import NotificationEvent, NotificationType
from quotedesk.quoting.status import QuoteStatus
from quotedesk.services import notification_service
from quotedesk.services.repository import tree_from_quote
from quotedesk.utils.number_format import round_cents

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def parse_project_status(value) -> str:
    try:
        return ProjectStatus(str(value).strip().lower()).value
    except ValueError:
        allowed = ', '.join(s.value for s in ProjectStatus)
        raise ValidationError(f'Unknown project status: {value}. Expected one of: {allowed}', field='status')


def convert_quote_to_project(session: Session, quote_id: int, start_date: Optional[date] = None,
                             end_date: Optional[date] = None, created_by: Optional[int] = None) -> Project:
    """
    Create the project for an approved quote.

    Revenue is the quote's final total and cost its total cost, both
    recalculated from the stored structure.

    Raises:
        NotFoundError: if the quote does not exist.
        BusinessLogicError: if the quote is not approved, was already
            converted, or the dates are inverted.
    """
    if start_date and end_date and end_date < start_date:
        raise BusinessLogicError('Project end date cannot be before its start date.')

    try:
        quote = session.query(Quote).filter(Quote.id == quote_id).with_for_update().first()
        if not quote:
            raise NotFoundError(f'Quote {quote_id} not found.')
        if quote.status != QuoteStatus.APPROVED.value:
            raise BusinessLogicError('Only approved quotes can be converted to a project.')
        if session.query(Project).filter(Project.quote_id == quote.id).first():
            raise BusinessLogicError('This quote was already converted to a project.')

        calculation = calculate_tree(tree_from_quote(quote))

        project = Project(
            quote_id=quote.id,
            name=quote.project_title,
            customer_name=quote.customer_name_snapshot or '',
            total_revenue=round_cents(calculation.final_total),
            total_cost=round_cents(calculation.total_cost),
            start_date=start_date,
            end_date=end_date,
            created_by=created_by,
        )
        session.add(project)
        session.commit()
    except (BusinessLogicError, NotFoundError) as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    logger.info(f"Quote {quote.quote_number} converted to project {project.id}")

    notification_service.emit(session, NotificationEvent(
        type=NotificationType.PROJECT_CREATED.value,
        quote_id=quote.id,
        title='Project created',
        message=f'Project "{project.name}" was created from quote {quote.quote_number}.',
        entity_type='project',
        entity_id=project.id,
        link_url=f'/projects/{project.id}',
    ))
    return project


def list_projects(session: Session, status: Optional[str] = None) -> List[Project]:
    query = session.query(Project)
    if status:
        query = query.filter(Project.status == parse_project_status(status))
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def get_project(session: Session, project_id: int) -> Project:
    project = session.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFoundError(f'Project {project_id} not found.')
    return project


def update_project_status(session: Session, project_id: int, status: str) -> Project:
    """Move a project to active, completed, on_hold or canceled."""
    status = parse_project_status(status)
    project = get_project(session, project_id)

    try:
        project.status = status
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Project {project_id} moved to {status}")
    return project


def planned_profit(project: Project) -> Dict[str, Decimal]:
    """
    Profit planned by the quote the project came from.

    profit_margin is the percentage of revenue (0 when there is no revenue).
    """
    revenue = Decimal(project.total_revenue or 0)
    cost = Decimal(project.total_cost or 0)
    net_profit = revenue - cost
    margin = (net_profit / revenue * 100).quantize(Decimal('0.1')) if revenue > 0 else ZERO
    return {'net_profit': net_profit, 'profit_margin': margin}


def project_balance(session: Session, project_id: int) -> Dict[str, Decimal]:
    """Income and expense actually settled (completed transactions) and their difference."""
    income_sum = func.sum(
        case(
            (ProjectTransaction.type == TransactionType.INCOME.value, ProjectTransaction.amount),
            else_=0
        )
    ).label('income')

    expense_sum = func.sum(
        case(
            (ProjectTransaction.type == TransactionType.EXPENSE.value, ProjectTransaction.amount),
            else_=0
        )
    ).label('expense')

    row = (
        session.query(income_sum, expense_sum)
        .filter(ProjectTransaction.project_id == project_id)
        .filter(ProjectTransaction.status == TransactionStatus.COMPLETED.value)
        .one()
    )

    income = Decimal(str(row.income)) if row.income is not None else ZERO
    expense = Decimal(str(row.expense)) if row.expense is not None else ZERO
    return {
        'income_total': income,
        'expense_total': expense,
        'balance': income - expense,
    }
