"""
SQL repository - data access for the quoting core.

Translates between Quote rows (quote -> quote_group -> quote_item ->
quote_detail) and in-memory QuoteTree objects, and enforces optimistic
concurrency on save.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from quotedesk.exceptions import ConcurrentModificationError, NotFoundError
from quotedesk.models import (
    MasterItem, Supplier, Quote, QuoteGroup, QuoteItem, QuoteDetail, QuoteTemplate,
)
from quotedesk.quoting.calculator import calculate_tree
from quotedesk.quoting.structure import DetailLine, GroupNode, ItemNode, QuoteTree
from quotedesk.utils.number_format import round_cents

logger = logging.getLogger(__name__)


def generate_quote_number(session: Session, issue_date: Optional[date] = None) -> str:
    """Generate the next quote number for the issue day, like Q-20261019-0003."""
    day = issue_date or date.today()
    prefix = f"Q-{day.strftime('%Y%m%d')}-"
    last = session.query(func.max(Quote.quote_number)).filter(
        Quote.quote_number.like(f'{prefix}%')
    ).scalar()
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{str(sequence).zfill(4)}"


def tree_from_quote(quote: Quote) -> QuoteTree:
    """Build a detached QuoteTree from a Quote row and its structure."""
    groups = {}
    for group_row in quote.groups:
        group = GroupNode(
            id=group_row.node_id,
            name=group_row.name,
            sort_order=group_row.sort_order,
            include_in_fee=group_row.include_in_fee,
        )
        for item_row in group_row.items:
            item = ItemNode(
                id=item_row.node_id,
                name=item_row.name,
                sort_order=item_row.sort_order,
                include_in_fee=item_row.include_in_fee,
            )
            for d in item_row.details:
                item.details[d.node_id] = DetailLine(
                    id=d.node_id,
                    name=d.name,
                    description=d.description or '',
                    quantity=Decimal(d.quantity),
                    days=Decimal(d.days),
                    unit=d.unit,
                    unit_price=Decimal(d.unit_price),
                    cost_price=Decimal(d.cost_price),
                    is_service=d.is_service,
                    supplier_id=d.supplier_id,
                    supplier_name_snapshot=d.supplier_name_snapshot or '',
                    master_item_id=d.master_item_id,
                    sort_order=d.sort_order,
                )
            group.items[item.id] = item
        groups[group.id] = group

    return QuoteTree(
        quote_id=quote.id,
        quote_number=quote.quote_number,
        version=quote.version,
        project_title=quote.project_title,
        customer_id=quote.customer_id,
        customer_name_snapshot=quote.customer_name_snapshot or '',
        issue_date=quote.issue_date,
        valid_until=quote.valid_until,
        status=quote.status,
        vat_type=quote.vat_type,
        discount_amount=Decimal(quote.discount_amount),
        agency_fee_rate=Decimal(quote.agency_fee_rate),
        notes=quote.notes,
        created_by=quote.created_by,
        approved_at=quote.approved_at,
        approved_by=quote.approved_by,
        rejected_at=quote.rejected_at,
        rejected_by=quote.rejected_by,
        rejection_reason=quote.rejection_reason,
        groups=groups,
    )


def _group_rows(tree: QuoteTree):
    rows = []
    for group in tree.ordered_groups():
        group_row = QuoteGroup(
            node_id=group.id, name=group.name,
            sort_order=group.sort_order, include_in_fee=group.include_in_fee,
        )
        for item in group.ordered_items():
            item_row = QuoteItem(
                node_id=item.id, name=item.name,
                sort_order=item.sort_order, include_in_fee=item.include_in_fee,
            )
            for d in item.ordered_details():
                item_row.details.append(QuoteDetail(
                    node_id=d.id,
                    name=d.name,
                    description=d.description or None,
                    quantity=d.quantity,
                    days=d.days,
                    unit=d.unit,
                    unit_price=d.unit_price,
                    cost_price=d.cost_price,
                    is_service=d.is_service,
                    supplier_id=d.supplier_id,
                    supplier_name_snapshot=d.supplier_name_snapshot,
                    master_item_id=d.master_item_id,
                    sort_order=d.sort_order,
                ))
            group_row.items.append(item_row)
        rows.append(group_row)
    return rows


class SqlRepository:
    """Data access used by the quoting core, backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get_master_item(self, item_id) -> Optional[MasterItem]:
        return self.session.query(MasterItem).filter(MasterItem.id == item_id).first()

    def get_master_supplier(self, supplier_id) -> Optional[Supplier]:
        return self.session.query(Supplier).filter(Supplier.id == supplier_id).first()

    def get_template(self, template_id) -> Optional[QuoteTemplate]:
        return self.session.query(QuoteTemplate).filter(QuoteTemplate.id == template_id).first()

    def get_quote_row(self, quote_id) -> Quote:
        quote = self.session.query(Quote).filter(Quote.id == quote_id).first()
        if not quote:
            raise NotFoundError(f'Quote {quote_id} not found.')
        return quote

    def load_quote(self, quote_id) -> QuoteTree:
        return tree_from_quote(self.get_quote_row(quote_id))

    def save_quote(self, tree: QuoteTree, expected_version: Optional[int] = None) -> QuoteTree:
        """
        Persist a quote tree.

        New trees (no quote_id) are inserted with version 1. Existing quotes are
        locked, their version compared to ``expected_version`` (defaults to
        ``tree.version``) and incremented; the stored structure is replaced.

        Raises:
            NotFoundError: if the quote was deleted meanwhile.
            ConcurrentModificationError: if someone saved a newer version.
        """
        calculation = calculate_tree(tree)

        try:
            if tree.quote_id is None:
                quote = Quote(
                    quote_number=generate_quote_number(self.session, tree.issue_date),
                    version=1,
                    created_by=tree.created_by,
                )
                self.session.add(quote)
            else:
                quote = self.session.query(Quote).filter(
                    Quote.id == tree.quote_id
                ).with_for_update().populate_existing().first()
                if not quote:
                    raise NotFoundError(f'Quote {tree.quote_id} not found.')

                expected = tree.version if expected_version is None else expected_version
                if quote.version != expected:
                    raise ConcurrentModificationError(quote.id, expected, quote.version)
                quote.version = quote.version + 1

            quote.project_title = tree.project_title
            quote.customer_id = tree.customer_id
            quote.customer_name_snapshot = tree.customer_name_snapshot
            quote.issue_date = tree.issue_date
            quote.valid_until = tree.valid_until
            quote.status = tree.status
            quote.vat_type = tree.vat_type
            quote.discount_amount = tree.discount_amount
            quote.agency_fee_rate = tree.agency_fee_rate
            quote.notes = tree.notes
            quote.approved_at = tree.approved_at
            quote.approved_by = tree.approved_by
            quote.rejected_at = tree.rejected_at
            quote.rejected_by = tree.rejected_by
            quote.rejection_reason = tree.rejection_reason
            quote.total_amount = round_cents(calculation.final_total)
            quote.total_cost = round_cents(calculation.total_cost)
            quote.total_profit = round_cents(calculation.total_profit)

            # Replacing the collection deletes the previous rows (delete-orphan)
            quote.groups = _group_rows(tree)

            self.session.commit()
        except (ConcurrentModificationError, NotFoundError) as e:
            self.session.rollback()
            raise e
        except Exception:
            self.session.rollback()
            raise

        tree.quote_id = quote.id
        tree.quote_number = quote.quote_number
        tree.version = quote.version
        logger.info(f"Quote {quote.quote_number} saved at version {quote.version}")
        return tree
