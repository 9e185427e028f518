"""
In-memory quote structure: groups -> items -> detail lines.

Every node carries a stable id. Collections are dicts keyed by that id and
``sort_order`` is kept as a separate field, so removing a node never changes
the identity of its siblings. Iterate through the ``ordered_*`` helpers when
display or summation order matters.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

DEFAULT_UNIT = 'ea'


def new_node_id() -> str:
    return uuid.uuid4().hex


def next_sort_order(nodes: Iterable) -> int:
    """Position after the highest sort order in use (0 for an empty level)."""
    orders = [node.sort_order for node in nodes]
    return max(orders) + 1 if orders else 0


@dataclass
class DetailLine:
    """Leaf financial line. Name, unit, prices and supplier name are snapshots."""
    name: str = ''
    description: str = ''
    quantity: Decimal = Decimal('1')
    days: Decimal = Decimal('1')
    unit: str = DEFAULT_UNIT
    unit_price: Decimal = Decimal('0')
    cost_price: Decimal = Decimal('0')
    is_service: bool = False
    supplier_id: Optional[int] = None
    supplier_name_snapshot: str = ''
    master_item_id: Optional[int] = None
    sort_order: int = 0
    id: str = field(default_factory=new_node_id)

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.days * self.unit_price

    @property
    def line_cost(self) -> Decimal:
        return self.quantity * self.days * self.cost_price


@dataclass
class ItemNode:
    name: str
    sort_order: int = 0
    include_in_fee: bool = True
    details: Dict[str, DetailLine] = field(default_factory=dict)
    id: str = field(default_factory=new_node_id)

    def ordered_details(self) -> List[DetailLine]:
        return sorted(self.details.values(), key=lambda d: d.sort_order)


@dataclass
class GroupNode:
    name: str
    sort_order: int = 0
    include_in_fee: bool = True
    items: Dict[str, ItemNode] = field(default_factory=dict)
    id: str = field(default_factory=new_node_id)

    def ordered_items(self) -> List[ItemNode]:
        return sorted(self.items.values(), key=lambda i: i.sort_order)


@dataclass
class QuoteTree:
    """Aggregate root of a quote being edited, persisted or calculated."""
    project_title: str = ''
    customer_id: Optional[int] = None
    customer_name_snapshot: str = ''
    issue_date: date = field(default_factory=date.today)
    valid_until: Optional[date] = None
    status: str = 'draft'
    vat_type: str = 'exclusive'
    discount_amount: Decimal = Decimal('0')
    agency_fee_rate: Decimal = Decimal('0.15')
    notes: Optional[str] = None
    groups: Dict[str, GroupNode] = field(default_factory=dict)

    # Persistence bookkeeping; None / 0 until the quote is first saved
    quote_id: Optional[int] = None
    quote_number: Optional[str] = None
    version: int = 0
    created_by: Optional[int] = None

    # Review trail
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejection_reason: Optional[str] = None

    def ordered_groups(self) -> List[GroupNode]:
        return sorted(self.groups.values(), key=lambda g: g.sort_order)

    def iter_details(self) -> Iterable[DetailLine]:
        for group in self.ordered_groups():
            for item in group.ordered_items():
                yield from item.ordered_details()

    def is_empty(self) -> bool:
        """True unless some group holds an item that holds a detail line."""
        return next(iter(self.iter_details()), None) is None
