"""
Master data snapshots for quote detail lines.

A snapshot copies the catalog values of a master item (and its supplier name)
at the moment a line is added to a quote. The quote keeps the copy; later
edits to the catalog never reach lines that were already created.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from quotedesk.exceptions import NotFoundError
from quotedesk.quoting.structure import DEFAULT_UNIT
from quotedesk.utils.number_format import round_cents, to_decimal

# Estimated cost/price ratio for master items without a cost price
DEFAULT_COST_RATIO = Decimal('0.7')


@dataclass(frozen=True)
class DetailSnapshot:
    """Detached copy of master item values for one quote line."""
    master_item_id: int
    name: str
    description: str
    unit: str
    unit_price: Decimal
    cost_price: Decimal
    is_service: bool
    supplier_id: Optional[int] = None
    supplier_name_snapshot: str = ''
    # True when cost_price was estimated instead of read from the catalog
    cost_price_estimated: bool = False
    snapshot_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def create_snapshot(repository, master_item_id, supplier_id=None,
                    default_cost_ratio: Optional[Decimal] = DEFAULT_COST_RATIO) -> DetailSnapshot:
    """
    Freeze a master item (and optionally a supplier) into a DetailSnapshot.

    Args:
        repository: object providing ``get_master_item(id)`` and
            ``get_master_supplier(id)``, each returning None when missing
        master_item_id: catalog item to copy
        supplier_id: supplier whose name is frozen on the line; when omitted the
            item's default supplier is used, if it has one
        default_cost_ratio: applied to unit_price when the item has no cost
            price; None leaves the cost at 0. Either way the snapshot is flagged.

    Raises:
        NotFoundError: if the item does not exist or is inactive, or if a
        supplier reference does not resolve.
    """
    item = repository.get_master_item(master_item_id)
    if item is None or not item.active:
        raise NotFoundError(f'Master item {master_item_id} not found.')

    if supplier_id is None:
        supplier_id = getattr(item, 'supplier_id', None)

    supplier_name = ''
    if supplier_id is not None:
        supplier = repository.get_master_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError(f'Supplier {supplier_id} not found.')
        supplier_name = str(supplier.name)

    unit_price = to_decimal(item.unit_price, 'unit_price', default=Decimal('0'))

    cost_price_estimated = item.cost_price is None
    if cost_price_estimated:
        cost_price = round_cents(unit_price * default_cost_ratio) if default_cost_ratio is not None else Decimal('0')
    else:
        cost_price = to_decimal(item.cost_price, 'cost_price')

    # str()/bool() so no ORM-managed attribute value leaks into the snapshot
    return DetailSnapshot(
        master_item_id=item.id,
        name=str(item.name),
        description=str(item.description or ''),
        unit=str(item.unit or DEFAULT_UNIT),
        unit_price=unit_price,
        cost_price=cost_price,
        is_service=bool(item.is_service),
        supplier_id=supplier_id,
        supplier_name_snapshot=supplier_name,
        cost_price_estimated=cost_price_estimated,
    )
