"""
Quote assembly: structural edits and status changes on a QuoteTree.

The assembler owns the invariants the calculator relies on: numeric fields
are never negative, sort orders are explicit, new items inherit the fee flag
of their group, locked quotes are never edited, status changes follow the
state machine.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from quotedesk.exceptions import ImmutableStateError, InvalidStateTransitionError, NotFoundError, ValidationError
from quotedesk.quoting.calculator import QuoteCalculation, calculate_tree, parse_vat_type
from quotedesk.quoting.events import NotificationEvent, NotificationType
from quotedesk.quoting.snapshot import DEFAULT_COST_RATIO, create_snapshot
from quotedesk.quoting.status import QuoteStatus, ensure_transition, is_mutable, parse_status
from quotedesk.quoting.structure import (
    DEFAULT_UNIT, DetailLine, GroupNode, ItemNode, QuoteTree, next_sort_order,
)
from quotedesk.utils.number_format import (
    DAYS_PLACES, MONEY_PLACES, QUANTITY_PLACES, RATE_PLACES, to_decimal,
)

logger = logging.getLogger(__name__)

# Decimal places each numeric field keeps in the database
FIELD_PLACES = {
    'quantity': QUANTITY_PLACES,
    'days': DAYS_PLACES,
    'unit_price': MONEY_PLACES,
    'cost_price': MONEY_PLACES,
    'discount_amount': MONEY_PLACES,
    'agency_fee_rate': RATE_PLACES,
}
NUMERIC_DETAIL_FIELDS = ('quantity', 'days', 'unit_price', 'cost_price')
EDITABLE_DETAIL_FIELDS = frozenset({
    'name', 'description', 'quantity', 'days', 'unit', 'unit_price', 'cost_price', 'is_service',
})
# Customer changes go through set_customer, which needs the customer record
EDITABLE_HEADER_FIELDS = frozenset({
    'project_title', 'issue_date', 'valid_until',
    'vat_type', 'discount_amount', 'agency_fee_rate', 'notes',
})

DETAIL_DEFAULTS = {
    'name': '',
    'description': '',
    'quantity': Decimal('1'),
    'days': Decimal('1'),
    'unit': DEFAULT_UNIT,
    'unit_price': Decimal('0'),
    'cost_price': Decimal('0'),
    'is_service': False,
}


def _clean_name(value, field: str) -> str:
    name = str(value).strip() if value is not None else ''
    if not name:
        raise ValidationError(f'{field} is required', field=field)
    return name


def _parse_date(value, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(f'{field} must be an ISO date', field=field)


def _detail_values(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and coerce editable detail fields."""
    unknown = set(changes) - EDITABLE_DETAIL_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

    values = {}
    for key, value in changes.items():
        if key in NUMERIC_DETAIL_FIELDS:
            values[key] = to_decimal(value, key, places=FIELD_PLACES[key])
        elif key == 'is_service':
            values[key] = bool(value)
        else:
            values[key] = '' if value is None else str(value)
    return values


def _object_list(value, field: str) -> List[dict]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(entry, dict) for entry in value):
        raise ValidationError(f'Template {field} must be a list of objects', field=field)
    return value


def build_groups(template_data: Dict[str, Any]) -> Dict[str, GroupNode]:
    """
    Build a fresh group tree from a template-shaped dict.

    Every node is new, sort orders follow list position, and values are
    coerced into new objects, so nothing in the result is shared with the input.
    """
    if not isinstance(template_data, dict) or not isinstance(template_data.get('groups'), list):
        raise ValidationError('Template data must contain a list of groups', field='groups')

    groups: Dict[str, GroupNode] = {}
    for group_pos, group_data in enumerate(_object_list(template_data['groups'], 'groups')):
        group = GroupNode(
            name=_clean_name(group_data.get('name'), 'group name'),
            sort_order=group_pos,
            include_in_fee=bool(group_data.get('include_in_fee', True)),
        )
        for item_pos, item_data in enumerate(_object_list(group_data.get('items'), 'items')):
            item = ItemNode(
                name=_clean_name(item_data.get('name'), 'item name'),
                sort_order=item_pos,
                include_in_fee=bool(item_data.get('include_in_fee', group.include_in_fee)),
            )
            for detail_pos, detail_data in enumerate(_object_list(item_data.get('details'), 'details')):
                fields = {k: v for k, v in detail_data.items() if k in EDITABLE_DETAIL_FIELDS}
                values = dict(DETAIL_DEFAULTS, **_detail_values(fields))
                detail = DetailLine(
                    sort_order=detail_pos,
                    supplier_id=detail_data.get('supplier_id'),
                    supplier_name_snapshot=str(detail_data.get('supplier_name_snapshot') or ''),
                    master_item_id=detail_data.get('master_item_id'),
                    **values,
                )
                item.details[detail.id] = detail
            group.items[item.id] = item
        groups[group.id] = group
    return groups


def export_groups(tree: QuoteTree) -> Dict[str, List[dict]]:
    """Export the structure in template shape (ids are not exported)."""
    return {
        'groups': [
            {
                'name': group.name,
                'include_in_fee': group.include_in_fee,
                'items': [
                    {
                        'name': item.name,
                        'include_in_fee': item.include_in_fee,
                        'details': [
                            {
                                'name': d.name,
                                'description': d.description,
                                'quantity': str(d.quantity),
                                'days': str(d.days),
                                'unit': d.unit,
                                'unit_price': str(d.unit_price),
                                'cost_price': str(d.cost_price),
                                'is_service': d.is_service,
                                'supplier_id': d.supplier_id,
                                'supplier_name_snapshot': d.supplier_name_snapshot,
                                'master_item_id': d.master_item_id,
                            }
                            for d in item.ordered_details()
                        ],
                    }
                    for item in group.ordered_items()
                ],
            }
            for group in tree.ordered_groups()
        ]
    }


class QuoteAssembler:
    """
    Mutation API over a QuoteTree.

    Args:
        tree: quote being edited
        repository: data access used for master item snapshots
        notifier: optional callable receiving NotificationEvent; its failures
            are logged and never undo the change that raised the event
        default_cost_ratio: cost estimate ratio passed to the snapshot builder
    """

    def __init__(self, tree: QuoteTree, repository=None,
                 notifier: Optional[Callable[[NotificationEvent], None]] = None,
                 default_cost_ratio: Optional[Decimal] = DEFAULT_COST_RATIO):
        self.tree = tree
        self.repository = repository
        self.notifier = notifier
        self.default_cost_ratio = default_cost_ratio
        self.dirty = False
        self.events: List[NotificationEvent] = []

    # -- lookups -----------------------------------------------------------

    def _ensure_mutable(self):
        if not is_mutable(self.tree.status):
            raise ImmutableStateError(self.tree.status)

    def _group(self, group_id) -> GroupNode:
        group = self.tree.groups.get(group_id)
        if group is None:
            raise NotFoundError(f'Group {group_id} not found.')
        return group

    def _item(self, group_id, item_id) -> ItemNode:
        item = self._group(group_id).items.get(item_id)
        if item is None:
            raise NotFoundError(f'Item {item_id} not found.')
        return item

    def _detail(self, group_id, item_id, detail_id) -> DetailLine:
        detail = self._item(group_id, item_id).details.get(detail_id)
        if detail is None:
            raise NotFoundError(f'Detail line {detail_id} not found.')
        return detail

    # -- header ------------------------------------------------------------

    def update_header(self, **changes) -> QuoteTree:
        self._ensure_mutable()
        unknown = set(changes) - EDITABLE_HEADER_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

        if 'project_title' in changes:
            changes['project_title'] = _clean_name(changes['project_title'], 'project_title')
        if 'vat_type' in changes:
            changes['vat_type'] = parse_vat_type(changes['vat_type'])
        for key in ('discount_amount', 'agency_fee_rate'):
            if key in changes:
                changes[key] = to_decimal(changes[key], key, places=FIELD_PLACES[key])
        if 'issue_date' in changes:
            if changes['issue_date'] in (None, ''):
                raise ValidationError('issue_date is required', field='issue_date')
            changes['issue_date'] = _parse_date(changes['issue_date'], 'issue_date')
        if changes.get('valid_until') == '':
            changes['valid_until'] = None
        if changes.get('valid_until') is not None:
            changes['valid_until'] = _parse_date(changes['valid_until'], 'valid_until')

        for key, value in changes.items():
            setattr(self.tree, key, value)
        self.dirty = True
        return self.tree

    def set_customer(self, customer_id: Optional[int], customer_name_snapshot: str) -> QuoteTree:
        """Point the quote at a customer; the caller resolves the frozen name."""
        self._ensure_mutable()
        self.tree.customer_id = customer_id
        self.tree.customer_name_snapshot = customer_name_snapshot
        self.dirty = True
        return self.tree

    # -- groups ------------------------------------------------------------

    def add_group(self, name: str, include_in_fee: bool = True) -> GroupNode:
        self._ensure_mutable()
        group = GroupNode(
            name=_clean_name(name, 'group name'),
            sort_order=next_sort_order(self.tree.groups.values()),
            include_in_fee=bool(include_in_fee),
        )
        self.tree.groups[group.id] = group
        self.dirty = True
        return group

    def remove_group(self, group_id) -> None:
        # Sibling sort orders are kept as they are; gaps are harmless
        self._ensure_mutable()
        self._group(group_id)
        del self.tree.groups[group_id]
        self.dirty = True

    def update_group(self, group_id, name: Optional[str] = None,
                     include_in_fee: Optional[bool] = None) -> GroupNode:
        self._ensure_mutable()
        group = self._group(group_id)
        if name is not None:
            group.name = _clean_name(name, 'group name')
        if include_in_fee is not None:
            group.include_in_fee = bool(include_in_fee)
            for item in group.items.values():
                item.include_in_fee = group.include_in_fee
        self.dirty = True
        return group

    # -- items -------------------------------------------------------------

    def add_item(self, group_id, name: str) -> ItemNode:
        self._ensure_mutable()
        group = self._group(group_id)
        item = ItemNode(
            name=_clean_name(name, 'item name'),
            sort_order=next_sort_order(group.items.values()),
            include_in_fee=group.include_in_fee,
        )
        group.items[item.id] = item
        self.dirty = True
        return item

    def remove_item(self, group_id, item_id) -> None:
        self._ensure_mutable()
        self._item(group_id, item_id)
        del self.tree.groups[group_id].items[item_id]
        self.dirty = True

    def update_item(self, group_id, item_id, name: Optional[str] = None,
                    include_in_fee: Optional[bool] = None) -> ItemNode:
        self._ensure_mutable()
        item = self._item(group_id, item_id)
        if name is not None:
            item.name = _clean_name(name, 'item name')
        if include_in_fee is not None:
            item.include_in_fee = bool(include_in_fee)
        self.dirty = True
        return item

    # -- detail lines ------------------------------------------------------

    def add_detail(self, group_id, item_id, **fields) -> DetailLine:
        """Append a detail line; missing fields take safe defaults (1 x 1 x 0)."""
        self._ensure_mutable()
        item = self._item(group_id, item_id)
        values = dict(DETAIL_DEFAULTS, **_detail_values(fields))
        detail = DetailLine(sort_order=next_sort_order(item.details.values()), **values)
        item.details[detail.id] = detail
        self.dirty = True
        return detail

    def add_detail_from_master(self, group_id, item_id, master_item_id, supplier_id=None,
                               quantity=1, days=1) -> DetailLine:
        """Append a detail line holding a snapshot of a master item."""
        self._ensure_mutable()
        item = self._item(group_id, item_id)
        if self.repository is None:
            raise NotFoundError('No catalog available to look up master items.')

        quantity = to_decimal(quantity, 'quantity', places=QUANTITY_PLACES)
        days = to_decimal(days, 'days', places=DAYS_PLACES)
        snapshot = create_snapshot(
            self.repository, master_item_id, supplier_id,
            default_cost_ratio=self.default_cost_ratio,
        )
        if snapshot.cost_price_estimated:
            logger.warning(
                f"Master item {master_item_id} has no cost price; "
                f"using estimated cost {snapshot.cost_price}"
            )

        detail = DetailLine(
            name=snapshot.name,
            description=snapshot.description,
            quantity=quantity,
            days=days,
            unit=snapshot.unit,
            unit_price=snapshot.unit_price,
            cost_price=snapshot.cost_price,
            is_service=snapshot.is_service,
            supplier_id=snapshot.supplier_id,
            supplier_name_snapshot=snapshot.supplier_name_snapshot,
            master_item_id=snapshot.master_item_id,
            sort_order=next_sort_order(item.details.values()),
        )
        item.details[detail.id] = detail
        self.dirty = True
        return detail

    def remove_detail(self, group_id, item_id, detail_id) -> None:
        self._ensure_mutable()
        self._detail(group_id, item_id, detail_id)
        del self.tree.groups[group_id].items[item_id].details[detail_id]
        self.dirty = True

    def update_detail(self, group_id, item_id, detail_id, **changes) -> DetailLine:
        self._ensure_mutable()
        detail = self._detail(group_id, item_id, detail_id)
        for key, value in _detail_values(changes).items():
            setattr(detail, key, value)
        self.dirty = True
        return detail

    # -- templates ---------------------------------------------------------

    def apply_template(self, template_data: Dict[str, Any]) -> None:
        """Replace the whole structure with a copy of a template."""
        self._ensure_mutable()
        # Built completely before the swap so a bad template leaves the tree untouched
        groups = build_groups(template_data)
        self.tree.groups = groups
        self.dirty = True

    def to_template_data(self) -> Dict[str, List[dict]]:
        return export_groups(self.tree)

    # -- status ------------------------------------------------------------

    def change_status(self, target, actor_id: Optional[int] = None,
                      reason: Optional[str] = None) -> str:
        """
        Move the quote to ``target`` if the state machine allows it.

        Expiry is time based and only happens through ``expire``.
        """
        target = parse_status(target)
        current = self.tree.status
        if target == QuoteStatus.EXPIRED.value:
            raise InvalidStateTransitionError(current, target)
        ensure_transition(current, target)

        if target == QuoteStatus.SUBMITTED.value and self.tree.is_empty():
            raise ValidationError(
                'A quote needs at least one group with an item and a detail line before it can be submitted',
                field='groups',
            )

        now = datetime.now(timezone.utc)
        self.tree.status = target
        if target == QuoteStatus.APPROVED.value:
            self.tree.approved_at = now
            self.tree.approved_by = actor_id
        elif target == QuoteStatus.REJECTED.value:
            self.tree.rejected_at = now
            self.tree.rejected_by = actor_id
            self.tree.rejection_reason = (reason or '').strip() or None
        self.dirty = True

        if target == QuoteStatus.APPROVED.value:
            self._emit(NotificationEvent(
                type=NotificationType.QUOTE_APPROVED.value,
                quote_id=self.tree.quote_id,
                title='Quote approved',
                message=f'Quote "{self.tree.project_title}" ({self.tree.quote_number or "unsaved"}) was approved.',
                priority='high',
                entity_id=self.tree.quote_id,
            ))
        elif target == QuoteStatus.REJECTED.value:
            self._emit(NotificationEvent(
                type=NotificationType.QUOTE_REJECTED.value,
                quote_id=self.tree.quote_id,
                title='Quote rejected',
                message=f'Quote "{self.tree.project_title}" ({self.tree.quote_number or "unsaved"}) was rejected.',
                priority='high',
                entity_id=self.tree.quote_id,
            ))
        return target

    def expire(self, today: Optional[date] = None) -> bool:
        """Expire an approved quote whose validity date has passed."""
        today = today or date.today()
        if (self.tree.status != QuoteStatus.APPROVED.value
                or self.tree.valid_until is None
                or self.tree.valid_until >= today):
            return False
        ensure_transition(self.tree.status, QuoteStatus.EXPIRED.value)
        self.tree.status = QuoteStatus.EXPIRED.value
        self.dirty = True
        return True

    def _emit(self, event: NotificationEvent) -> None:
        self.events.append(event)
        if self.notifier is None:
            return
        try:
            self.notifier(event)
        except Exception as e:
            # Notification failures must not undo the status change
            logger.error(f"Failed to deliver {event.type} notification for quote {event.quote_id}: {e}")

    # -- calculation -------------------------------------------------------

    def calculate(self) -> QuoteCalculation:
        return calculate_tree(self.tree)
