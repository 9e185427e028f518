"""
Quote calculation engine.

Turns a group/item/detail tree plus the quote-level parameters into a
financial summary. Everything here is a pure function of its arguments: no
database access, no logging, no hidden state, so it can run on every edit.

Order of operations:

1. line total = quantity * days * unit_price, line cost likewise with cost_price
2. subtotal and total cost over all groups
3. fee-applicable / fee-excluded split by the group ``include_in_fee`` flag
4. agency fee = fee-applicable amount * agency fee rate
5. total before VAT = subtotal + agency fee - discount
6. VAT added on top (exclusive) or backed out (inclusive), rounded half-up
   to whole won; the only rounding step
7. profit = final total - total cost - agency fee
8. margin = profit / final total, markup = profit / total cost (0 when the
   divisor is not positive)
"""
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from quotedesk.exceptions import ValidationError
from quotedesk.quoting.structure import GroupNode, QuoteTree
from quotedesk.utils.number_format import Number, to_decimal, round_won, json_amount

VAT_RATE = Decimal('0.10')
ZERO = Decimal('0')
HUNDRED = Decimal('100')


class VatType(enum.Enum):
    """How VAT relates to the quoted amount."""
    EXCLUSIVE = 'exclusive'  # VAT is added on top
    INCLUSIVE = 'inclusive'  # amount already contains VAT


def parse_vat_type(value) -> str:
    if isinstance(value, VatType):
        return value.value
    try:
        return VatType(str(value).strip().lower()).value
    except ValueError:
        raise ValidationError(f"Unknown VAT type '{value}'", field='vat_type')


@dataclass(frozen=True)
class CalculationParams:
    agency_fee_rate: Decimal = ZERO
    discount_amount: Decimal = ZERO
    vat_type: str = VatType.EXCLUSIVE.value

    @classmethod
    def from_values(cls, agency_fee_rate: Optional[Number] = 0,
                    discount_amount: Optional[Number] = 0,
                    vat_type=VatType.EXCLUSIVE.value) -> 'CalculationParams':
        """Build validated params from raw request or form values."""
        return cls(
            agency_fee_rate=to_decimal(agency_fee_rate, 'agency_fee_rate', default=ZERO),
            discount_amount=to_decimal(discount_amount, 'discount_amount', default=ZERO),
            vat_type=parse_vat_type(vat_type or VatType.EXCLUSIVE.value),
        )


@dataclass(frozen=True)
class DetailCalculation:
    id: str
    name: str
    quantity: Decimal
    days: Decimal
    unit_price: Decimal
    cost_price: Decimal
    subtotal: Decimal
    cost_total: Decimal
    profit: Decimal


@dataclass(frozen=True)
class ItemCalculation:
    id: str
    name: str
    include_in_fee: bool
    subtotal: Decimal
    cost_total: Decimal
    profit: Decimal
    details: Tuple[DetailCalculation, ...] = ()


@dataclass(frozen=True)
class GroupCalculation:
    id: str
    name: str
    include_in_fee: bool
    subtotal: Decimal
    cost_total: Decimal
    profit: Decimal
    profit_margin: Decimal
    items: Tuple[ItemCalculation, ...] = ()


@dataclass(frozen=True)
class QuoteCalculation:
    subtotal: Decimal = ZERO
    fee_applicable_amount: Decimal = ZERO
    fee_excluded_amount: Decimal = ZERO
    agency_fee: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_before_vat: Decimal = ZERO
    vat_amount: Decimal = ZERO
    final_total: Decimal = ZERO
    total_cost: Decimal = ZERO
    total_profit: Decimal = ZERO
    profit_margin_percentage: Decimal = ZERO
    cost_markup_percentage: Decimal = ZERO
    groups: Tuple[GroupCalculation, ...] = field(default_factory=tuple)

    def to_dict(self, include_breakdown: bool = True) -> dict:
        data = {
            'subtotal': json_amount(self.subtotal),
            'fee_applicable_amount': json_amount(self.fee_applicable_amount),
            'fee_excluded_amount': json_amount(self.fee_excluded_amount),
            'agency_fee': json_amount(self.agency_fee),
            'discount_amount': json_amount(self.discount_amount),
            'total_before_vat': json_amount(self.total_before_vat),
            'vat_amount': json_amount(self.vat_amount),
            'final_total': json_amount(self.final_total),
            'total_cost': json_amount(self.total_cost),
            'total_profit': json_amount(self.total_profit),
            'profit_margin_percentage': _percentage(self.profit_margin_percentage),
            'cost_markup_percentage': _percentage(self.cost_markup_percentage),
        }
        if include_breakdown:
            data['groups'] = [_group_to_dict(g) for g in self.groups]
        return data


def _percentage(value: Decimal) -> float:
    return float(round(value, 2))


def _group_to_dict(group: GroupCalculation) -> dict:
    return {
        'id': group.id,
        'name': group.name,
        'include_in_fee': group.include_in_fee,
        'subtotal': json_amount(group.subtotal),
        'cost_total': json_amount(group.cost_total),
        'profit': json_amount(group.profit),
        'profit_margin': _percentage(group.profit_margin),
        'items': [
            {
                'id': item.id,
                'name': item.name,
                'include_in_fee': item.include_in_fee,
                'subtotal': json_amount(item.subtotal),
                'cost_total': json_amount(item.cost_total),
                'profit': json_amount(item.profit),
                'details': [
                    {
                        'id': d.id,
                        'name': d.name,
                        'quantity': json_amount(d.quantity),
                        'days': json_amount(d.days),
                        'unit_price': json_amount(d.unit_price),
                        'cost_price': json_amount(d.cost_price),
                        'subtotal': json_amount(d.subtotal),
                        'cost_total': json_amount(d.cost_total),
                        'profit': json_amount(d.profit),
                    }
                    for d in item.details
                ],
            }
            for item in group.items
        ],
    }


def _ratio_percentage(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return ZERO
    return numerator / denominator * HUNDRED


def _calculate_group(group: GroupNode) -> GroupCalculation:
    group_subtotal = ZERO
    group_cost = ZERO
    items = []

    for item in group.ordered_items():
        item_total = ZERO
        item_cost = ZERO
        details = []

        for detail in item.ordered_details():
            quantity = to_decimal(detail.quantity, 'quantity')
            days = to_decimal(detail.days, 'days')
            unit_price = to_decimal(detail.unit_price, 'unit_price')
            cost_price = to_decimal(detail.cost_price, 'cost_price')

            line_total = quantity * days * unit_price
            line_cost = quantity * days * cost_price
            item_total += line_total
            item_cost += line_cost

            details.append(DetailCalculation(
                id=detail.id,
                name=detail.name,
                quantity=quantity,
                days=days,
                unit_price=unit_price,
                cost_price=cost_price,
                subtotal=line_total,
                cost_total=line_cost,
                profit=line_total - line_cost,
            ))

        group_subtotal += item_total
        group_cost += item_cost
        items.append(ItemCalculation(
            id=item.id,
            name=item.name,
            include_in_fee=item.include_in_fee,
            subtotal=item_total,
            cost_total=item_cost,
            profit=item_total - item_cost,
            details=tuple(details),
        ))

    group_profit = group_subtotal - group_cost
    return GroupCalculation(
        id=group.id,
        name=group.name,
        include_in_fee=group.include_in_fee,
        subtotal=group_subtotal,
        cost_total=group_cost,
        profit=group_profit,
        profit_margin=_ratio_percentage(group_profit, group_subtotal),
        items=tuple(items),
    )


def calculate_quote(groups: Iterable[GroupNode], params: CalculationParams) -> QuoteCalculation:
    """
    Calculate the financial summary of a quote structure.

    Args:
        groups: group nodes in any order; they are summed by ``sort_order``
        params: fee rate, flat discount and VAT convention

    Raises:
        ValidationError: on a negative or non-numeric line field or parameter.
    """
    agency_fee_rate = to_decimal(params.agency_fee_rate, 'agency_fee_rate')
    discount_amount = to_decimal(params.discount_amount, 'discount_amount')
    vat_type = parse_vat_type(params.vat_type)

    group_results = tuple(
        _calculate_group(group)
        for group in sorted(groups, key=lambda g: g.sort_order)
    )

    subtotal = sum((g.subtotal for g in group_results), ZERO)
    total_cost = sum((g.cost_total for g in group_results), ZERO)
    fee_applicable_amount = sum((g.subtotal for g in group_results if g.include_in_fee), ZERO)
    fee_excluded_amount = sum((g.subtotal for g in group_results if not g.include_in_fee), ZERO)

    agency_fee = fee_applicable_amount * agency_fee_rate
    total_before_vat = subtotal + agency_fee - discount_amount

    if vat_type == VatType.EXCLUSIVE.value:
        vat_amount = round_won(total_before_vat * VAT_RATE)
        final_total = total_before_vat + vat_amount
    else:
        final_total = total_before_vat
        vat_amount = round_won(total_before_vat / (Decimal('1') + VAT_RATE) * VAT_RATE)

    total_profit = final_total - total_cost - agency_fee

    return QuoteCalculation(
        subtotal=subtotal,
        fee_applicable_amount=fee_applicable_amount,
        fee_excluded_amount=fee_excluded_amount,
        agency_fee=agency_fee,
        discount_amount=discount_amount,
        total_before_vat=total_before_vat,
        vat_amount=vat_amount,
        final_total=final_total,
        total_cost=total_cost,
        total_profit=total_profit,
        profit_margin_percentage=_ratio_percentage(total_profit, final_total),
        cost_markup_percentage=_ratio_percentage(total_profit, total_cost),
        groups=group_results,
    )


def calculation_params_for(tree: QuoteTree) -> CalculationParams:
    return CalculationParams.from_values(
        agency_fee_rate=tree.agency_fee_rate,
        discount_amount=tree.discount_amount,
        vat_type=tree.vat_type,
    )


def calculate_tree(tree: QuoteTree) -> QuoteCalculation:
    return calculate_quote(tree.groups.values(), calculation_params_for(tree))
