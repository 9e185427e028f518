"""Quoting core: structure, snapshots, calculation, assembly and status rules."""
from quotedesk.quoting.structure import DetailLine, ItemNode, GroupNode, QuoteTree, DEFAULT_UNIT
from quotedesk.quoting.status import QuoteStatus, ALLOWED_TRANSITIONS, ensure_transition, is_mutable
from quotedesk.quoting.calculator import (
    CalculationParams, QuoteCalculation, GroupCalculation, ItemCalculation, DetailCalculation,
    VatType, VAT_RATE, calculate_quote, calculate_tree, calculation_params_for,
)
from quotedesk.quoting.snapshot import DetailSnapshot, DEFAULT_COST_RATIO, create_snapshot
from quotedesk.quoting.events import NotificationEvent, NotificationType
from quotedesk.quoting.assembly import QuoteAssembler, build_groups, export_groups

__all__ = [
    'DetailLine', 'ItemNode', 'GroupNode', 'QuoteTree', 'DEFAULT_UNIT',
    'QuoteStatus', 'ALLOWED_TRANSITIONS', 'ensure_transition', 'is_mutable',
    'CalculationParams', 'QuoteCalculation', 'GroupCalculation', 'ItemCalculation', 'DetailCalculation',
    'VatType', 'VAT_RATE', 'calculate_quote', 'calculate_tree', 'calculation_params_for',
    'DetailSnapshot', 'DEFAULT_COST_RATIO', 'create_snapshot',
    'NotificationEvent', 'NotificationType',
    'QuoteAssembler', 'build_groups', 'export_groups',
]
