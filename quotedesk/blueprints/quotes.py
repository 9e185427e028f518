"""Quotes blueprint - quote editing, review workflow and conversion (JSON API)."""
from decimal import Decimal
from flask import Blueprint, request, jsonify, g, current_app
from quotedesk.database import get_session
from quotedesk.blueprints.projects import project_to_dict
from quotedesk.middleware import require_login, require_role
from quotedesk.quoting.assembly import EDITABLE_DETAIL_FIELDS, EDITABLE_HEADER_FIELDS, build_groups
from quotedesk.quoting.calculator import CalculationParams, calculate_quote, calculate_tree
from quotedesk.quoting.structure import QuoteTree, GroupNode, ItemNode, DetailLine
from quotedesk.services import quote_service, project_service
from quotedesk.utils.number_format import json_amount
from quotedesk.utils.request_parsing import (
    get_payload, parse_date, parse_int, parse_bool, parse_text, require_version,
)

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')


def _detail_to_dict(detail: DetailLine) -> dict:
    return {
        'id': detail.id,
        'name': detail.name,
        'description': detail.description,
        'quantity': json_amount(detail.quantity),
        'days': json_amount(detail.days),
        'unit': detail.unit,
        'unit_price': json_amount(detail.unit_price),
        'cost_price': json_amount(detail.cost_price),
        'is_service': detail.is_service,
        'supplier_id': detail.supplier_id,
        'supplier_name_snapshot': detail.supplier_name_snapshot,
        'master_item_id': detail.master_item_id,
        'sort_order': detail.sort_order,
        'line_total': json_amount(detail.line_total),
    }


def _item_to_dict(item: ItemNode) -> dict:
    return {
        'id': item.id,
        'name': item.name,
        'sort_order': item.sort_order,
        'include_in_fee': item.include_in_fee,
        'details': [_detail_to_dict(d) for d in item.ordered_details()],
    }


def _group_to_dict(group: GroupNode) -> dict:
    return {
        'id': group.id,
        'name': group.name,
        'sort_order': group.sort_order,
        'include_in_fee': group.include_in_fee,
        'items': [_item_to_dict(i) for i in group.ordered_items()],
    }


def _tree_to_dict(tree: QuoteTree) -> dict:
    return {
        'id': tree.quote_id,
        'quote_number': tree.quote_number,
        'version': tree.version,
        'project_title': tree.project_title,
        'customer_id': tree.customer_id,
        'customer_name_snapshot': tree.customer_name_snapshot,
        'issue_date': tree.issue_date.isoformat() if tree.issue_date else None,
        'valid_until': tree.valid_until.isoformat() if tree.valid_until else None,
        'status': tree.status,
        'vat_type': tree.vat_type,
        'discount_amount': json_amount(tree.discount_amount),
        'agency_fee_rate': float(tree.agency_fee_rate),
        'notes': tree.notes,
        'approved_at': tree.approved_at.isoformat() if tree.approved_at else None,
        'rejected_at': tree.rejected_at.isoformat() if tree.rejected_at else None,
        'rejection_reason': tree.rejection_reason,
        'groups': [_group_to_dict(g) for g in tree.ordered_groups()],
    }


def _quote_response(tree: QuoteTree, status_code: int = 200, **extra):
    body = {
        'status': 'ok',
        'quote': _tree_to_dict(tree),
        'calculation': calculate_tree(tree).to_dict(),
    }
    body.update(extra)
    return jsonify(body), status_code


def _default_cost_ratio() -> Decimal:
    return Decimal(str(current_app.config.get('QUOTE_DEFAULT_COST_RATIO', '0.7')))


def _edit(quote_id, data, mutate):
    return quote_service.edit_quote(
        get_session(), quote_id, require_version(data), mutate,
        default_cost_ratio=_default_cost_ratio(),
    )


def _detail_fields(data: dict) -> dict:
    return {k: v for k, v in data.items() if k in EDITABLE_DETAIL_FIELDS}


# -- quotes -----------------------------------------------------------------

@quotes_bp.route('/')
@require_login
def list_quotes():
    """List quotes with optional filters."""
    quotes = quote_service.list_quotes(
        get_session(),
        status=request.args.get('status') or None,
        customer_id=parse_int(request.args.get('customer_id'), 'customer_id'),
        date_from=parse_date(request.args.get('date_from'), 'date_from'),
        date_to=parse_date(request.args.get('date_to'), 'date_to'),
        amount_min=request.args.get('amount_min'),
        amount_max=request.args.get('amount_max'),
        search=request.args.get('q', '').strip() or None,
    )
    return jsonify({
        'status': 'ok',
        'quotes': [
            {
                'id': q.id,
                'quote_number': q.quote_number,
                'project_title': q.project_title,
                'customer_name_snapshot': q.customer_name_snapshot,
                'issue_date': q.issue_date.isoformat(),
                'valid_until': q.valid_until.isoformat() if q.valid_until else None,
                'status': q.status,
                'total_amount': json_amount(q.total_amount),
                'total_profit': json_amount(q.total_profit),
                'version': q.version,
            }
            for q in quotes
        ],
    })


@quotes_bp.route('/', methods=['POST'])
@require_login
def create_quote():
    """Create a draft quote."""
    data = get_payload()
    config = current_app.config
    tree = quote_service.create_quote(
        get_session(),
        project_title=data.get('project_title'),
        customer_id=parse_int(data.get('customer_id'), 'customer_id'),
        customer_name_snapshot=parse_text(data.get('customer_name'), 'customer_name'),
        issue_date=parse_date(data.get('issue_date'), 'issue_date'),
        valid_days=parse_int(data.get('valid_days'), 'valid_days') or config.get('QUOTE_VALID_DAYS', 30),
        agency_fee_rate=data.get('agency_fee_rate', config.get('QUOTE_AGENCY_FEE_RATE', '0.15')),
        discount_amount=data.get('discount_amount', 0),
        vat_type=data.get('vat_type') or 'exclusive',
        notes=data.get('notes'),
        created_by=g.user.id,
        template_id=parse_int(data.get('template_id'), 'template_id'),
    )
    return _quote_response(tree, 201)


@quotes_bp.route('/calculate', methods=['POST'])
@require_login
def preview_calculation():
    """Calculate an unsaved structure (template-shaped groups plus parameters)."""
    data = get_payload()
    params = CalculationParams.from_values(
        agency_fee_rate=data.get('agency_fee_rate', current_app.config.get('QUOTE_AGENCY_FEE_RATE', '0.15')),
        discount_amount=data.get('discount_amount', 0),
        vat_type=data.get('vat_type') or 'exclusive',
    )
    calculation = calculate_quote(build_groups(data).values(), params)
    return jsonify({'status': 'ok', 'calculation': calculation.to_dict()})


@quotes_bp.route('/<int:quote_id>')
@require_login
def get_quote(quote_id):
    tree, _ = quote_service.get_quote(get_session(), quote_id)
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>', methods=['PATCH'])
@require_login
def update_quote(quote_id):
    """Update header fields (title, customer, dates, VAT, discount, fee rate, notes)."""
    data = get_payload()
    changes = {k: v for k, v in data.items() if k in EDITABLE_HEADER_FIELDS}
    if 'customer_id' in data:
        changes['customer_id'] = parse_int(data['customer_id'], 'customer_id')
    if 'customer_name' in data:
        changes['customer_name_snapshot'] = parse_text(data['customer_name'], 'customer_name')
    tree = quote_service.update_quote_header(get_session(), quote_id, require_version(data), changes)
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>', methods=['DELETE'])
@require_login
def delete_quote(quote_id):
    quote_service.delete_quote(get_session(), quote_id)
    return jsonify({'status': 'ok'})


# -- structure --------------------------------------------------------------

@quotes_bp.route('/<int:quote_id>/groups', methods=['POST'])
@require_login
def add_group(quote_id):
    data = get_payload()
    tree, group = _edit(quote_id, data, lambda a: a.add_group(
        data.get('name'), include_in_fee=parse_bool(data.get('include_in_fee'), default=True)
    ))
    return _quote_response(tree, 201, group_id=group.id)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>', methods=['PATCH'])
@require_login
def update_group(quote_id, group_id):
    data = get_payload()
    include_in_fee = parse_bool(data['include_in_fee']) if 'include_in_fee' in data else None
    tree, _ = _edit(quote_id, data, lambda a: a.update_group(
        group_id, name=data.get('name'), include_in_fee=include_in_fee
    ))
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>', methods=['DELETE'])
@require_login
def remove_group(quote_id, group_id):
    tree, _ = _edit(quote_id, get_payload(), lambda a: a.remove_group(group_id))
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items', methods=['POST'])
@require_login
def add_item(quote_id, group_id):
    data = get_payload()
    tree, item = _edit(quote_id, data, lambda a: a.add_item(group_id, data.get('name')))
    return _quote_response(tree, 201, item_id=item.id)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items/<item_id>', methods=['PATCH'])
@require_login
def update_item(quote_id, group_id, item_id):
    data = get_payload()
    include_in_fee = parse_bool(data['include_in_fee']) if 'include_in_fee' in data else None
    tree, _ = _edit(quote_id, data, lambda a: a.update_item(
        group_id, item_id, name=data.get('name'), include_in_fee=include_in_fee
    ))
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items/<item_id>', methods=['DELETE'])
@require_login
def remove_item(quote_id, group_id, item_id):
    tree, _ = _edit(quote_id, get_payload(), lambda a: a.remove_item(group_id, item_id))
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items/<item_id>/details', methods=['POST'])
@require_login
def add_detail(quote_id, group_id, item_id):
    data = get_payload()
    fields = _detail_fields(data)
    tree, detail = _edit(quote_id, data, lambda a: a.add_detail(group_id, item_id, **fields))
    return _quote_response(tree, 201, detail_id=detail.id)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items/<item_id>/details/from-master', methods=['POST'])
@require_login
def add_detail_from_master(quote_id, group_id, item_id):
    """Add a line holding a snapshot of a master item."""
    data = get_payload()
    master_item_id = parse_int(data.get('master_item_id'), 'master_item_id', required=True)
    supplier_id = parse_int(data.get('supplier_id'), 'supplier_id')
    tree, detail = _edit(quote_id, data, lambda a: a.add_detail_from_master(
        group_id, item_id, master_item_id, supplier_id=supplier_id,
        quantity=data.get('quantity', 1), days=data.get('days', 1),
    ))
    return _quote_response(tree, 201, detail_id=detail.id)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items/<item_id>/details/<detail_id>', methods=['PATCH'])
@require_login
def update_detail(quote_id, group_id, item_id, detail_id):
    data = get_payload()
    fields = _detail_fields(data)
    tree, _ = _edit(quote_id, data, lambda a: a.update_detail(group_id, item_id, detail_id, **fields))
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/groups/<group_id>/items/<item_id>/details/<detail_id>', methods=['DELETE'])
@require_login
def remove_detail(quote_id, group_id, item_id, detail_id):
    tree, _ = _edit(quote_id, get_payload(), lambda a: a.remove_detail(group_id, item_id, detail_id))
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/apply-template', methods=['POST'])
@require_login
def apply_template(quote_id):
    """Replace the structure of the quote with a template."""
    data = get_payload()
    tree = quote_service.apply_template_to_quote(
        get_session(), quote_id,
        parse_int(data.get('template_id'), 'template_id', required=True),
        require_version(data),
    )
    return _quote_response(tree)


# -- workflow ---------------------------------------------------------------

@quotes_bp.route('/<int:quote_id>/status', methods=['POST'])
@require_login
def change_status(quote_id):
    """Move the quote through the review workflow. Approval and rejection need the admin role."""
    data = get_payload()
    target = parse_text(data.get('status'), 'status').strip().lower()
    if target in ('approved', 'rejected', 'under_review') and not g.user.is_admin():
        return jsonify({'status': 'error', 'message': 'Only admins can review quotes'}), 403

    tree = quote_service.change_quote_status(
        get_session(), quote_id, target,
        expected_version=require_version(data),
        actor_id=g.user.id,
        reason=parse_text(data.get('reason'), 'reason'),
    )
    return _quote_response(tree)


@quotes_bp.route('/<int:quote_id>/copy', methods=['POST'])
@require_login
def copy_quote(quote_id):
    data = get_payload()
    tree = quote_service.copy_quote(
        get_session(), quote_id,
        project_title=data.get('project_title'),
        customer_id=parse_int(data.get('customer_id'), 'customer_id'),
        customer_name_snapshot=parse_text(data.get('customer_name'), 'customer_name'),
        copy_structure_only=parse_bool(data.get('structure_only')),
        created_by=g.user.id,
    )
    return _quote_response(tree, 201)


@quotes_bp.route('/<int:quote_id>/convert', methods=['POST'])
@require_role('admin')
def convert_to_project(quote_id):
    """Convert an approved quote into a project."""
    data = get_payload()
    project = project_service.convert_quote_to_project(
        get_session(), quote_id,
        start_date=parse_date(data.get('start_date'), 'start_date'),
        end_date=parse_date(data.get('end_date'), 'end_date'),
        created_by=g.user.id,
    )
    return jsonify({'status': 'ok', 'project': project_to_dict(project)}), 201
