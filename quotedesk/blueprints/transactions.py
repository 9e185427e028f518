"""Transactions blueprint - project income and expenses (JSON API)."""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.models import ProjectTransaction
from quotedesk.services import transaction_service
from quotedesk.utils.number_format import json_amount
from quotedesk.utils.request_parsing import get_payload, parse_date, parse_int, parse_text

transactions_bp = Blueprint('transactions', __name__, url_prefix='/transactions')


def transaction_to_dict(transaction: ProjectTransaction) -> dict:
    return {
        'id': transaction.id,
        'project_id': transaction.project_id,
        'project_name': transaction.project.name if transaction.project else None,
        'type': transaction.type,
        'partner_name': transaction.partner_name,
        'item_name': transaction.item_name,
        'amount': json_amount(transaction.amount),
        'due_date': transaction.due_date.isoformat() if transaction.due_date else None,
        'status': transaction.status,
        'tax_invoice_status': transaction.tax_invoice_status,
        'notes': transaction.notes,
        'created_at': transaction.created_at.isoformat() if transaction.created_at else None,
    }


@transactions_bp.route('/')
@require_login
def list_transactions():
    """List transactions filtered by project, status, type and due date range."""
    transactions = transaction_service.list_transactions(
        get_session(),
        project_id=parse_int(request.args.get('project_id'), 'project_id'),
        status=request.args.get('status') or None,
        type=request.args.get('type') or None,
        due_date_from=parse_date(request.args.get('due_date_from'), 'due_date_from'),
        due_date_to=parse_date(request.args.get('due_date_to'), 'due_date_to'),
    )
    return jsonify({'status': 'ok', 'transactions': [transaction_to_dict(t) for t in transactions]})


@transactions_bp.route('/', methods=['POST'])
@require_login
def create_transaction():
    data = get_payload()
    transaction = transaction_service.create_transaction(
        get_session(),
        project_id=parse_int(data.get('project_id'), 'project_id', required=True),
        type=parse_text(data.get('type'), 'type'),
        partner_name=data.get('partner_name'),
        item_name=data.get('item_name'),
        amount=data.get('amount'),
        due_date=parse_date(data.get('due_date'), 'due_date'),
        notes=parse_text(data.get('notes'), 'notes') or None,
        created_by=g.user.id,
    )
    return jsonify({'status': 'ok', 'transaction': transaction_to_dict(transaction)}), 201


@transactions_bp.route('/<int:transaction_id>')
@require_login
def get_transaction(transaction_id):
    transaction = transaction_service.get_transaction(get_session(), transaction_id)
    return jsonify({'status': 'ok', 'transaction': transaction_to_dict(transaction)})


@transactions_bp.route('/<int:transaction_id>', methods=['PATCH'])
@require_login
def update_transaction(transaction_id):
    """Update status, tax invoice status, partner, item, amount, due date or notes."""
    data = get_payload()
    changes = {k: v for k, v in data.items() if k in transaction_service.EDITABLE_FIELDS}
    if 'due_date' in changes:
        changes['due_date'] = parse_date(changes['due_date'], 'due_date')
    transaction = transaction_service.update_transaction(
        get_session(), transaction_id, changes, actor_id=g.user.id,
    )
    return jsonify({'status': 'ok', 'transaction': transaction_to_dict(transaction)})


@transactions_bp.route('/<int:transaction_id>', methods=['DELETE'])
@require_login
def delete_transaction(transaction_id):
    transaction_service.delete_transaction(get_session(), transaction_id)
    return jsonify({'status': 'ok'})
