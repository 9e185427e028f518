"""Projects blueprint - projects converted from quotes and their money (JSON API)."""
from flask import Blueprint, request, jsonify
from quotedesk.blueprints.transactions import transaction_to_dict
from quotedesk.database import get_session
from quotedesk.middleware import require_login, require_role
from quotedesk.models import Project
from quotedesk.services import project_service
from quotedesk.utils.number_format import json_amount
from quotedesk.utils.request_parsing import get_payload, parse_text

projects_bp = Blueprint('projects', __name__, url_prefix='/projects')


def project_to_dict(project: Project) -> dict:
    profit = project_service.planned_profit(project)
    return {
        'id': project.id,
        'quote_id': project.quote_id,
        'name': project.name,
        'customer_name': project.customer_name,
        'status': project.status,
        'total_revenue': json_amount(project.total_revenue),
        'total_cost': json_amount(project.total_cost),
        'net_profit': json_amount(profit['net_profit']),
        'profit_margin': float(profit['profit_margin']),
        'start_date': project.start_date.isoformat() if project.start_date else None,
        'end_date': project.end_date.isoformat() if project.end_date else None,
    }


@projects_bp.route('/')
@require_login
def list_projects():
    projects = project_service.list_projects(get_session(), status=request.args.get('status') or None)
    return jsonify({'status': 'ok', 'projects': [project_to_dict(p) for p in projects]})


@projects_bp.route('/<int:project_id>')
@require_login
def get_project(project_id):
    """Project with its transactions and the settled income/expense balance."""
    session = get_session()
    project = project_service.get_project(session, project_id)
    balance = project_service.project_balance(session, project_id)
    return jsonify({
        'status': 'ok',
        'project': project_to_dict(project),
        'transactions': [transaction_to_dict(t) for t in project.transactions],
        'balance': {key: json_amount(value) for key, value in balance.items()},
    })


@projects_bp.route('/<int:project_id>/status', methods=['POST'])
@require_role('admin')
def update_status(project_id):
    data = get_payload()
    project = project_service.update_project_status(
        get_session(), project_id, parse_text(data.get('status'), 'status'),
    )
    return jsonify({'status': 'ok', 'project': project_to_dict(project)})
