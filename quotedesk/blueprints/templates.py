"""Templates blueprint - reusable quote structures (JSON API)."""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login, require_role
from quotedesk.models import QuoteTemplate
from quotedesk.services import template_service
from quotedesk.utils.request_parsing import get_payload, parse_int, parse_bool

templates_bp = Blueprint('templates', __name__, url_prefix='/templates')


def _template_to_dict(template: QuoteTemplate, include_data: bool = False) -> dict:
    data = {
        'id': template.id,
        'name': template.name,
        'category': template.category,
        'description': template.description,
        'is_active': template.is_active,
        'group_count': len(template.template_data.get('groups', [])),
    }
    if include_data:
        data['template_data'] = template.template_data
    return data


@templates_bp.route('/')
@require_login
def list_templates():
    templates = template_service.list_templates(
        get_session(),
        category=request.args.get('category') or None,
        include_inactive=parse_bool(request.args.get('all')),
    )
    return jsonify({'status': 'ok', 'templates': [_template_to_dict(t) for t in templates]})


@templates_bp.route('/<int:template_id>')
@require_login
def get_template(template_id):
    data = template_service.get_template_data(get_session(), template_id)
    return jsonify({'status': 'ok', 'template_data': data})


@templates_bp.route('/', methods=['POST'])
@require_login
def create_template():
    """Create a template from a posted structure."""
    data = get_payload()
    template = template_service.create_template(
        get_session(),
        name=data.get('name'),
        template_data={'groups': data.get('groups')},
        category=data.get('category') or 'general',
        description=data.get('description'),
        created_by=g.user.id,
    )
    return jsonify({'status': 'ok', 'template': _template_to_dict(template, include_data=True)}), 201


@templates_bp.route('/from-quote/<int:quote_id>', methods=['POST'])
@require_login
def save_quote_as_template(quote_id):
    """Store the structure of an existing quote as a template."""
    data = get_payload()
    template = template_service.save_quote_as_template(
        get_session(), quote_id,
        name=data.get('name'),
        category=data.get('category') or 'general',
        description=data.get('description'),
        created_by=g.user.id,
    )
    return jsonify({'status': 'ok', 'template': _template_to_dict(template, include_data=True)}), 201


@templates_bp.route('/<int:template_id>', methods=['DELETE'])
@require_role('admin')
def deactivate_template(template_id):
    template_service.deactivate_template(get_session(), template_id)
    return jsonify({'status': 'ok'})
