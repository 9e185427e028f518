"""Catalog blueprint - master items, suppliers and customers (JSON API)."""
from flask import Blueprint, request, jsonify
from sqlalchemy import or_, func
from quotedesk.database import get_session
from quotedesk.exceptions import NotFoundError, ValidationError
from quotedesk.middleware import require_login, require_role
from quotedesk.models import MasterItem, Supplier, Customer
from quotedesk.utils.number_format import MONEY_PLACES, to_decimal, json_amount
from quotedesk.utils.request_parsing import get_payload, parse_int, parse_bool, parse_text
import logging

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


def _required_name(data: dict) -> str:
    name = parse_text(data.get('name'), 'name').strip()
    if not name:
        raise ValidationError('Name is required', field='name')
    return name


def _optional_text(data: dict, key: str):
    return parse_text(data.get(key), key).strip() or None


def _item_to_dict(item: MasterItem) -> dict:
    return {
        'id': item.id,
        'name': item.name,
        'description': item.description,
        'unit': item.unit,
        'unit_price': json_amount(item.unit_price),
        'cost_price': json_amount(item.cost_price),
        'is_service': item.is_service,
        'active': item.active,
        'supplier_id': item.supplier_id,
        'supplier_name': item.supplier.name if item.supplier else None,
    }


def _get_supplier(session, supplier_id):
    supplier = session.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise NotFoundError(f'Supplier {supplier_id} not found.')
    return supplier


def _apply_item_fields(session, item: MasterItem, data: dict):
    if 'name' in data:
        item.name = _required_name(data)
    if 'description' in data:
        item.description = _optional_text(data, 'description')
    if 'unit' in data:
        item.unit = _optional_text(data, 'unit')
    if 'unit_price' in data:
        item.unit_price = to_decimal(data.get('unit_price'), 'unit_price', places=MONEY_PLACES)
    if 'cost_price' in data:
        # Empty cost price means unknown; snapshots estimate it
        cost_price = data.get('cost_price')
        item.cost_price = None if cost_price in (None, '') else to_decimal(cost_price, 'cost_price', places=MONEY_PLACES)
    if 'is_service' in data:
        item.is_service = parse_bool(data.get('is_service'))
    if 'supplier_id' in data:
        supplier_id = parse_int(data.get('supplier_id'), 'supplier_id')
        item.supplier_id = _get_supplier(session, supplier_id).id if supplier_id is not None else None


# -- master items -----------------------------------------------------------

@catalog_bp.route('/items')
@require_login
def list_items():
    """List master items (active only unless ?all=1)."""
    session = get_session()
    search_query = request.args.get('q', '').strip()

    query = session.query(MasterItem)
    if not parse_bool(request.args.get('all')):
        query = query.filter(MasterItem.active == True)
    if search_query:
        query = query.filter(or_(
            func.lower(MasterItem.name).like(f'%{search_query.lower()}%'),
            func.lower(MasterItem.description).like(f'%{search_query.lower()}%')
        ))

    items = query.order_by(MasterItem.name).all()
    return jsonify({'status': 'ok', 'items': [_item_to_dict(i) for i in items]})


@catalog_bp.route('/items', methods=['POST'])
@require_login
def create_item():
    session = get_session()
    data = get_payload()

    item = MasterItem(name=_required_name(data), unit_price=0)
    try:
        _apply_item_fields(session, item, data)
        session.add(item)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Master item {item.id} '{item.name}' created")
    return jsonify({'status': 'ok', 'item': _item_to_dict(item)}), 201


@catalog_bp.route('/items/<int:item_id>', methods=['PATCH'])
@require_login
def update_item(item_id):
    """Update a master item. Quote lines created earlier keep their snapshot."""
    session = get_session()
    item = session.query(MasterItem).filter(MasterItem.id == item_id).first()
    if not item:
        raise NotFoundError(f'Master item {item_id} not found.')

    try:
        _apply_item_fields(session, item, get_payload())
        session.commit()
    except Exception:
        session.rollback()
        raise

    return jsonify({'status': 'ok', 'item': _item_to_dict(item)})


@catalog_bp.route('/items/<int:item_id>', methods=['DELETE'])
@require_role('admin')
def deactivate_item(item_id):
    """Deactivate a master item (kept for lines that reference it)."""
    session = get_session()
    item = session.query(MasterItem).filter(MasterItem.id == item_id).first()
    if not item:
        raise NotFoundError(f'Master item {item_id} not found.')

    item.active = False
    session.commit()
    logger.info(f"Master item {item_id} deactivated")
    return jsonify({'status': 'ok'})


# -- suppliers --------------------------------------------------------------

@catalog_bp.route('/suppliers')
@require_login
def list_suppliers():
    suppliers = get_session().query(Supplier).order_by(Supplier.name).all()
    return jsonify({
        'status': 'ok',
        'suppliers': [
            {'id': s.id, 'name': s.name, 'contact_name': s.contact_name, 'phone': s.phone, 'email': s.email}
            for s in suppliers
        ],
    })


@catalog_bp.route('/suppliers', methods=['POST'])
@require_login
def create_supplier():
    session = get_session()
    data = get_payload()

    supplier = Supplier(
        name=_required_name(data),
        contact_name=_optional_text(data, 'contact_name'),
        phone=_optional_text(data, 'phone'),
        email=_optional_text(data, 'email'),
        notes=_optional_text(data, 'notes'),
    )
    try:
        session.add(supplier)
        session.commit()
    except Exception:
        session.rollback()
        raise

    return jsonify({'status': 'ok', 'supplier': {'id': supplier.id, 'name': supplier.name}}), 201


# -- customers --------------------------------------------------------------

@catalog_bp.route('/customers')
@require_login
def list_customers():
    session = get_session()
    search_query = request.args.get('q', '').strip()

    query = session.query(Customer).filter(Customer.active == True)
    if search_query:
        query = query.filter(func.lower(Customer.name).like(f'%{search_query.lower()}%'))

    customers = query.order_by(Customer.name).all()
    return jsonify({
        'status': 'ok',
        'customers': [
            {'id': c.id, 'name': c.name, 'contact_name': c.contact_name, 'phone': c.phone, 'email': c.email}
            for c in customers
        ],
    })


@catalog_bp.route('/customers', methods=['POST'])
@require_login
def create_customer():
    session = get_session()
    data = get_payload()

    customer = Customer(
        name=_required_name(data),
        business_number=_optional_text(data, 'business_number'),
        contact_name=_optional_text(data, 'contact_name'),
        phone=_optional_text(data, 'phone'),
        email=_optional_text(data, 'email'),
        address=_optional_text(data, 'address'),
        notes=_optional_text(data, 'notes'),
    )
    try:
        session.add(customer)
        session.commit()
    except Exception:
        session.rollback()
        raise

    return jsonify({'status': 'ok', 'customer': {'id': customer.id, 'name': customer.name}}), 201
