import pytest
from decimal import Decimal
import os
import uuid

# Tests run against an in-memory SQLite database unless TEST_DATABASE_URL is set
os.environ['DATABASE_URL'] = os.environ.get('TEST_DATABASE_URL', 'sqlite://')

from quotedesk import create_app
from quotedesk.database import get_session, create_schema, drop_schema
from quotedesk.models import AppUser, Supplier, Customer, MasterItem


class FakeRepository:
    """In-memory stand-in for SqlRepository used by the pure core tests."""

    def __init__(self, items=None, suppliers=None):
        self.items = dict(items or {})
        self.suppliers = dict(suppliers or {})

    def get_master_item(self, item_id):
        return self.items.get(item_id)

    def get_master_supplier(self, supplier_id):
        return self.suppliers.get(supplier_id)


@pytest.fixture
def fake_repository():
    """Catalog with one supplier, a priced item and an item without cost price."""
    supplier = Supplier(id=7, name='Stage Rentals')
    items = {
        1: MasterItem(
            id=1, name='LED wall', description='3x2m module', unit='set',
            unit_price=Decimal('500000'), cost_price=Decimal('350000'),
            is_service=False, active=True, supplier_id=7,
        ),
        2: MasterItem(
            id=2, name='MC', description=None, unit=None,
            unit_price=Decimal('100000'), cost_price=None,
            is_service=True, active=True, supplier_id=None,
        ),
        3: MasterItem(
            id=3, name='Old speaker', unit='ea',
            unit_price=Decimal('10000'), cost_price=Decimal('5000'),
            is_service=False, active=False, supplier_id=None,
        ),
    }
    return FakeRepository(items=items, suppliers={7: supplier})


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    return app


@pytest.fixture(scope='function')
def session(app):
    """Create database session on a fresh schema."""
    create_schema()
    session = get_session()
    yield session
    session.rollback()
    session.remove()
    drop_schema()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


def _make_user(session, role, name):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(
        email=f'{name.lower()}-{suffix}@test.com',
        full_name=name,
        role=role,
        active=True
    )
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def user(session):
    """Create a member user."""
    return _make_user(session, 'member', 'Member')


@pytest.fixture(scope='function')
def admin(session):
    """Create an admin user."""
    return _make_user(session, 'admin', 'Admin')


@pytest.fixture(scope='function')
def user_id(user):
    return user.id


@pytest.fixture(scope='function')
def admin_id(admin):
    return admin.id


@pytest.fixture(scope='function')
def authenticated_client(client, user_id):
    """Create client logged in as a member."""
    with client.session_transaction() as sess:
        sess['user_id'] = user_id
    return client


@pytest.fixture(scope='function')
def admin_client(app, session, admin_id):
    """Create a second client logged in as an admin."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['user_id'] = admin_id
    return client


@pytest.fixture(scope='function')
def catalog(session):
    """Supplier, customer and two master items. Returns their ids."""
    supplier = Supplier(name='Stage Rentals')
    customer = Customer(name='Acme Corp', contact_name='Jane Doe')
    session.add_all([supplier, customer])
    session.flush()

    led_wall = MasterItem(
        name='LED wall', unit='set', unit_price=Decimal('500000'),
        cost_price=Decimal('350000'), supplier_id=supplier.id
    )
    mc = MasterItem(name='MC', unit='person', unit_price=Decimal('100000'), cost_price=None, is_service=True)
    session.add_all([led_wall, mc])
    session.commit()

    return {
        'supplier_id': supplier.id,
        'customer_id': customer.id,
        'led_wall_id': led_wall.id,
        'mc_id': mc.id,
    }
