"""
Pytest fixtures for the stock ledger backend tests.

Provides an in-memory database, two tenants with users, operators,
suppliers and products, plus helpers to seed stock directly.
"""

from datetime import datetime, timedelta

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Organization, User, Supplier, Product, Purchase, Instance, Sale
from stockroom.models.auth import ROLE_ADMIN, ROLE_STAFF
from stockroom.models.inventory import PURCHASE_CONFIRMED, STATUS_IN_STOCK, STATUS_SOLD
from stockroom.services import identity_service
from stockroom.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"
ADMIN_A_PIN = "1234"
ADMIN_B_PIN = "9999"
STAFF_A_PIN = "5555"
OPERATOR_A_PIN = "4321"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PIN_HASH_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def _make_user(db_session, org, username, role, pin, name):
    user = User(
        org_id=org.id,
        username=username,
        email=f"{username}@{org.code.lower()}.com",
        name=name,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        security_pin=pin,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    """Admin in Organization A with a legacy plaintext PIN."""
    return _make_user(db_session, org_a, "admin_a", ROLE_ADMIN, ADMIN_A_PIN, "Ana Admin")


@pytest.fixture(scope='function')
def staff_a(db_session, org_a):
    """Non-admin user in Organization A who also has a PIN."""
    return _make_user(db_session, org_a, "staff_a", ROLE_STAFF, STAFF_A_PIN, "Sam Staff")


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return _make_user(db_session, org_b, "admin_b", ROLE_ADMIN, ADMIN_B_PIN, "Bea Admin")


@pytest.fixture(scope='function')
def operator_a(db_session, org_a):
    """Field operator in Organization A (bcrypt PIN)."""
    return identity_service.create_operator(org_a.id, "Juan Perez", OPERATOR_A_PIN)


@pytest.fixture(scope='function')
def supplier_a(db_session, org_a):
    supplier = Supplier(org_id=org_a.id, name="Acme Distribution", tax_id="900123456")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def supplier_b(db_session, org_b):
    supplier = Supplier(org_id=org_b.id, name="Beta Wholesale", tax_id="800654321")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def product_a(db_session, org_a):
    """Create Product in Organization A."""
    product = Product(
        org_id=org_a.id,
        upc="7701234000011",
        sku="PHN-001",
        name="Phone X",
        base_price_cents=150000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    """Create Product in Organization B."""
    product = Product(
        org_id=org_b.id,
        upc="7709999000011",
        sku="PHN-B-001",
        name="Phone B",
        base_price_cents=90000,
    )
    db_session.add(product)
    db_session.commit()
    return product


def seed_stock(product, supplier, *, count=1, serials=None, created_ats=None,
               cost_cents=1000, status=STATUS_IN_STOCK):
    """
    Put units directly on a confirmed purchase (no reception number).

    created_ats, when given, sets each unit's creation time (and count).
    Returns the created instances in creation order.
    """
    if created_ats is None:
        base = datetime(2025, 1, 1, 12, 0, 0)
        created_ats = [base + timedelta(minutes=i) for i in range(count)]
    serials = serials or [None] * len(created_ats)

    sale = None
    if status == STATUS_SOLD:
        sale = Sale(org_id=product.org_id, status="COMPLETED", total_cents=0)
        db.session.add(sale)

    purchase = Purchase(
        org_id=product.org_id,
        supplier_id=supplier.id,
        status=PURCHASE_CONFIRMED,
        attendant_name="Seeder",
    )
    units = []
    for created_at, serial in zip(created_ats, serials):
        unit = Instance(
            product_id=product.id,
            serial_number=serial,
            status=status,
            cost_cents=cost_cents,
            created_at=created_at,
            updated_at=created_at,
            sale=sale,
        )
        purchase.instances.append(unit)
        units.append(unit)
    purchase.total_cost_cents = cost_cents * len(units)
    db.session.add(purchase)
    db.session.commit()
    return units


def in_stock_count(product_id: int) -> int:
    return db.session.query(Instance).filter_by(product_id=product_id, status=STATUS_IN_STOCK).count()


def get_auth_token(client, username: str, password: str = TEST_PASSWORD, org_code: str | None = None) -> str:
    """Helper to get auth token for a user."""
    payload = {'username': username, 'password': password}
    if org_code:
        payload['org_code'] = org_code
    response = client.post('/api/auth/login', json=payload)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
