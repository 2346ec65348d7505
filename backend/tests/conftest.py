"""
Pytest fixtures for stock ledger tests.

Provides an in-memory database, two isolated tenants (merchants) with
locations, users and products, and ready-made callers for each tenant.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Merchant, Location, User, UserRole, Product
from stockledger.services.tenant_service import Caller


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TRANSACTION_FEE_BPS': 0,
        'LOW_STOCK_ALERTS_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def merchant_a(db_session):
    """Create Merchant A (first tenant)."""
    merchant = Merchant(name="Merchant A - Acme Corp", email="owner@acme.com")
    db_session.add(merchant)
    db_session.commit()
    return merchant


@pytest.fixture(scope='function')
def merchant_b(db_session):
    """Create Merchant B (second tenant)."""
    merchant = Merchant(name="Merchant B - Beta Inc", email="owner@beta.com")
    db_session.add(merchant)
    db_session.commit()
    return merchant


@pytest.fixture(scope='function')
def location_a(db_session, merchant_a):
    """Default location of Merchant A."""
    location = Location(merchant_id=merchant_a.id, name="Main Warehouse", is_default=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def location_a2(db_session, merchant_a, location_a):
    """Second location of Merchant A."""
    location = Location(merchant_id=merchant_a.id, name="Shop Floor")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def location_b(db_session, merchant_b):
    """Default location of Merchant B."""
    location = Location(merchant_id=merchant_b.id, name="Beta Depot", is_default=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def admin_a(db_session, merchant_a):
    """Create admin user in Merchant A (receives low-stock alerts)."""
    user = User(
        merchant_id=merchant_a.id,
        email="admin_a@acme.com",
        first_name="Ada",
        role=UserRole.MERCHANT_ADMIN,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff_a(db_session, merchant_a):
    """Create staff user in Merchant A."""
    user = User(
        merchant_id=merchant_a.id,
        email="staff_a@acme.com",
        first_name="Sam",
        role=UserRole.MERCHANT_STAFF,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_b(db_session, merchant_b):
    """Create admin user in Merchant B."""
    user = User(
        merchant_id=merchant_b.id,
        email="admin_b@beta.com",
        first_name="Bea",
        role=UserRole.MERCHANT_ADMIN,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def platform_owner(db_session):
    """Create a platform owner (no merchant)."""
    user = User(email="owner@stockledger.local", role=UserRole.PLATFORM_OWNER)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def caller_a(admin_a, merchant_a):
    return Caller(user_id=admin_a.id, merchant_id=merchant_a.id, role=UserRole.MERCHANT_ADMIN)


@pytest.fixture(scope='function')
def staff_caller_a(staff_a, merchant_a):
    return Caller(user_id=staff_a.id, merchant_id=merchant_a.id, role=UserRole.MERCHANT_STAFF)


@pytest.fixture(scope='function')
def caller_b(admin_b, merchant_b):
    return Caller(user_id=admin_b.id, merchant_id=merchant_b.id, role=UserRole.MERCHANT_ADMIN)


@pytest.fixture(scope='function')
def product_a(db_session, merchant_a):
    """Create Product in Merchant A (threshold 5)."""
    product = Product(
        merchant_id=merchant_a.id,
        sku="PROD-A-001",
        name="Product A",
        price_cents=1000,
        cost_price_cents=600,
        low_stock_threshold=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a2(db_session, merchant_a):
    """Second product in Merchant A (threshold 2)."""
    product = Product(
        merchant_id=merchant_a.id,
        sku="PROD-A-002",
        name="Product A2",
        price_cents=250,
        cost_price_cents=100,
        low_stock_threshold=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, merchant_b):
    """Create Product in Merchant B."""
    product = Product(
        merchant_id=merchant_b.id,
        sku="PROD-B-001",
        name="Product B",
        price_cents=2000,
        cost_price_cents=1200,
    )
    db_session.add(product)
    db_session.commit()
    return product
