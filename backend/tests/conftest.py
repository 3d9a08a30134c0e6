"""
Pytest fixtures for stock ledger tests.

Provides test database setup, two isolated businesses with branches and
products, and a test client.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Branch, Business, Product
from stockledger.services import ledger_service


USER_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_OVERSELL': True,
        'RATE_LIMIT_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client with a clean rate-limit window."""
    app.extensions["rate_limit_store"].reset()
    return app.test_client()


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
def business_a(db_session):
    """Business A (first tenant)."""
    business = Business(name="Business A - Acme Retail", code="ACME", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    """Business B (second tenant)."""
    business = Business(name="Business B - Beta Stores", code="BETA", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def branch_a1(db_session, business_a):
    branch = Branch(business_id=business_a.id, name="Branch A1", code="A1")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_a2(db_session, business_a):
    branch = Branch(business_id=business_a.id, name="Branch A2", code="A2")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_b1(db_session, business_b):
    branch = Branch(business_id=business_b.id, name="Branch B1", code="B1")
    db_session.add(branch)
    db_session.commit()
    return branch


def _product(db_session, business, name, sku, price_cents):
    product = Product(
        business_id=business.id,
        name=name,
        sku=sku,
        cost_price_cents=price_cents // 2,
        sell_price_cents=price_cents,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, business_a):
    """Product in Business A, 1.50 each."""
    return _product(db_session, business_a, "Sugar 1kg", "SUG-1", 150)


@pytest.fixture(scope='function')
def product_a2(db_session, business_a):
    """Second product in Business A, 4.00 each."""
    return _product(db_session, business_a, "Cooking Oil 1L", "OIL-1", 400)


@pytest.fixture(scope='function')
def product_b(db_session, business_b):
    """Product in Business B."""
    return _product(db_session, business_b, "Rice 2kg", "RICE-2", 300)


@pytest.fixture(scope='function')
def stock(db_session):
    """Seed an opening balance: stock(business, branch, product, quantity)."""
    def _seed(business, branch, product, quantity):
        return ledger_service.record_opening_balance(
            business_id=business.id,
            branch_id=branch.id,
            product_id=product.id,
            user_id=USER_ID,
            quantity=quantity,
        )
    return _seed


def context_headers(business, branch=None, user_id: int = USER_ID) -> dict:
    """Identity headers normally injected by the upstream auth layer."""
    headers = {
        'X-Business-Id': str(business.id),
        'X-User-Id': str(user_id),
    }
    if branch is not None:
        headers['X-Branch-Id'] = str(branch.id)
    return headers
