"""
Pytest fixtures for the order backend tests.

Provides an in-memory database, a tenant with one dispensary, a customer,
a small catalog and a filled cart.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from cannasaas import create_app
from cannasaas.extensions import db
from cannasaas.models import (
    Cart,
    CartItem,
    Customer,
    Dispensary,
    Order,
    Organization,
    Product,
    ProductVariant,
)

# 12:00 in New York on 2025-06-01
NOW = datetime(2025, 6, 1, 16, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org(db_session):
    """Tenant with age verification on and no purchase limit."""
    org = Organization(
        name="Green Leaf Co",
        code="GLC",
        timezone="America/New_York",
        age_verification_required=True,
        medical_only=False,
        require_id_scan=False,
        daily_purchase_limit_grams=None,
    )
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def other_org(db_session):
    org = Organization(name="Other Tenant", code="OTH", timezone="America/New_York")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def dispensary(db_session, org):
    dispensary = Dispensary(
        org_id=org.id,
        name="Brooklyn",
        code="BK1",
        timezone="America/New_York",
        tax_jurisdiction="NY",
    )
    db_session.add(dispensary)
    db_session.commit()
    return dispensary


@pytest.fixture(scope='function')
def customer(db_session, org):
    customer = Customer(
        org_id=org.id,
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="555-0100",
        date_of_birth=date(1990, 1, 1),
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product(db_session, dispensary):
    product = Product(
        dispensary_id=dispensary.id,
        name="Blue Dream",
        category="flower",
        batch_number="BATCH-001",
        license_number="OCM-LIC-42",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant(db_session, product):
    """3.5g at $45.00 with 20 on hand."""
    variant = ProductVariant(
        product_id=product.id,
        name="3.5g",
        sku="BD-35",
        price_cents=4500,
        weight_grams=Decimal("3.5"),
        quantity=20,
        low_stock_threshold=5,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def cart(db_session, customer, dispensary, variant):
    """Two of the 3.5g variant: subtotal 9000 cents, 7g."""
    cart = Cart(customer_id=customer.id, dispensary_id=dispensary.id)
    db_session.add(cart)
    db_session.flush()
    db_session.add(CartItem(cart_id=cart.id, variant_id=variant.id, quantity=2, unit_price_cents=4500))
    db_session.commit()
    return cart


def make_order(session, customer, dispensary, *, status="completed", total_cents=1000,
               weight="1", created_at=None, number=None):
    """Insert an order row directly, bypassing checkout."""
    created_at = created_at or NOW - timedelta(hours=1)
    order = Order(
        order_number=number or f"ORD-TEST-{session.query(Order).count() + 1:04d}",
        customer_id=customer.id,
        dispensary_id=dispensary.id,
        org_id=dispensary.org_id,
        subtotal_cents=total_cents,
        tax_cents=0,
        excise_tax_cents=0,
        discount_cents=0,
        total_cents=total_cents,
        total_weight_grams=Decimal(weight),
        fulfillment_type="pickup",
        status=status,
        payment_status="refunded" if status == "refunded" else "captured",
        customer_name=customer.full_name,
        customer_email=customer.email,
        created_at=created_at,
    )
    session.add(order)
    session.commit()
    return order


def context_headers(org_id, customer_id=None, actor=None) -> dict:
    """Trusted gateway headers for route tests."""
    headers = {'X-Org-Id': str(org_id)}
    if customer_id is not None:
        headers['X-Customer-Id'] = str(customer_id)
    if actor is not None:
        headers['X-Actor-Id'] = str(actor)
    return headers
