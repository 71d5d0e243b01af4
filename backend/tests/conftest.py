"""
Pytest fixtures for the order tracking backend tests.

Provides test database setup, domain factories, and test client.
"""

from decimal import Decimal

import pytest

from ordertrack import create_app
from ordertrack.extensions import db
from ordertrack.models import Customer, Delivery, Order, Payment, ProductTemplate
from ordertrack.time_utils import today


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'DEBUG',
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
def make_customer(db_session):
    """Factory: insert a customer row directly."""
    def _make(name="Alice", balance=0, discount_percent=0, birthday=None, phone=None):
        customer = Customer(
            name=name,
            phone=phone,
            birthday=birthday,
            balance=Decimal(balance),
            discount_percent=Decimal(discount_percent),
        )
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def make_order(db_session):
    """Factory: insert an order row with a given final_amount (no repricing)."""
    def _make(customer, quantity=10, final_amount=1000, status="pending", order_date=None, product="Rice", unit="bag"):
        order = Order(
            customer_id=customer.id,
            product=product,
            quantity=quantity,
            unit=unit,
            unit_price=Decimal(final_amount) / quantity,
            line_total=Decimal(final_amount),
            discount_percent=Decimal("0"),
            discount_amount=Decimal("0"),
            discount_cash=Decimal("0"),
            shipping_fee=Decimal("0"),
            final_amount=Decimal(final_amount),
            order_date=order_date or today(),
            status=status,
        )
        db_session.add(order)
        db_session.commit()
        return order
    return _make


@pytest.fixture(scope='function')
def make_entry(db_session):
    """Factory: insert a ledger row directly, bypassing reconciliation."""
    def _make(customer, amount, entry_type="payment", order=None, payment_date=None):
        entry = Payment(
            customer_id=customer.id,
            order_id=order.id if order else None,
            amount=Decimal(amount),
            type=entry_type,
            payment_date=payment_date or today(),
        )
        db_session.add(entry)
        db_session.commit()
        return entry
    return _make


@pytest.fixture(scope='function')
def make_delivery(db_session):
    def _make(order, quantity, delivery_date=None):
        delivery = Delivery(order_id=order.id, quantity=quantity, delivery_date=delivery_date or today())
        db_session.add(delivery)
        db_session.commit()
        return delivery
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name="Rice 5kg", default_qty=10, unit="bag", default_price=50000, is_active=True):
        product = ProductTemplate(
            name=name,
            default_qty=default_qty,
            unit=unit,
            default_price=Decimal(default_price),
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make
