"""
Pytest fixtures for the print shop back-office tests.

Provides the application on an in-memory database, a per-test clean
database, the test client and small factories for master data.
"""

from decimal import Decimal

import pytest

from printshop import create_app
from printshop.extensions import db
from printshop.models import CashBalance, Customer, Supplier
from printshop.services import cash_service, invoice_service


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
def balance(db_session):
    """Cash balance row with zero balances."""
    return cash_service.get_balance()


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Acme Printing Client", phone="0100000001", is_active=True)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Supplier X", type="printer", total_debt=Decimal("0"), is_active=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def two_item_invoice(db_session, balance, customer, supplier):
    """
    qty 2 @ 50 (cost 20 to supplier X) + qty 1 @ 30, discount 10:
    subtotal 130, total 120, total_cost 20, profit 100.
    """
    return invoice_service.create_invoice(
        customer_id=customer.id,
        discount="10",
        items=[
            {
                "product_name": "Flyer A5",
                "quantity": 2,
                "unit_price": "50",
                "costs": [{"supplier_id": supplier.id, "cost_type": "printing", "amount": "20"}],
            },
            {"product_name": "Business cards", "quantity": 1, "unit_price": "30"},
        ],
    )


def stored_balance() -> CashBalance:
    """Re-read the balance row from the database."""
    db.session.expire_all()
    return db.session.get(CashBalance, CashBalance.SINGLETON_ID)
