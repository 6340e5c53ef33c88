# Overview: Threaded tests proving payments, invoice numbering and supplier balances stay consistent under concurrent writers.

"""
Concurrency Tests

Uses a file-backed SQLite database (in-memory databases are per
connection) and one app context per worker thread, the way the API
serves concurrent requests.
"""

import threading
from decimal import Decimal

import pytest

from printshop import create_app
from printshop.errors import OverpaymentError
from printshop.extensions import db
from printshop.models import CashMovement, Invoice, InvoicePayment, Supplier
from printshop.services import cash_service, invoice_service, supplier_service


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })
    with app.app_context():
        db.create_all()
        cash_service.get_balance()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_threads(app, target, args_list):
    barrier = threading.Barrier(len(args_list))
    results = []
    errors = []
    lock = threading.Lock()

    def worker(*args):
        with app.app_context():
            try:
                barrier.wait()
                value = target(*args)
                with lock:
                    results.append(value)
            except Exception as exc:  # collected and asserted by the test
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


def test_two_half_payments_settle_invoice(file_app):
    with file_app.app_context():
        invoice = invoice_service.create_invoice(items=[{"quantity": 1, "unit_price": "120"}])
        invoice_id = invoice.id

    def pay(amount):
        payment = invoice_service.add_payment(
            invoice_id=invoice_id, amount=amount, payment_method="cash", payment_type="partial"
        )
        return payment.id

    results, errors = _run_threads(file_app, pay, [("60",), ("60",)])
    assert errors == []
    assert len(results) == 2

    with file_app.app_context():
        invoice = db.session.get(Invoice, invoice_id)
        assert invoice.paid_amount == Decimal("120.00")
        assert invoice.remaining_amount == Decimal("0.00")
        assert db.session.query(InvoicePayment).filter_by(invoice_id=invoice_id).count() == 2
        assert db.session.query(CashMovement).filter_by(movement_type="invoice_payment").count() == 2
        assert cash_service.get_balance().cash_balance == Decimal("120.00")
        assert cash_service.reconcile()["balanced"] is True


def test_concurrent_overpayment_is_refused(file_app):
    with file_app.app_context():
        invoice = invoice_service.create_invoice(items=[{"quantity": 1, "unit_price": "100"}])
        invoice_id = invoice.id

    def pay(amount):
        return invoice_service.add_payment(
            invoice_id=invoice_id, amount=amount, payment_method="bank", payment_type="partial"
        ).id

    results, errors = _run_threads(file_app, pay, [("70",), ("70",)])
    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], OverpaymentError)

    with file_app.app_context():
        invoice = db.session.get(Invoice, invoice_id)
        assert invoice.paid_amount == Decimal("70.00")
        assert invoice.remaining_amount == Decimal("30.00")
        assert cash_service.get_balance().bank_balance == Decimal("70.00")


def test_concurrent_invoices_get_unique_numbers(file_app):
    def create(_):
        return invoice_service.create_invoice(
            invoice_date="2026-06-01", items=[{"quantity": 1, "unit_price": "10"}]
        ).invoice_number

    results, errors = _run_threads(file_app, create, [(i,) for i in range(3)])
    assert errors == []
    assert sorted(results) == ["INV-2026-0001", "INV-2026-0002", "INV-2026-0003"]


def test_recalculation_keeps_concurrent_supplier_costs(file_app):
    with file_app.app_context():
        supplier = Supplier(name="Plates Co", type="printer", total_debt=Decimal("0"), is_active=True)
        db.session.add(supplier)
        db.session.commit()
        supplier_id = supplier.id

    def work(kind):
        if kind == "cost":
            return invoice_service.create_invoice(items=[
                {"quantity": 1, "unit_price": "50", "costs": [{"supplier_id": supplier_id, "amount": "10"}]},
            ]).id
        return supplier_service.recalculate_balance(supplier_id=supplier_id).id

    results, errors = _run_threads(file_app, work, [("cost",), ("recalc",), ("cost",), ("recalc",)])
    assert errors == []
    assert len(results) == 4

    with file_app.app_context():
        supplier = db.session.get(Supplier, supplier_id)
        assert supplier.total_debt == Decimal("20.00")
        assert supplier_service.derived_payable(supplier_id) == Decimal("20.00")
