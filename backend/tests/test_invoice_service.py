# Overview: Pytest coverage for the invoice engine: totals, payments, status workflow, deletion.

"""
Invoice Engine Tests

Covers:
- Derived totals (subtotal, total, total_cost, profit, remaining)
- Item cost is the raw sum of its costs, never multiplied by quantity
- Create/replace atomicity (a failure on item N leaves nothing behind)
- Payments: cash movement + balance in the same transaction, overpayment
- Status workflow and deletion rules
"""

from datetime import date
from decimal import Decimal

import pytest

from printshop.errors import (
    HasPaymentsError,
    InvalidStatusTransition,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from printshop.models import CashMovement, DocumentSequence, Invoice, InvoiceItem, ItemCost, Product, Supplier
from printshop.services import invoice_service, supplier_service
from printshop.services.document_service import next_document_number

from conftest import stored_balance


def _supplier_debt(db_session, supplier_id):
    db_session.expire_all()
    return db_session.get(Supplier, supplier_id).total_debt


class TestTotals:
    def test_two_item_invoice_totals(self, two_item_invoice):
        invoice = two_item_invoice
        assert invoice.subtotal == Decimal("130.00")
        assert invoice.discount == Decimal("10.00")
        assert invoice.total == Decimal("120.00")
        assert invoice.total_cost == Decimal("20.00")
        assert invoice.profit == Decimal("100.00")
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.remaining_amount == Decimal("120.00")
        assert invoice.status == "new"

    def test_item_cost_is_not_multiplied_by_quantity(self, db_session, balance):
        invoice = invoice_service.create_invoice(items=[
            {
                "product_name": "Banner",
                "quantity": 10,
                "unit_price": "5",
                "costs": [{"amount": "7", "is_internal": True}, {"amount": "3"}],
            },
        ])
        item = invoice.items[0]
        assert item.total_price == Decimal("50.00")
        assert item.total_cost == Decimal("10.00")
        assert item.profit == Decimal("40.00")
        assert invoice.total_cost == Decimal("10.00")

    def test_invoice_numbers_are_sequential_per_year(self, db_session, balance):
        first = invoice_service.create_invoice(
            invoice_date="2026-02-01", items=[{"quantity": 1, "unit_price": "1"}]
        )
        second = invoice_service.create_invoice(
            invoice_date="2026-03-01", items=[{"quantity": 1, "unit_price": "1"}]
        )
        other_year = invoice_service.create_invoice(
            invoice_date="2025-12-31", items=[{"quantity": 1, "unit_price": "1"}]
        )
        assert first.invoice_number == "INV-2026-0001"
        assert second.invoice_number == "INV-2026-0002"
        assert other_year.invoice_number == "INV-2025-0001"

    def test_walk_in_item_without_product(self, db_session, balance):
        invoice = invoice_service.create_invoice(items=[{"product_id": 999, "quantity": 1, "unit_price": "5"}])
        item = invoice.items[0]
        assert item.product_id is None
        assert item.product_name == "unspecified product"

    def test_product_name_defaults_from_catalog(self, db_session, balance):
        product = Product(name="Sticker sheet", default_price=Decimal("2.50"), is_active=True)
        db_session.add(product)
        db_session.commit()

        invoice = invoice_service.create_invoice(items=[{"product_id": product.id, "quantity": 4, "unit_price": "2.5"}])
        assert invoice.items[0].product_id == product.id
        assert invoice.items[0].product_name == "Sticker sheet"
        assert invoice.total == Decimal("10.00")

    def test_discount_cannot_exceed_subtotal(self, db_session, balance):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(discount="11", items=[{"quantity": 1, "unit_price": "10"}])
        assert "discount" in exc.value.fields


class TestCreateAtomicity:
    def test_invalid_item_n_leaves_nothing(self, db_session, balance):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(items=[
                {"product_name": "ok", "quantity": 1, "unit_price": "10"},
                {"product_name": "bad", "quantity": 0, "unit_price": "10"},
            ])
        assert "items.1.quantity" in exc.value.fields
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0
        assert db_session.query(DocumentSequence).count() == 0

    def test_unknown_supplier_rejected_before_writes(self, db_session, balance):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(items=[
                {"quantity": 1, "unit_price": "10", "costs": [{"supplier_id": 12345, "amount": "5"}]},
            ])
        assert db_session.query(Invoice).count() == 0

    def test_failure_mid_write_rolls_back_everything(self, db_session, balance, supplier, monkeypatch):
        real_add = supplier_service.add_item_cost
        calls = {"n": 0}

        def flaky_add(item, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("store failure")
            return real_add(item, **kwargs)

        monkeypatch.setattr(supplier_service, "add_item_cost", flaky_add)

        with pytest.raises(RuntimeError):
            invoice_service.create_invoice(items=[
                {"quantity": 1, "unit_price": "50", "costs": [{"supplier_id": supplier.id, "amount": "20"}]},
                {"quantity": 1, "unit_price": "30", "costs": [{"supplier_id": supplier.id, "amount": "10"}]},
            ])

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(ItemCost).count() == 0
        assert _supplier_debt(db_session, supplier.id) == Decimal("0.00")


class TestAmountLimits:
    def test_quantity_beyond_storage_is_rejected(self, db_session, balance):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(items=[
                {"quantity": "99999999999999999999", "unit_price": "9999999999"},
            ])
        assert "items.0.quantity" in exc.value.fields
        assert db_session.query(Invoice).count() == 0

    def test_line_total_above_money_limit_is_rejected(self, db_session, balance):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(items=[{"quantity": "1000000", "unit_price": "9999999"}])
        assert "items.0.quantity" in exc.value.fields
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(DocumentSequence).count() == 0

    def test_subtotal_above_money_limit_is_rejected(self, db_session, balance):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(items=[
                {"quantity": 1, "unit_price": "6000000000"},
                {"quantity": 1, "unit_price": "6000000000"},
            ])
        assert "items.1.quantity" in exc.value.fields
        assert db_session.query(Invoice).count() == 0

    def test_line_costs_above_money_limit_are_rejected(self, db_session, balance):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(items=[
                {
                    "quantity": 1,
                    "unit_price": "10",
                    "costs": [{"amount": "6000000000"}, {"amount": "6000000000"}],
                },
            ])
        assert "items.0.costs" in exc.value.fields
        assert db_session.query(ItemCost).count() == 0

    def test_largest_storable_line_is_accepted(self, db_session, balance):
        invoice = invoice_service.create_invoice(items=[{"quantity": 1, "unit_price": "9999999999.99"}])
        assert invoice.subtotal == Decimal("9999999999.99")

    def test_replacing_items_checks_limits(self, db_session, two_item_invoice):
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(
                invoice_id=two_item_invoice.id,
                patch={},
                items=[{"quantity": "1000000", "unit_price": "9999999"}],
            )
        db_session.expire_all()
        assert db_session.get(Invoice, two_item_invoice.id).total == Decimal("120.00")


class TestDocumentNumbers:
    def test_blank_period_is_rejected(self, db_session):
        with pytest.raises(ValueError):
            next_document_number(document_type="invoice", period="", prefix="INV")


class TestPayments:
    def test_full_cash_payment(self, db_session, two_item_invoice):
        payment = invoice_service.add_payment(
            invoice_id=two_item_invoice.id,
            amount="120",
            payment_method="cash",
            payment_type="full",
        )
        assert payment.amount == Decimal("120.00")

        invoice = invoice_service.get_invoice(two_item_invoice.id)
        assert invoice.paid_amount == Decimal("120.00")
        assert invoice.remaining_amount == Decimal("0.00")

        assert stored_balance().cash_balance == Decimal("120.00")
        assert stored_balance().bank_balance == Decimal("0.00")

        movements = db_session.query(CashMovement).filter_by(movement_type="invoice_payment").all()
        assert len(movements) == 1
        assert movements[0].source == "cash"
        assert movements[0].amount == Decimal("120.00")
        assert movements[0].reference_type == "invoice"
        assert movements[0].reference_id == invoice.id

    def test_partial_payments_accumulate(self, db_session, two_item_invoice):
        invoice_service.add_payment(invoice_id=two_item_invoice.id, amount="20", payment_method="cash", payment_type="deposit")
        invoice_service.add_payment(invoice_id=two_item_invoice.id, amount="50.50", payment_method="bank", payment_type="partial")

        invoice = invoice_service.get_invoice(two_item_invoice.id)
        assert invoice.paid_amount == Decimal("70.50")
        assert invoice.remaining_amount == Decimal("49.50")
        balance = stored_balance()
        assert balance.cash_balance == Decimal("20.00")
        assert balance.bank_balance == Decimal("50.50")

    def test_overpayment_rejected_without_side_effects(self, db_session, two_item_invoice):
        with pytest.raises(OverpaymentError):
            invoice_service.add_payment(
                invoice_id=two_item_invoice.id, amount="120.01", payment_method="cash", payment_type="full"
            )
        invoice = invoice_service.get_invoice(two_item_invoice.id)
        assert invoice.paid_amount == Decimal("0.00")
        assert db_session.query(CashMovement).count() == 0
        assert stored_balance().cash_balance == Decimal("0.00")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_non_positive_amount_rejected(self, db_session, two_item_invoice, amount):
        with pytest.raises(ValidationError):
            invoice_service.add_payment(
                invoice_id=two_item_invoice.id, amount=amount, payment_method="cash", payment_type="partial"
            )

    def test_unknown_method_rejected(self, db_session, two_item_invoice):
        with pytest.raises(ValidationError) as exc:
            invoice_service.add_payment(
                invoice_id=two_item_invoice.id, amount="10", payment_method="card", payment_type="partial"
            )
        assert "payment_method" in exc.value.fields

    def test_cancelled_invoice_refuses_payments(self, db_session, two_item_invoice):
        invoice_service.update_status(invoice_id=two_item_invoice.id, status="cancelled")
        with pytest.raises(ValidationError):
            invoice_service.add_payment(
                invoice_id=two_item_invoice.id, amount="10", payment_method="cash", payment_type="partial"
            )

    def test_discount_raise_never_makes_remaining_negative(self, db_session, two_item_invoice):
        invoice_service.add_payment(invoice_id=two_item_invoice.id, amount="120", payment_method="cash", payment_type="full")
        invoice = invoice_service.update_invoice(invoice_id=two_item_invoice.id, patch={"discount": "30"})
        assert invoice.total == Decimal("100.00")
        assert invoice.paid_amount == Decimal("120.00")
        assert invoice.remaining_amount == Decimal("0.00")


class TestUpdate:
    def test_replace_items_releases_old_costs(self, db_session, two_item_invoice, supplier):
        assert _supplier_debt(db_session, supplier.id) == Decimal("20.00")

        invoice = invoice_service.update_invoice(
            invoice_id=two_item_invoice.id,
            patch={"discount": "0"},
            items=[
                {
                    "product_name": "Poster",
                    "quantity": 3,
                    "unit_price": "10",
                    "costs": [{"supplier_id": supplier.id, "amount": "8"}],
                },
            ],
        )
        assert len(invoice.items) == 1
        assert invoice.subtotal == Decimal("30.00")
        assert invoice.total == Decimal("30.00")
        assert invoice.total_cost == Decimal("8.00")
        assert invoice.profit == Decimal("22.00")
        assert db_session.query(ItemCost).count() == 1
        assert _supplier_debt(db_session, supplier.id) == Decimal("8.00")

    def test_unknown_field_rejected(self, db_session, two_item_invoice):
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice_id=two_item_invoice.id, patch={"total": "1"})

    def test_missing_invoice(self, db_session, balance):
        with pytest.raises(NotFoundError):
            invoice_service.update_invoice(invoice_id=999, patch={"notes": "x"})


class TestStatusWorkflow:
    def test_forward_moves(self, db_session, two_item_invoice):
        for status in ("in_progress", "ready", "delivered"):
            invoice = invoice_service.update_status(invoice_id=two_item_invoice.id, status=status)
            assert invoice.status == status

    def test_backward_move_rejected(self, db_session, two_item_invoice):
        invoice_service.update_status(invoice_id=two_item_invoice.id, status="ready")
        with pytest.raises(InvalidStatusTransition):
            invoice_service.update_status(invoice_id=two_item_invoice.id, status="new")

    def test_cancelled_is_terminal(self, db_session, two_item_invoice):
        invoice_service.update_status(invoice_id=two_item_invoice.id, status="cancelled")
        with pytest.raises(InvalidStatusTransition):
            invoice_service.update_status(invoice_id=two_item_invoice.id, status="in_progress")

    def test_lenient_mode_allows_any_move(self):
        invoice_service.check_status_transition("delivered", "new", strict=False)
        invoice_service.check_status_transition("cancelled", "ready", strict=False)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            invoice_service.check_status_transition("new", "archived")


class TestDelete:
    def test_delete_unpaid_invoice_releases_supplier_payable(self, db_session, two_item_invoice, supplier):
        invoice_service.destroy_invoice(invoice_id=two_item_invoice.id)
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0
        assert db_session.query(ItemCost).count() == 0
        assert _supplier_debt(db_session, supplier.id) == Decimal("0.00")

    def test_delete_with_payments_refused(self, db_session, two_item_invoice):
        invoice_service.add_payment(invoice_id=two_item_invoice.id, amount="10", payment_method="cash", payment_type="deposit")
        with pytest.raises(HasPaymentsError):
            invoice_service.destroy_invoice(invoice_id=two_item_invoice.id)
        assert db_session.query(Invoice).count() == 1


class TestListing:
    def test_search_and_filters(self, db_session, two_item_invoice, customer):
        invoice_service.create_invoice(invoice_date=date(2020, 1, 5), items=[{"quantity": 1, "unit_price": "9"}])

        rows, total = invoice_service.list_invoices(search="Acme")
        assert total == 1
        assert rows[0].id == two_item_invoice.id

        rows, total = invoice_service.list_invoices(customer_id=customer.id)
        assert total == 1

        rows, total = invoice_service.list_invoices(date_to=date(2020, 12, 31))
        assert total == 1
        assert rows[0].invoice_date == date(2020, 1, 5)

        rows, total = invoice_service.list_invoices(status="new", limit=1, offset=0)
        assert total == 2
        assert len(rows) == 1
