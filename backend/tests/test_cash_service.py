# Overview: Pytest coverage for the cash ledger: transfers, opening balances, adjustments, reconciliation.

from decimal import Decimal

import pytest

from printshop.errors import SameAccountTransferError, ValidationError
from printshop.extensions import db
from printshop.models import CashMovement
from printshop.services import cash_service

from conftest import stored_balance


@pytest.fixture
def opening(db_session, balance):
    """cash=100, bank=0"""
    return cash_service.set_initial(cash_balance="100", bank_balance="0")


class TestTransfer:
    def test_cash_to_bank(self, db_session, opening):
        out_leg, in_leg = cash_service.transfer(from_source="cash", to_source="bank", amount="50")

        balance = stored_balance()
        assert balance.cash_balance == Decimal("50.00")
        assert balance.bank_balance == Decimal("50.00")

        assert out_leg.movement_type == "transfer_out"
        assert out_leg.source == "cash"
        assert in_leg.movement_type == "transfer_in"
        assert in_leg.source == "bank"
        assert out_leg.amount == in_leg.amount == Decimal("50.00")

    def test_same_account_rejected(self, db_session, opening):
        before = db_session.query(CashMovement).count()
        with pytest.raises(SameAccountTransferError):
            cash_service.transfer(from_source="cash", to_source="cash", amount="10")

        balance = stored_balance()
        assert balance.cash_balance == Decimal("100.00")
        assert balance.bank_balance == Decimal("0.00")
        assert db_session.query(CashMovement).count() == before

    def test_overdraw_is_recorded(self, db_session, opening):
        cash_service.transfer(from_source="bank", to_source="cash", amount="30")
        balance = stored_balance()
        assert balance.bank_balance == Decimal("-30.00")
        assert balance.cash_balance == Decimal("130.00")

    @pytest.mark.parametrize("amount", ["0", "-1", None])
    def test_amount_must_be_positive(self, db_session, opening, amount):
        with pytest.raises(ValidationError):
            cash_service.transfer(from_source="cash", to_source="bank", amount=amount)


class TestInitialAndAdjust:
    def test_set_initial_overwrites_and_logs(self, db_session, balance):
        cash_service.adjust(source="cash", amount="12.34", description="float")
        cash_service.set_initial(cash_balance="1000", bank_balance="5000")

        balance = stored_balance()
        assert balance.cash_balance == Decimal("1000.00")
        assert balance.bank_balance == Decimal("5000.00")

        initials = db_session.query(CashMovement).filter_by(movement_type="initial").all()
        assert sorted(m.source for m in initials) == ["bank", "cash"]

    def test_negative_initial_rejected(self, db_session, balance):
        with pytest.raises(ValidationError):
            cash_service.set_initial(cash_balance="-1", bank_balance="0")

    def test_adjust_keeps_sign(self, db_session, opening):
        movement = cash_service.adjust(source="cash", amount="-25", description="Till count difference")
        assert movement.movement_type == "expense"
        assert movement.amount == Decimal("-25.00")
        assert movement.reference_type == "adjustment"
        assert stored_balance().cash_balance == Decimal("75.00")

        movement = cash_service.adjust(source="bank", amount="10", description="Interest")
        assert movement.movement_type == "income"
        assert stored_balance().bank_balance == Decimal("10.00")

    def test_adjust_requires_description(self, db_session, opening):
        with pytest.raises(ValidationError):
            cash_service.adjust(source="cash", amount="5", description="  ")

    def test_record_movement_rejects_zero(self, app, db_session, balance):
        with pytest.raises(ValidationError):
            cash_service.record_movement(movement_type="income", source="cash", amount="0")
        db.session.rollback()


class TestReconcile:
    def test_balanced_after_mixed_activity(self, db_session, opening):
        cash_service.transfer(from_source="cash", to_source="bank", amount="40")
        cash_service.adjust(source="bank", amount="-5", description="Bank fee")
        cash_service.adjust(source="cash", amount="2.50", description="Found coins")

        report = cash_service.reconcile()
        assert report["balanced"] is True
        assert report["cash"]["stored"] == "62.50"
        assert report["cash"]["derived"] == "62.50"
        assert report["bank"]["stored"] == "35.00"

    def test_detects_drift(self, db_session, opening):
        balance = stored_balance()
        balance.cash_balance = Decimal("99.00")
        db_session.commit()

        report = cash_service.reconcile()
        assert report["balanced"] is False
        assert report["cash"]["difference"] == "-1.00"


class TestMovementListing:
    def test_filters(self, db_session, opening):
        cash_service.transfer(from_source="cash", to_source="bank", amount="10")

        rows, total = cash_service.list_movements(source="bank")
        assert total == 2
        assert {r.movement_type for r in rows} == {"initial", "transfer_in"}

        rows, total = cash_service.list_movements(movement_type="transfer_out")
        assert total == 1
        assert rows[0].source == "cash"
