# Overview: Service-layer operations for debts owed to the business, their repayments and debt accounts.

"""
Debt Ledger Service

A Debt tracks money owed to the business (a loan to a partner, a customer
tab). Repayments move money back into cash/bank through the cash ledger.

Creating a debt does not move cash unless DEBT_CREATION_MOVES_CASH is set,
in which case a `debt_created` outflow is recorded on the debt's source.
"""

from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, HasUnpaidDebtsError, NotFoundError, OverpaymentError
from ..extensions import db
from ..models import CashMovement, Debt, DebtAccount, DebtRepayment
from ..models.cash import SOURCES
from ..money import ZERO, money
from ..time_utils import today
from ..validation import (
    PAYMENT_METHODS,
    coerce_choice,
    coerce_date,
    coerce_id,
    coerce_money,
    coerce_text,
    field_error,
)
from . import cash_service
from .concurrency import lock_for_update, run_with_retry


DEBT_ACCOUNT_MUTABLE_FIELDS = {"name", "phone", "notes", "is_active"}

DEBT_STATUS_PAID = "paid"
DEBT_STATUS_UNPAID = "unpaid"


def require_account(account_id: int) -> DebtAccount:
    account = db.session.get(DebtAccount, account_id)
    if account is None:
        raise NotFoundError(f"Debt account {account_id} not found")
    return account


def require_debt(debt_id: int) -> Debt:
    debt = db.session.get(Debt, debt_id)
    if debt is None:
        raise NotFoundError(f"Debt {debt_id} not found")
    return debt


# =============================================================================
# DEBT ACCOUNTS
# =============================================================================

def list_accounts(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[DebtAccount], int]:
    query = db.session.query(DebtAccount)
    if not include_inactive:
        query = query.filter(DebtAccount.is_active.is_(True))
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(DebtAccount.name.ilike(like), DebtAccount.phone.ilike(like)))

    total = query.count()
    rows = query.order_by(DebtAccount.name.asc(), DebtAccount.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def create_account(*, patch: dict) -> DebtAccount:
    def _op() -> DebtAccount:
        account = DebtAccount(is_active=True)
        for k, v in patch.items():
            if k in DEBT_ACCOUNT_MUTABLE_FIELDS:
                setattr(account, k, v)
        db.session.add(account)
        db.session.commit()
        return account

    return run_with_retry(_op)


def update_account(*, account_id: int, patch: dict) -> DebtAccount:
    def _op() -> DebtAccount:
        account = require_account(account_id)
        for k, v in patch.items():
            if k in DEBT_ACCOUNT_MUTABLE_FIELDS:
                setattr(account, k, v)
        db.session.commit()
        return account

    return run_with_retry(_op)


def destroy_account(*, account_id: int) -> None:
    """
    Delete a debt account.

    Refused while any of its debts is unpaid. Settled debts stay in the
    ledger and are detached from the account.
    """
    def _op() -> None:
        account = require_account(account_id)
        unpaid = (
            db.session.query(Debt.id)
            .filter(Debt.debt_account_id == account.id, Debt.is_paid.is_(False))
            .count()
        )
        if unpaid:
            raise HasUnpaidDebtsError(
                f"Debt account has {unpaid} unpaid debt(s) and cannot be deleted",
            )
        for debt in list(account.debts):
            debt.debt_account_id = None
        db.session.flush()
        db.session.delete(account)
        db.session.commit()
        current_app.logger.info("Debt account %s deleted", account_id)

    return run_with_retry(_op)


# =============================================================================
# DEBTS
# =============================================================================

def list_debts(
    *,
    search: str | None = None,
    status: str | None = None,
    debt_account_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Debt], int]:
    query = db.session.query(Debt)
    if search and search.strip():
        query = query.filter(Debt.debtor_name.ilike(f"%{search.strip()}%"))
    if status:
        status = coerce_choice("status", status, (DEBT_STATUS_PAID, DEBT_STATUS_UNPAID))
        query = query.filter(Debt.is_paid.is_(status == DEBT_STATUS_PAID))
    if debt_account_id:
        query = query.filter(Debt.debt_account_id == debt_account_id)

    total = query.count()
    rows = query.order_by(Debt.debt_date.desc(), Debt.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def create_debt(
    *,
    debtor_name,
    source,
    amount,
    debt_date=None,
    due_date=None,
    debt_account_id=None,
    notes=None,
) -> Debt:
    debtor_name = coerce_text("debtor_name", debtor_name, max_length=100, required=True)
    source = coerce_choice("source", source, SOURCES)
    amount = coerce_money("amount", amount, strictly_positive=True)
    debt_date = coerce_date("debt_date", debt_date) or today()
    due_date = coerce_date("due_date", due_date)
    if due_date is not None and due_date < debt_date:
        raise field_error("due_date", "due_date cannot be before debt_date")
    debt_account_id = coerce_id("debt_account_id", debt_account_id)
    notes = coerce_text("notes", notes)

    def _op() -> Debt:
        if debt_account_id is not None:
            require_account(debt_account_id)

        debt = Debt(
            debtor_name=debtor_name,
            source=source,
            amount=amount,
            paid_amount=ZERO,
            remaining_amount=amount,
            is_paid=False,
            debt_date=debt_date,
            due_date=due_date,
            debt_account_id=debt_account_id,
            notes=notes,
        )
        db.session.add(debt)
        db.session.flush()

        if current_app.config.get("DEBT_CREATION_MOVES_CASH", False):
            cash_service.record_movement(
                movement_type="debt_created",
                source=source,
                amount=amount,
                description=f"Debt for {debtor_name}",
                reference_type="debt",
                reference_id=debt.id,
            )

        db.session.commit()
        current_app.logger.info("Debt %s created for %s: %s", debt.id, debtor_name, amount)
        return debt

    return run_with_retry(_op)


def repay(*, debt_id: int, amount, payment_method, notes=None, payment_date=None) -> DebtRepayment:
    """
    Record a repayment: 0 < amount <= remaining_amount.

    One transaction: DebtRepayment row, paid/remaining rewrite (is_paid
    flips exactly at zero), `debt_repayment` cash movement and balance
    increment.
    """
    amount = coerce_money("amount", amount, strictly_positive=True)
    payment_method = coerce_choice("payment_method", payment_method, PAYMENT_METHODS)
    notes = coerce_text("notes", notes)
    payment_date = coerce_date("payment_date", payment_date) or today()

    def _op() -> DebtRepayment:
        debt = lock_for_update(db.session.query(Debt).filter_by(id=debt_id)).first()
        if debt is None:
            raise NotFoundError(f"Debt {debt_id} not found")

        remaining = money(debt.remaining_amount)
        if amount > remaining:
            raise OverpaymentError(
                f"Repayment of {amount} exceeds the remaining amount {remaining}",
                fields={"amount": f"amount must be <= {remaining}"},
            )

        repayment = DebtRepayment(
            amount=amount,
            payment_method=payment_method,
            payment_date=payment_date,
            notes=notes,
        )
        debt.repayments.append(repayment)

        debt.paid_amount = money(debt.paid_amount) + amount
        debt.remaining_amount = money(debt.amount) - money(debt.paid_amount)
        debt.is_paid = debt.remaining_amount == ZERO
        db.session.flush()

        cash_service.record_movement(
            movement_type="debt_repayment",
            source=payment_method,
            amount=amount,
            description=f"Debt repayment from {debt.debtor_name}",
            reference_type="debt",
            reference_id=debt.id,
        )

        db.session.commit()
        current_app.logger.info(
            "Debt %s repaid %s via %s; remaining=%s", debt.id, amount, payment_method, debt.remaining_amount
        )
        return repayment

    return run_with_retry(_op)


def destroy_debt(*, debt_id: int) -> None:
    """
    Delete a debt with no repayments.

    If its creation moved cash, the outflow is reversed with an
    `adjustment` movement; movements themselves are never deleted.
    """
    def _op() -> None:
        debt = lock_for_update(db.session.query(Debt).filter_by(id=debt_id)).first()
        if debt is None:
            raise NotFoundError(f"Debt {debt_id} not found")
        if debt.repayments:
            raise ConflictError("Debt has repayments and cannot be deleted")

        created_movement = (
            db.session.query(CashMovement)
            .filter(
                CashMovement.movement_type == "debt_created",
                CashMovement.reference_type == "debt",
                CashMovement.reference_id == debt.id,
            )
            .first()
        )
        if created_movement is not None:
            cash_service.record_movement(
                movement_type="adjustment",
                source=created_movement.source,
                amount=money(created_movement.amount),
                description=f"Reversal of deleted debt {debt.id}",
                reference_type="debt",
                reference_id=debt.id,
            )

        db.session.delete(debt)
        db.session.commit()
        current_app.logger.info("Debt %s deleted", debt_id)

    return run_with_retry(_op)
