# Overview: Service-layer operations for the cash ledger; the only code that changes a cash or bank balance.

"""
Cash Ledger Service

Every balance change is a pair written in one transaction:
- one append-only CashMovement row explaining the change
- one atomic UPDATE cash_balance SET <source> = <source> + :delta

record_movement() is the write primitive; invoice payments, debt
repayments, supplier payments, expenses and withdrawals all go through it
inside their own unit of work. Public operations in this module (transfer,
set_initial, adjust) own their transaction and commit.

Balances are allowed to go negative (overdrawn cash drawer, bank overdraft):
the ledger records what happened, it does not refuse it.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import SameAccountTransferError
from ..extensions import db
from ..models import CashBalance, CashMovement
from ..models.cash import MOVEMENT_TYPES, SOURCES, SOURCE_BANK, SOURCE_CASH
from ..money import ZERO, money
from ..time_utils import utcnow
from ..validation import coerce_choice, coerce_money, coerce_text, field_error
from .concurrency import ConcurrentWriteError, run_with_retry


_BALANCE_COLUMNS = {
    SOURCE_CASH: CashBalance.cash_balance,
    SOURCE_BANK: CashBalance.bank_balance,
}


# =============================================================================
# BALANCE ROW
# =============================================================================

def _ensure_balance_row() -> CashBalance:
    balance = db.session.get(CashBalance, CashBalance.SINGLETON_ID)
    if balance is not None:
        return balance
    balance = CashBalance(id=CashBalance.SINGLETON_ID, cash_balance=ZERO, bank_balance=ZERO)
    db.session.add(balance)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Another request created the singleton first
        raise ConcurrentWriteError("cash balance row created concurrently") from exc
    return balance


def get_balance() -> CashBalance:
    """Return the singleton balance row, creating it with zero balances if absent."""
    def _op() -> CashBalance:
        balance = db.session.get(CashBalance, CashBalance.SINGLETON_ID)
        if balance is None:
            balance = _ensure_balance_row()
            db.session.commit()
        return balance

    return run_with_retry(_op)


def _apply_delta(source: str, delta: Decimal) -> None:
    _ensure_balance_row()
    column = _BALANCE_COLUMNS[source]
    db.session.execute(
        update(CashBalance)
        .where(CashBalance.id == CashBalance.SINGLETON_ID)
        .values({column: column + delta})
    )


# =============================================================================
# WRITE PRIMITIVE
# =============================================================================

def record_movement(
    *,
    movement_type: str,
    source: str,
    amount: Decimal,
    description: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    movement_date=None,
) -> CashMovement:
    """
    Append a CashMovement and apply its delta to CashBalance[source].

    Runs inside the caller's transaction and never commits. The delta comes
    from movement_type (inflow/outflow), not from the sign of amount.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise field_error("movement_type", f"Invalid movement type: {movement_type}")
    if source not in SOURCES:
        raise field_error("source", f"source must be one of: {', '.join(SOURCES)}")
    amount = money(amount)
    if amount == 0:
        raise field_error("amount", "amount must not be zero")

    movement = CashMovement(
        movement_type=movement_type,
        source=source,
        amount=amount,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        movement_date=movement_date or utcnow(),
    )
    db.session.add(movement)
    _apply_delta(source, movement.signed_amount())
    return movement


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def transfer(*, from_source, to_source, amount, description: str | None = None) -> list[CashMovement]:
    """
    Move money between cash and bank.

    Records transfer_out on the source and transfer_in on the destination;
    both movements and both balance deltas commit together.
    """
    from_source = coerce_choice("from", from_source, SOURCES)
    to_source = coerce_choice("to", to_source, SOURCES)
    if from_source == to_source:
        raise SameAccountTransferError(
            "Cannot transfer to the same account",
            fields={"to": "to must differ from from"},
        )
    amount = coerce_money("amount", amount, strictly_positive=True)
    description = coerce_text("description", description, max_length=500)

    def _op() -> list[CashMovement]:
        out_leg = record_movement(
            movement_type="transfer_out",
            source=from_source,
            amount=amount,
            description=description or f"Transfer to {to_source}",
        )
        in_leg = record_movement(
            movement_type="transfer_in",
            source=to_source,
            amount=amount,
            description=description or f"Transfer from {from_source}",
        )
        db.session.commit()
        current_app.logger.info("Cash transfer %s -> %s: %s", from_source, to_source, amount)
        return [out_leg, in_leg]

    return run_with_retry(_op)


def set_initial(*, cash_balance, bank_balance) -> CashBalance:
    """
    Overwrite both balances and record one `initial` movement per source.

    This is a reset: movements before it are left untouched and
    reconciliation restarts from the latest `initial` movement.
    """
    cash_value = coerce_money("cash_balance", cash_balance, minimum=ZERO)
    bank_value = coerce_money("bank_balance", bank_balance, minimum=ZERO)

    def _op() -> CashBalance:
        balance = _ensure_balance_row()
        now = utcnow()
        for source, value in ((SOURCE_CASH, cash_value), (SOURCE_BANK, bank_value)):
            db.session.add(CashMovement(
                movement_type="initial",
                source=source,
                amount=value,
                description="Opening balance",
                movement_date=now,
            ))
        db.session.execute(
            update(CashBalance)
            .where(CashBalance.id == CashBalance.SINGLETON_ID)
            .values(cash_balance=cash_value, bank_balance=bank_value)
        )
        db.session.commit()
        current_app.logger.info("Initial balances set: cash=%s bank=%s", cash_value, bank_value)
        return balance

    return run_with_retry(_op)


def adjust(*, source, amount, description) -> CashMovement:
    """
    Apply a signed correction to one balance.

    The movement is typed `income` for amount >= 0 and `expense` otherwise;
    the signed amount is stored as given.
    """
    source = coerce_choice("source", source, SOURCES)
    amount = coerce_money("amount", amount)
    if amount == 0:
        raise field_error("amount", "amount must not be zero")
    description = coerce_text("description", description, max_length=500, required=True)

    def _op() -> CashMovement:
        movement = record_movement(
            movement_type="income" if amount >= 0 else "expense",
            source=source,
            amount=amount,
            description=description,
            reference_type="adjustment",
        )
        db.session.commit()
        current_app.logger.info("Cash adjustment on %s: %s (%s)", source, amount, description)
        return movement

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def list_movements(
    *,
    movement_type: str | None = None,
    source: str | None = None,
    date_from=None,
    date_to=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CashMovement], int]:
    query = db.session.query(CashMovement)

    if movement_type:
        query = query.filter(CashMovement.movement_type == coerce_choice("movement_type", movement_type, MOVEMENT_TYPES))
    if source:
        query = query.filter(CashMovement.source == coerce_choice("source", source, SOURCES))
    if date_from:
        query = query.filter(CashMovement.movement_date >= date_from)
    if date_to:
        query = query.filter(CashMovement.movement_date <= date_to)

    total = query.count()
    rows = (
        query.order_by(CashMovement.movement_date.desc(), CashMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def derived_balance(source: str) -> Decimal:
    """Balance implied by the movement log since the latest `initial` movement."""
    last_initial_id = (
        db.session.query(db.func.max(CashMovement.id))
        .filter(CashMovement.source == source, CashMovement.movement_type == "initial")
        .scalar()
    )
    query = db.session.query(CashMovement).filter(CashMovement.source == source)
    if last_initial_id is not None:
        query = query.filter(CashMovement.id >= last_initial_id)

    total = ZERO
    for movement in query.order_by(CashMovement.id).all():
        total += movement.signed_amount()
    return total


def reconcile() -> dict:
    """
    Compare stored balances with the movement log, per source.

    Returns {"cash": {...}, "bank": {...}, "balanced": bool}.
    """
    balance = db.session.get(CashBalance, CashBalance.SINGLETON_ID)
    report: dict = {}
    balanced = True
    for source in SOURCES:
        stored = balance.balance_for(source) if balance else ZERO
        derived = derived_balance(source)
        difference = stored - derived
        if difference != 0:
            balanced = False
        report[source] = {
            "stored": str(stored),
            "derived": str(derived),
            "difference": str(difference),
        }
    report["balanced"] = balanced
    return report
