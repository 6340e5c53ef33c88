# Overview: Service-layer operations for expenses and owner withdrawals; both are cash outflows.

from __future__ import annotations

from datetime import datetime, time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Expense, ExpenseType, Withdrawal
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
from .concurrency import run_with_retry


def _movement_datetime(day) -> datetime:
    return datetime.combine(day, time.min)


# =============================================================================
# EXPENSE TYPES
# =============================================================================

def list_expense_types(*, include_inactive: bool = False) -> list[ExpenseType]:
    query = db.session.query(ExpenseType)
    if not include_inactive:
        query = query.filter(ExpenseType.is_active.is_(True))
    return query.order_by(ExpenseType.name.asc()).all()


def create_expense_type(*, name, description=None) -> ExpenseType:
    name = coerce_text("name", name, max_length=100, required=True)
    description = coerce_text("description", description)

    def _op() -> ExpenseType:
        existing = db.session.query(ExpenseType.id).filter(ExpenseType.name == name).first()
        if existing:
            raise ConflictError(f"Expense type '{name}' already exists", fields={"name": "name must be unique"})
        expense_type = ExpenseType(name=name, description=description, is_active=True)
        db.session.add(expense_type)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Expense type '{name}' already exists", fields={"name": "name must be unique"}) from exc
        db.session.commit()
        return expense_type

    return run_with_retry(_op)


# =============================================================================
# EXPENSES
# =============================================================================

def list_expenses(
    *,
    expense_type_id: int | None = None,
    payment_method: str | None = None,
    date_from=None,
    date_to=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Expense], int]:
    query = db.session.query(Expense)
    if expense_type_id:
        query = query.filter(Expense.expense_type_id == expense_type_id)
    if payment_method:
        query = query.filter(Expense.payment_method == coerce_choice("payment_method", payment_method, PAYMENT_METHODS))
    if date_from:
        query = query.filter(Expense.expense_date >= date_from)
    if date_to:
        query = query.filter(Expense.expense_date <= date_to)

    total = query.count()
    rows = query.order_by(Expense.expense_date.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def create_expense(*, expense_type_id, amount, payment_method, expense_date=None, notes=None) -> Expense:
    """Book an expense and its `expense` cash movement in one transaction."""
    if expense_type_id is None:
        raise field_error("expense_type_id", "expense_type_id is required")
    expense_type_id = coerce_id("expense_type_id", expense_type_id)
    amount = coerce_money("amount", amount, strictly_positive=True)
    payment_method = coerce_choice("payment_method", payment_method, PAYMENT_METHODS)
    expense_date = coerce_date("expense_date", expense_date) or today()
    notes = coerce_text("notes", notes)

    def _op() -> Expense:
        expense_type = db.session.get(ExpenseType, expense_type_id)
        if expense_type is None:
            raise NotFoundError(f"Expense type {expense_type_id} not found")

        expense = Expense(
            expense_type_id=expense_type.id,
            amount=amount,
            payment_method=payment_method,
            expense_date=expense_date,
            notes=notes,
        )
        db.session.add(expense)
        db.session.flush()

        cash_service.record_movement(
            movement_type="expense",
            source=payment_method,
            amount=amount,
            description=f"Expense: {expense_type.name}",
            reference_type="expense",
            reference_id=expense.id,
            movement_date=_movement_datetime(expense_date),
        )
        db.session.commit()
        current_app.logger.info("Expense %s (%s) paid via %s", amount, expense_type.name, payment_method)
        return expense

    return run_with_retry(_op)


# =============================================================================
# WITHDRAWALS
# =============================================================================

def list_withdrawals(
    *,
    payment_method: str | None = None,
    date_from=None,
    date_to=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Withdrawal], int]:
    query = db.session.query(Withdrawal)
    if payment_method:
        query = query.filter(Withdrawal.payment_method == coerce_choice("payment_method", payment_method, PAYMENT_METHODS))
    if date_from:
        query = query.filter(Withdrawal.withdrawal_date >= date_from)
    if date_to:
        query = query.filter(Withdrawal.withdrawal_date <= date_to)

    total = query.count()
    rows = query.order_by(Withdrawal.withdrawal_date.desc(), Withdrawal.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def create_withdrawal(*, withdrawn_by, amount, payment_method, withdrawal_date=None, notes=None) -> Withdrawal:
    """Book a withdrawal and its `withdrawal` cash movement in one transaction."""
    withdrawn_by = coerce_text("withdrawn_by", withdrawn_by, max_length=100, required=True)
    amount = coerce_money("amount", amount, strictly_positive=True)
    payment_method = coerce_choice("payment_method", payment_method, PAYMENT_METHODS)
    withdrawal_date = coerce_date("withdrawal_date", withdrawal_date) or today()
    notes = coerce_text("notes", notes)

    def _op() -> Withdrawal:
        withdrawal = Withdrawal(
            withdrawn_by=withdrawn_by,
            amount=amount,
            payment_method=payment_method,
            withdrawal_date=withdrawal_date,
            notes=notes,
        )
        db.session.add(withdrawal)
        db.session.flush()

        cash_service.record_movement(
            movement_type="withdrawal",
            source=payment_method,
            amount=amount,
            description=f"Withdrawal by {withdrawn_by}",
            reference_type="withdrawal",
            reference_id=withdrawal.id,
            movement_date=_movement_datetime(withdrawal_date),
        )
        db.session.commit()
        current_app.logger.info("Withdrawal %s by %s via %s", amount, withdrawn_by, payment_method)
        return withdrawal

    return run_with_retry(_op)
