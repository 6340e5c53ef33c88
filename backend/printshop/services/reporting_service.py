# Overview: Read-only dashboard aggregates over invoices, expenses, balances, debts and stock.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import CashBalance, Debt, Expense, InventoryItem, Invoice, InvoicePayment
from ..models.invoices import INVOICE_STATUSES, INVOICE_STATUS_CANCELLED
from ..money import ZERO, money, money_str
from ..time_utils import today as utc_today


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _previous_month_start(day: date) -> date:
    first = _month_start(day)
    return _month_start(first - timedelta(days=1))


def _invoice_sum(column, *, start: date, end: date | None = None):
    query = db.session.query(func.coalesce(func.sum(column), 0)).filter(
        Invoice.invoice_date >= start,
        Invoice.status != INVOICE_STATUS_CANCELLED,
    )
    if end is not None:
        query = query.filter(Invoice.invoice_date < end)
    return money(query.scalar())


def _expense_sum(*, start: date, end: date | None = None):
    query = db.session.query(func.coalesce(func.sum(Expense.amount), 0)).filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date < end)
    return money(query.scalar())


def _payments_sum(*, start: date, end: date):
    """Money received on invoices between two days, by payment date."""
    query = db.session.query(func.coalesce(func.sum(InvoicePayment.amount), 0)).filter(
        InvoicePayment.payment_date >= datetime.combine(start, time.min),
        InvoicePayment.payment_date < datetime.combine(end, time.min),
    )
    return money(query.scalar())


def dashboard_summary(today: date | None = None) -> dict:
    """
    Headline numbers for the back office home screen.

    Sales exclude cancelled invoices. Receivables are what customers still
    owe on open invoices; debts_receivable is what debtors still owe.
    """
    day = today or utc_today()
    tomorrow = day + timedelta(days=1)
    month_start = _month_start(day)

    today_sales = _invoice_sum(Invoice.total, start=day, end=tomorrow)
    today_expenses = _expense_sum(start=day, end=tomorrow)

    balance = db.session.get(CashBalance, CashBalance.SINGLETON_ID)
    cash = money(balance.cash_balance) if balance else ZERO
    bank = money(balance.bank_balance) if balance else ZERO

    customers_receivable = money(
        db.session.query(func.coalesce(func.sum(Invoice.remaining_amount), 0))
        .filter(Invoice.status != INVOICE_STATUS_CANCELLED)
        .scalar()
    )
    debts_receivable = money(
        db.session.query(func.coalesce(func.sum(Debt.remaining_amount), 0))
        .filter(Debt.is_paid.is_(False))
        .scalar()
    )

    status_counts = dict(
        db.session.query(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status).all()
    )

    low_stock = (
        db.session.query(InventoryItem)
        .filter(
            InventoryItem.is_active.is_(True),
            InventoryItem.current_quantity <= InventoryItem.minimum_quantity,
        )
        .order_by(InventoryItem.name.asc())
        .all()
    )

    recent = db.session.query(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(5).all()

    return {
        "today": {
            "date": day.isoformat(),
            "sales": money_str(today_sales),
            "payments_received": money_str(_payments_sum(start=day, end=tomorrow)),
            "expenses": money_str(today_expenses),
            "profit": money_str(today_sales - today_expenses),
        },
        "month": {
            "sales": money_str(_invoice_sum(Invoice.total, start=month_start)),
            "profit": money_str(_invoice_sum(Invoice.profit, start=month_start)),
            "expenses": money_str(_expense_sum(start=month_start)),
            "invoices_count": (
                db.session.query(func.count(Invoice.id))
                .filter(Invoice.invoice_date >= month_start, Invoice.status != INVOICE_STATUS_CANCELLED)
                .scalar()
            ),
        },
        "cash_balance": {
            "cash": money_str(cash),
            "bank": money_str(bank),
            "total": money_str(cash + bank),
        },
        "receivables": {
            "customers": money_str(customers_receivable),
            "debts": money_str(debts_receivable),
        },
        "invoice_status": {s: int(status_counts.get(s, 0)) for s in INVOICE_STATUSES},
        "low_stock_items": [i.to_dict() for i in low_stock],
        "recent_invoices": [i.to_dict() for i in recent],
    }


def daily_sales(days: int = 30, *, today: date | None = None) -> dict:
    """Per-day sales/profit for the last `days` days plus a this-month vs last-month comparison."""
    if days < 1 or days > 366:
        raise ReportError("days must be between 1 and 366")

    day = today or utc_today()
    start = day - timedelta(days=days - 1)

    rows = (
        db.session.query(
            Invoice.invoice_date,
            func.coalesce(func.sum(Invoice.total), 0),
            func.coalesce(func.sum(Invoice.profit), 0),
        )
        .filter(
            Invoice.invoice_date >= start,
            Invoice.invoice_date <= day,
            Invoice.status != INVOICE_STATUS_CANCELLED,
        )
        .group_by(Invoice.invoice_date)
        .order_by(Invoice.invoice_date)
        .all()
    )

    this_month = _month_start(day)
    last_month = _previous_month_start(day)

    return {
        "daily_sales": [
            {"date": d.isoformat(), "total": money_str(total), "profit": money_str(profit)}
            for d, total, profit in rows
        ],
        "comparison": {
            "this_month": {
                "sales": money_str(_invoice_sum(Invoice.total, start=this_month)),
                "expenses": money_str(_expense_sum(start=this_month)),
            },
            "last_month": {
                "sales": money_str(_invoice_sum(Invoice.total, start=last_month, end=this_month)),
                "expenses": money_str(_expense_sum(start=last_month, end=this_month)),
            },
        },
    }
