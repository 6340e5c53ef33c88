# Overview: Service-layer operations for suppliers, their item-cost payable and supplier payments.

"""
Supplier Ledger Service

Supplier.total_debt is a cached payable. It has exactly one writer: the
functions in this module, always inside the transaction that writes the
cost or payment that changes it.

    payable = sum(unpaid, non-internal ItemCost.amount) - sum(SupplierPayment.amount)

Cost hooks (called by invoice_service for every cost it creates/deletes):
- add_item_cost(): +amount when the new cost accrues a payable
- remove_item_cost(): -amount when the deleted cost was accruing
- set_cost_paid(): -amount / +amount when the unpaid state flips

recalculate_balance() rebuilds the cached column from the ledger rows and
is the repair path for any drift.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import update

from ..errors import NotFoundError
from ..extensions import db
from ..models import InvoiceItem, ItemCost, Supplier, SupplierPayment
from ..models.suppliers import SUPPLIER_TYPES
from ..money import ZERO, money, money_str
from ..time_utils import to_utc_z
from ..validation import (
    PAYMENT_METHODS,
    coerce_bool,
    coerce_choice,
    coerce_money,
    coerce_text,
)
from . import cash_service
from .catalog_service import require_supplier
from .concurrency import lock_for_update, run_with_retry


SUPPLIER_MUTABLE_FIELDS = {"name", "type", "phone", "address", "notes", "is_active"}

DEFAULT_COST_TYPE = "general cost"


def _adjust_payable(supplier_id: int, delta: Decimal) -> None:
    if not delta:
        return
    db.session.execute(
        update(Supplier)
        .where(Supplier.id == supplier_id)
        .values(total_debt=Supplier.total_debt + delta)
    )


# =============================================================================
# ITEM COST HOOKS (caller's transaction)
# =============================================================================

def add_item_cost(
    item: InvoiceItem,
    *,
    amount: Decimal,
    supplier_id: int | None = None,
    cost_type: str | None = None,
    is_internal: bool = False,
    is_paid: bool = False,
    notes: str | None = None,
) -> ItemCost:
    """Attach a cost to an invoice line and accrue the supplier payable if it applies."""
    cost = ItemCost(
        supplier_id=supplier_id,
        cost_type=cost_type or DEFAULT_COST_TYPE,
        amount=money(amount),
        is_internal=bool(is_internal),
        is_paid=bool(is_paid),
        notes=notes,
    )
    item.costs.append(cost)
    if cost.accrues_payable:
        _adjust_payable(cost.supplier_id, cost.amount)
    return cost


def remove_item_cost(cost: ItemCost) -> None:
    """Delete one cost and release its part of the supplier payable."""
    if cost.accrues_payable:
        _adjust_payable(cost.supplier_id, -money(cost.amount))
    db.session.delete(cost)


def _apply_cost_paid(cost: ItemCost, is_paid: bool) -> None:
    was_accruing = cost.accrues_payable
    cost.is_paid = is_paid
    now_accruing = cost.accrues_payable
    if was_accruing and not now_accruing:
        _adjust_payable(cost.supplier_id, -money(cost.amount))
    elif now_accruing and not was_accruing:
        _adjust_payable(cost.supplier_id, money(cost.amount))


def set_cost_paid(*, supplier_id: int, cost_id: int, is_paid) -> ItemCost:
    """Mark one of a supplier's costs paid (or unpaid again)."""
    is_paid = coerce_bool("is_paid", is_paid)

    def _op() -> ItemCost:
        require_supplier(supplier_id)
        cost = (
            db.session.query(ItemCost)
            .filter(ItemCost.id == cost_id, ItemCost.supplier_id == supplier_id)
            .first()
        )
        if cost is None:
            raise NotFoundError(f"Cost {cost_id} not found for supplier {supplier_id}")
        _apply_cost_paid(cost, is_paid)
        db.session.commit()
        return cost

    return run_with_retry(_op)


# =============================================================================
# SUPPLIER CRUD
# =============================================================================

def list_suppliers(
    *,
    search: str | None = None,
    supplier_type: str | None = None,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    query = db.session.query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    if supplier_type:
        query = query.filter(Supplier.type == coerce_choice("type", supplier_type, SUPPLIER_TYPES))
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Supplier.name.ilike(like), Supplier.phone.ilike(like)))

    total = query.count()
    rows = query.order_by(Supplier.name.asc(), Supplier.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def create_supplier(*, patch: dict) -> Supplier:
    def _op() -> Supplier:
        supplier = Supplier(is_active=True, total_debt=ZERO)
        for k, v in patch.items():
            if k in SUPPLIER_MUTABLE_FIELDS:
                setattr(supplier, k, v)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    def _op() -> Supplier:
        supplier = require_supplier(supplier_id)
        for k, v in patch.items():
            if k in SUPPLIER_MUTABLE_FIELDS:
                setattr(supplier, k, v)
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def deactivate_supplier(*, supplier_id: int) -> Supplier:
    def _op() -> Supplier:
        supplier = require_supplier(supplier_id)
        supplier.is_active = False
        db.session.commit()
        return supplier

    return run_with_retry(_op)


# =============================================================================
# PAYMENTS
# =============================================================================

def add_payment(*, supplier_id: int, amount, payment_method, notes=None) -> SupplierPayment:
    """
    Pay a supplier.

    One transaction: SupplierPayment row, `supplier_payment` cash movement
    (balance decrement) and total_debt decrement.
    """
    amount = coerce_money("amount", amount, strictly_positive=True)
    payment_method = coerce_choice("payment_method", payment_method, PAYMENT_METHODS)
    notes = coerce_text("notes", notes)

    def _op() -> SupplierPayment:
        supplier = require_supplier(supplier_id)

        payment = SupplierPayment(
            supplier_id=supplier.id,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
        )
        db.session.add(payment)
        db.session.flush()

        cash_service.record_movement(
            movement_type="supplier_payment",
            source=payment_method,
            amount=amount,
            description=f"Payment to supplier {supplier.name}",
            reference_type="supplier_payment",
            reference_id=payment.id,
        )
        _adjust_payable(supplier.id, -amount)

        db.session.commit()
        current_app.logger.info("Supplier payment: supplier=%s amount=%s via %s", supplier.id, amount, payment_method)
        return payment

    return run_with_retry(_op)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

def _unpaid_costs_query(supplier_id: int):
    return db.session.query(ItemCost).filter(
        ItemCost.supplier_id == supplier_id,
        ItemCost.is_internal.is_(False),
        ItemCost.is_paid.is_(False),
    )


def derived_payable(supplier_id: int) -> Decimal:
    """Payable computed from ledger rows, ignoring the cached column."""
    unpaid = (
        db.session.query(db.func.coalesce(db.func.sum(ItemCost.amount), 0))
        .filter(
            ItemCost.supplier_id == supplier_id,
            ItemCost.is_internal.is_(False),
            ItemCost.is_paid.is_(False),
        )
        .scalar()
    )
    paid = (
        db.session.query(db.func.coalesce(db.func.sum(SupplierPayment.amount), 0))
        .filter(SupplierPayment.supplier_id == supplier_id)
        .scalar()
    )
    return money(unpaid) - money(paid)


def supplier_statement(supplier: Supplier) -> dict:
    """Unpaid costs (with their invoice numbers), payments and totals, derived on read."""
    costs = _unpaid_costs_query(supplier.id).order_by(ItemCost.id.desc()).all()
    payments = (
        db.session.query(SupplierPayment)
        .filter(SupplierPayment.supplier_id == supplier.id)
        .order_by(SupplierPayment.id.desc())
        .all()
    )

    total_costs = sum((money(c.amount) for c in costs), ZERO)
    paid_amount = sum((money(p.amount) for p in payments), ZERO)

    unpaid_rows = []
    for cost in costs:
        row = cost.to_dict()
        invoice = cost.invoice_item.invoice if cost.invoice_item else None
        row["invoice_id"] = invoice.id if invoice else None
        row["invoice_number"] = invoice.invoice_number if invoice else None
        unpaid_rows.append(row)

    return {
        "supplier": supplier.to_dict(),
        "unpaid_costs": unpaid_rows,
        "payments": [p.to_dict() for p in payments],
        "total_costs": money_str(total_costs),
        "paid_amount": money_str(paid_amount),
        "remaining_amount": money_str(total_costs - paid_amount),
    }


def list_transactions(supplier: Supplier) -> list[dict]:
    """Payments and unpaid costs as one feed, newest first."""
    feed: list[dict] = []
    for payment in supplier.payments:
        feed.append({
            "id": payment.id,
            "type": "payment",
            "invoice_id": None,
            "invoice_number": None,
            "description": payment.notes,
            "amount": money_str(payment.amount),
            "payment_method": payment.payment_method,
            "created_at": payment.created_at,
        })
    for cost in _unpaid_costs_query(supplier.id).all():
        invoice = cost.invoice_item.invoice if cost.invoice_item else None
        feed.append({
            "id": cost.id,
            "type": "cost",
            "invoice_id": invoice.id if invoice else None,
            "invoice_number": invoice.invoice_number if invoice else None,
            "description": cost.cost_type,
            "amount": money_str(cost.amount),
            "payment_method": None,
            "created_at": cost.created_at,
        })
    feed.sort(key=lambda r: (r["created_at"] is not None, r["created_at"], r["id"]), reverse=True)
    for row in feed:
        row["created_at"] = to_utc_z(row["created_at"])
    return feed


# =============================================================================
# REPAIR
# =============================================================================

def recalculate_balance(*, supplier_id: int) -> Supplier:
    """Reset the cached total_debt to the value derived from ledger rows."""
    def _op() -> Supplier:
        # Row lock first so no cost hook commits between the derive and the write
        supplier = lock_for_update(db.session.query(Supplier).filter_by(id=supplier_id)).first()
        if supplier is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        before = money(supplier.total_debt)
        supplier.total_debt = derived_payable(supplier.id)
        db.session.commit()
        if before != money(supplier.total_debt):
            current_app.logger.info(
                "Supplier %s total_debt corrected: %s -> %s", supplier.id, before, money(supplier.total_debt)
            )
        return supplier

    return run_with_retry(_op)


def recalculate_all_balances() -> int:
    """Recalculate every supplier; returns how many were processed."""
    ids = [row[0] for row in db.session.query(Supplier.id).order_by(Supplier.id).all()]
    for supplier_id in ids:
        recalculate_balance(supplier_id=supplier_id)
    current_app.logger.info("Recalculated balances for %d suppliers", len(ids))
    return len(ids)
