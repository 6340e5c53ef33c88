# Overview: Service-layer operations for invoices: creation, item replacement, payments, status workflow, deletion.

"""
Invoice Engine

Every write here is one unit of work (run_with_retry + a single commit):
items, their costs, supplier payable hooks, totals, payment rows and the
matching cash movement either all land or none do.

Stored totals are always rewritten from children by recalculate_totals():
- item.total_price = quantity x unit_price
- item.total_cost  = sum(cost.amount)          (raw sum, NOT x quantity)
- item.profit      = total_price - total_cost
- invoice.subtotal = sum(item.total_price)
- invoice.total    = subtotal - discount
- invoice.total_cost = sum(item.total_cost)
- invoice.profit   = total - total_cost
- invoice.paid_amount = sum(payment.amount)
- invoice.remaining_amount = max(total - paid_amount, 0)

Payments lock the invoice row and rely on version_id_col: a concurrent
payer that read a stale row fails its UPDATE with StaleDataError and is
retried against fresh totals, so overpayment checks always see the latest
remaining_amount.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from ..errors import (
    HasPaymentsError,
    InvalidStatusTransition,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from ..extensions import db
from ..models import Customer, Invoice, InvoiceItem, InvoicePayment
from ..models.invoices import (
    INVOICE_STATUSES,
    INVOICE_STATUS_CANCELLED,
    INVOICE_STATUS_DELIVERED,
    INVOICE_STATUS_IN_PROGRESS,
    INVOICE_STATUS_NEW,
    INVOICE_STATUS_READY,
    PAYMENT_TYPES,
)
from ..money import MAX_MONEY, ZERO, money, money_sum, multiply
from ..time_utils import today, utcnow
from ..validation import (
    PAYMENT_METHODS,
    coerce_bool,
    coerce_choice,
    coerce_date,
    coerce_datetime,
    coerce_id,
    coerce_money,
    coerce_quantity,
    coerce_text,
    field_error,
)
from . import cash_service, supplier_service
from .catalog_service import UNSPECIFIED_PRODUCT, find_product_name, require_customer, require_supplier
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_invoice_number


# Forward order of the production workflow; cancelled is reachable from any
# non-terminal status
STATUS_ORDER = {
    INVOICE_STATUS_NEW: 0,
    INVOICE_STATUS_IN_PROGRESS: 1,
    INVOICE_STATUS_READY: 2,
    INVOICE_STATUS_DELIVERED: 3,
}

INVOICE_SCALAR_FIELDS = {"customer_id", "invoice_date", "delivery_date", "discount", "notes", "status"}


# =============================================================================
# STATUS WORKFLOW
# =============================================================================

def check_status_transition(current: str, new: str, *, strict: bool = True) -> None:
    """
    Raise InvalidStatusTransition unless current -> new is allowed.

    Strict mode: forward moves along new -> in_progress -> ready -> delivered
    (skipping steps is fine), any non-cancelled status -> cancelled, and
    cancelled is terminal. Same status is always accepted.
    """
    if new not in INVOICE_STATUSES:
        raise field_error("status", f"status must be one of: {', '.join(INVOICE_STATUSES)}")
    if current == new or not strict:
        return
    if current == INVOICE_STATUS_CANCELLED:
        raise InvalidStatusTransition(
            "Cancelled invoices cannot change status",
            fields={"status": f"cannot move from {current} to {new}"},
        )
    if new == INVOICE_STATUS_CANCELLED:
        return
    if STATUS_ORDER[new] < STATUS_ORDER[current]:
        raise InvalidStatusTransition(
            f"Invalid status transition: {current} -> {new}",
            fields={"status": f"cannot move from {current} to {new}"},
        )


def _strict_transitions() -> bool:
    return bool(current_app.config.get("INVOICE_STRICT_STATUS_TRANSITIONS", True))


# =============================================================================
# INPUT NORMALIZATION (no writes)
# =============================================================================

def _normalize_costs(raw_costs: Any, prefix: str) -> list[dict]:
    if raw_costs is None:
        return []
    if not isinstance(raw_costs, list):
        raise field_error(prefix, f"{prefix} must be a list")

    costs = []
    for idx, raw in enumerate(raw_costs):
        key = f"{prefix}.{idx}"
        if not isinstance(raw, dict):
            raise field_error(key, f"{key} must be an object")
        if raw.get("amount") is None:
            raise field_error(f"{key}.amount", f"{key}.amount is required")
        costs.append({
            "supplier_id": coerce_id(f"{key}.supplier_id", raw.get("supplier_id")),
            "cost_type": coerce_text(f"{key}.cost_type", raw.get("cost_type"), max_length=100),
            "amount": coerce_money(f"{key}.amount", raw.get("amount"), minimum=ZERO),
            "is_internal": coerce_bool(f"{key}.is_internal", raw.get("is_internal", False)),
            "notes": coerce_text(f"{key}.notes", raw.get("notes")),
        })
    return costs


def normalize_items(raw_items: Any) -> list[dict]:
    """
    Validate and coerce the items payload of a create/replace request.

    Everything is checked here, before the unit of work starts, so a bad
    item N never leaves items 1..N-1 behind. Line totals, line costs and
    the invoice subtotal must each fit a stored money value.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise field_error("items", "At least one item is required")

    items = []
    subtotal = ZERO
    total_cost = ZERO
    for idx, raw in enumerate(raw_items):
        key = f"items.{idx}"
        if not isinstance(raw, dict):
            raise field_error(key, f"{key} must be an object")
        for required in ("quantity", "unit_price"):
            if raw.get(required) is None:
                raise field_error(f"{key}.{required}", f"{key}.{required} is required")

        item = {
            "product_id": coerce_id(f"{key}.product_id", raw.get("product_id")),
            "product_name": coerce_text(f"{key}.product_name", raw.get("product_name"), max_length=200),
            "description": coerce_text(f"{key}.description", raw.get("description")),
            "quantity": coerce_quantity(f"{key}.quantity", raw.get("quantity"), strictly_positive=True),
            "unit_price": coerce_money(f"{key}.unit_price", raw.get("unit_price"), minimum=ZERO),
            "costs": _normalize_costs(raw.get("costs"), f"{key}.costs"),
        }

        line_total = multiply(item["quantity"], item["unit_price"])
        if line_total > MAX_MONEY:
            raise field_error(f"{key}.quantity", f"{key} total exceeds the maximum allowed amount")
        line_cost = money_sum(c["amount"] for c in item["costs"])
        if line_cost > MAX_MONEY:
            raise field_error(f"{key}.costs", f"{key} costs exceed the maximum allowed amount")

        subtotal += line_total
        total_cost += line_cost
        if subtotal > MAX_MONEY:
            raise field_error(f"{key}.quantity", "Invoice subtotal exceeds the maximum allowed amount")
        if total_cost > MAX_MONEY:
            raise field_error(f"{key}.costs", "Invoice total cost exceeds the maximum allowed amount")

        items.append(item)
    return items


def _items_subtotal(items: list[dict]) -> Decimal:
    return money_sum(multiply(i["quantity"], i["unit_price"]) for i in items)


def _check_discount(discount: Decimal, subtotal: Decimal) -> None:
    if discount > subtotal:
        raise field_error("discount", "discount cannot exceed the invoice subtotal")


def _check_references(customer_id: int | None, items: list[dict] | None) -> None:
    if customer_id is not None:
        require_customer(customer_id)
    for item in items or []:
        for cost in item["costs"]:
            if cost["supplier_id"] is not None:
                require_supplier(cost["supplier_id"])


# =============================================================================
# TOTALS & ITEM WRITES (caller's transaction)
# =============================================================================

def recalculate_item(item: InvoiceItem) -> None:
    item.total_price = multiply(item.quantity, item.unit_price)
    item.total_cost = money_sum(c.amount for c in item.costs)
    item.profit = money(item.total_price) - money(item.total_cost)


def recalculate_totals(invoice: Invoice) -> None:
    for item in invoice.items:
        recalculate_item(item)

    subtotal = money_sum(i.total_price for i in invoice.items)
    total = subtotal - money(invoice.discount)
    total_cost = money_sum(i.total_cost for i in invoice.items)
    paid = money_sum(p.amount for p in invoice.payments)

    invoice.subtotal = subtotal
    invoice.total = total
    invoice.total_cost = total_cost
    invoice.profit = total - total_cost
    invoice.paid_amount = paid
    invoice.remaining_amount = max(total - paid, ZERO)


def _resolve_product(product_id: int | None, product_name: str | None) -> tuple[int | None, str]:
    catalog_name = find_product_name(product_id)
    if catalog_name is None:
        # A dangling product_id is dropped; the line keeps a readable name
        return None, product_name or UNSPECIFIED_PRODUCT
    return product_id, product_name or catalog_name


def _add_items(invoice: Invoice, items: list[dict]) -> None:
    for data in items:
        product_id, product_name = _resolve_product(data["product_id"], data["product_name"])
        item = InvoiceItem(
            product_id=product_id,
            product_name=product_name,
            description=data["description"],
            quantity=data["quantity"],
            unit_price=data["unit_price"],
        )
        invoice.items.append(item)
        for cost in data["costs"]:
            supplier_service.add_item_cost(
                item,
                amount=cost["amount"],
                supplier_id=cost["supplier_id"],
                cost_type=cost["cost_type"],
                is_internal=cost["is_internal"],
                notes=cost["notes"],
            )
        recalculate_item(item)


def _remove_items(invoice: Invoice) -> None:
    """Delete every item, releasing each cost through the supplier hook first."""
    for item in list(invoice.items):
        for cost in list(item.costs):
            supplier_service.remove_item_cost(cost)
            item.costs.remove(cost)
        invoice.items.remove(item)


# =============================================================================
# READS
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = (
        db.session.query(Invoice)
        .options(selectinload(Invoice.items).selectinload(InvoiceItem.costs), selectinload(Invoice.payments))
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    *,
    search: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    date_from=None,
    date_to=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Invoice], int]:
    query = db.session.query(Invoice).outerjoin(Customer, Invoice.customer_id == Customer.id)

    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Invoice.invoice_number.ilike(like),
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
        ))
    if status:
        query = query.filter(Invoice.status == coerce_choice("status", status, INVOICE_STATUSES))
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if date_from:
        query = query.filter(Invoice.invoice_date >= date_from)
    if date_to:
        query = query.filter(Invoice.invoice_date <= date_to)

    total = query.count()
    rows = (
        query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


# =============================================================================
# WRITES
# =============================================================================

def create_invoice(
    *,
    items,
    customer_id=None,
    invoice_date=None,
    delivery_date=None,
    discount=None,
    notes=None,
) -> Invoice:
    """
    Create an invoice with its items and costs in one transaction.

    Supplier-linked, non-internal costs accrue the supplier payable.
    """
    normalized = normalize_items(items)
    customer_id = coerce_id("customer_id", customer_id)
    invoice_date = coerce_date("invoice_date", invoice_date) or today()
    delivery_date = coerce_date("delivery_date", delivery_date)
    discount = coerce_money("discount", discount if discount is not None else 0, minimum=ZERO)
    notes = coerce_text("notes", notes)
    _check_discount(discount, _items_subtotal(normalized))

    def _op() -> Invoice:
        _check_references(customer_id, normalized)

        invoice = Invoice(
            invoice_number=next_invoice_number(invoice_date),
            customer_id=customer_id,
            status=INVOICE_STATUS_NEW,
            invoice_date=invoice_date,
            delivery_date=delivery_date,
            discount=discount,
            notes=notes,
            subtotal=ZERO,
            total=ZERO,
            total_cost=ZERO,
            profit=ZERO,
            paid_amount=ZERO,
            remaining_amount=ZERO,
        )
        db.session.add(invoice)
        _add_items(invoice, normalized)
        recalculate_totals(invoice)

        db.session.commit()
        current_app.logger.info(
            "Invoice %s created: total=%s cost=%s", invoice.invoice_number, invoice.total, invoice.total_cost
        )
        return invoice

    return run_with_retry(_op)


def update_invoice(*, invoice_id: int, patch: dict, items=None) -> Invoice:
    """
    Patch scalar fields and optionally replace all items.

    A replace deletes each existing cost through the supplier hook, then the
    items, then builds the new set exactly like create.
    """
    if patch is None:
        patch = {}
    unknown = sorted(k for k in patch if k not in INVOICE_SCALAR_FIELDS)
    if unknown:
        raise field_error(unknown[0], f"Field not allowed: {unknown[0]}")

    cleaned: dict = {}
    if "customer_id" in patch:
        cleaned["customer_id"] = coerce_id("customer_id", patch["customer_id"])
    if "invoice_date" in patch:
        invoice_date = coerce_date("invoice_date", patch["invoice_date"])
        if invoice_date is None:
            raise field_error("invoice_date", "invoice_date cannot be null")
        cleaned["invoice_date"] = invoice_date
    if "delivery_date" in patch:
        cleaned["delivery_date"] = coerce_date("delivery_date", patch["delivery_date"])
    if "discount" in patch:
        raw = patch["discount"]
        cleaned["discount"] = coerce_money("discount", raw if raw is not None else 0, minimum=ZERO)
    if "notes" in patch:
        cleaned["notes"] = coerce_text("notes", patch["notes"])
    if "status" in patch:
        cleaned["status"] = coerce_choice("status", patch["status"], INVOICE_STATUSES)

    normalized = normalize_items(items) if items is not None else None

    def _op() -> Invoice:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        _check_references(cleaned.get("customer_id"), normalized)
        if "status" in cleaned:
            check_status_transition(invoice.status, cleaned["status"], strict=_strict_transitions())

        discount = cleaned.get("discount", money(invoice.discount))
        if normalized is not None:
            subtotal = _items_subtotal(normalized)
        else:
            subtotal = money_sum(multiply(i.quantity, i.unit_price) for i in invoice.items)
        _check_discount(discount, subtotal)

        for k, v in cleaned.items():
            setattr(invoice, k, v)

        if normalized is not None:
            _remove_items(invoice)
            db.session.flush()
            _add_items(invoice, normalized)

        recalculate_totals(invoice)
        db.session.commit()
        current_app.logger.info("Invoice %s updated", invoice.invoice_number)
        return invoice

    return run_with_retry(_op)


def update_status(*, invoice_id: int, status) -> Invoice:
    status = coerce_choice("status", status, INVOICE_STATUSES)

    def _op() -> Invoice:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        check_status_transition(invoice.status, status, strict=_strict_transitions())
        if invoice.status != status:
            previous = invoice.status
            invoice.status = status
            db.session.commit()
            current_app.logger.info("Invoice %s status %s -> %s", invoice.invoice_number, previous, status)
        return invoice

    return run_with_retry(_op)


def add_payment(
    *,
    invoice_id: int,
    amount,
    payment_method,
    payment_type,
    payment_date=None,
    notes=None,
) -> InvoicePayment:
    """
    Apply a customer payment.

    One transaction: InvoicePayment row, paid/remaining rewrite, an
    `invoice_payment` cash movement and the CashBalance[payment_method]
    increment. amount must not exceed the current remaining_amount.
    """
    amount = coerce_money("amount", amount, strictly_positive=True)
    payment_method = coerce_choice("payment_method", payment_method, PAYMENT_METHODS)
    payment_type = coerce_choice("payment_type", payment_type, PAYMENT_TYPES)
    payment_date = coerce_datetime("payment_date", payment_date) or utcnow()
    notes = coerce_text("notes", notes)

    def _op() -> InvoicePayment:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status == INVOICE_STATUS_CANCELLED:
            raise ValidationError(
                "Cannot add a payment to a cancelled invoice",
                fields={"status": "invoice is cancelled"},
            )

        remaining = money(invoice.remaining_amount)
        if amount > remaining:
            raise OverpaymentError(
                f"Payment of {amount} exceeds the remaining amount {remaining}",
                fields={"amount": f"amount must be <= {remaining}"},
            )

        payment = InvoicePayment(
            amount=amount,
            payment_method=payment_method,
            payment_type=payment_type,
            payment_date=payment_date,
            notes=notes,
        )
        invoice.payments.append(payment)
        recalculate_totals(invoice)
        db.session.flush()

        cash_service.record_movement(
            movement_type="invoice_payment",
            source=payment_method,
            amount=amount,
            description=f"Payment for invoice {invoice.invoice_number}",
            reference_type="invoice",
            reference_id=invoice.id,
            movement_date=payment_date,
        )

        db.session.commit()
        current_app.logger.info(
            "Payment %s applied to invoice %s via %s; remaining=%s",
            amount, invoice.invoice_number, payment_method, invoice.remaining_amount,
        )
        return payment

    return run_with_retry(_op)


def destroy_invoice(*, invoice_id: int) -> None:
    """Delete an invoice that has no payments; paid invoices must be cancelled instead."""
    def _op() -> None:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        has_payments = (
            db.session.query(InvoicePayment.id).filter(InvoicePayment.invoice_id == invoice.id).first()
        )
        if has_payments:
            raise HasPaymentsError(
                "Invoice has payments and cannot be deleted; cancel it instead",
            )

        number = invoice.invoice_number
        _remove_items(invoice)
        db.session.delete(invoice)
        db.session.commit()
        current_app.logger.info("Invoice %s deleted", number)

    return run_with_retry(_op)
