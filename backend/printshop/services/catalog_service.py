# Overview: Service-layer operations for customers, products and categories; also the existence checks other services rely on.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import NotFoundError
from ..extensions import db
from ..models import Category, Customer, Invoice, Product, Supplier
from ..models.invoices import INVOICE_STATUS_CANCELLED
from ..money import money, money_str
from ..time_utils import to_utc_z
from .concurrency import run_with_retry


UNSPECIFIED_PRODUCT = "unspecified product"

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "phone2", "address", "notes", "is_active"}
PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "description", "default_price", "is_active"}
CATEGORY_MUTABLE_FIELDS = {"name", "description", "is_active"}


# =============================================================================
# EXISTENCE CHECKS
# =============================================================================

def require_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def require_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def find_product_name(product_id: int | None) -> str | None:
    """Product name for an id, or None when there is no such product."""
    if not product_id:
        return None
    product = db.session.get(Product, product_id)
    return product.name if product else None


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


def _search_filter(term: str | None, *columns):
    if not term or not term.strip():
        return None
    like = f"%{term.strip()}%"
    return or_(*[c.ilike(like) for c in columns])


# =============================================================================
# CUSTOMERS
# =============================================================================

def list_customers(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    query = db.session.query(Customer)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    flt = _search_filter(search, Customer.name, Customer.phone, Customer.phone2)
    if flt is not None:
        query = query.filter(flt)

    total = query.count()
    rows = query.order_by(Customer.name.asc(), Customer.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def create_customer(*, patch: dict) -> Customer:
    def _op() -> Customer:
        customer = Customer(is_active=True)
        _apply_patch(customer, patch, CUSTOMER_MUTABLE_FIELDS)
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    def _op() -> Customer:
        customer = require_customer(customer_id)
        _apply_patch(customer, patch, CUSTOMER_MUTABLE_FIELDS)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def deactivate_customer(*, customer_id: int) -> Customer:
    """Soft delete: invoices keep pointing at the customer row."""
    def _op() -> Customer:
        customer = require_customer(customer_id)
        customer.is_active = False
        db.session.commit()
        return customer

    return run_with_retry(_op)


def customer_summary(customer: Customer) -> dict:
    """Receivable totals over the customer's non-cancelled invoices."""
    row = (
        db.session.query(
            db.func.count(Invoice.id),
            db.func.coalesce(db.func.sum(Invoice.total), 0),
            db.func.coalesce(db.func.sum(Invoice.paid_amount), 0),
            db.func.coalesce(db.func.sum(Invoice.remaining_amount), 0),
        )
        .filter(Invoice.customer_id == customer.id, Invoice.status != INVOICE_STATUS_CANCELLED)
        .one()
    )
    count, total, paid, remaining = row
    return {
        "invoices_count": int(count or 0),
        "total_amount": money_str(money(total)),
        "paid_amount": money_str(money(paid)),
        "remaining_amount": money_str(money(remaining)),
    }


def customer_transactions(customer: Customer) -> list[dict]:
    """Invoices and the payments against them as one feed, newest first."""
    invoices = db.session.query(Invoice).filter(Invoice.customer_id == customer.id).all()
    feed: list[dict] = []
    for invoice in invoices:
        feed.append({
            "id": invoice.id,
            "type": "invoice",
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "description": f"Invoice {invoice.invoice_number}",
            "amount": money_str(invoice.total),
            "status": invoice.status,
            "payment_method": None,
            "created_at": invoice.created_at,
        })
        for payment in invoice.payments:
            feed.append({
                "id": payment.id,
                "type": "payment",
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "description": payment.notes or f"Payment on {invoice.invoice_number}",
                "amount": money_str(payment.amount),
                "status": None,
                "payment_method": payment.payment_method,
                "created_at": payment.created_at,
            })
    feed.sort(key=lambda r: (r["created_at"] is not None, r["created_at"], r["type"] == "payment", r["id"]), reverse=True)
    for row in feed:
        row["created_at"] = to_utc_z(row["created_at"])
    return feed


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Product], int]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    flt = _search_filter(search, Product.name)
    if flt is not None:
        query = query.filter(flt)

    total = query.count()
    rows = query.order_by(Product.name.asc(), Product.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def _check_category(patch: dict) -> None:
    if patch.get("category_id") is not None:
        require_category(patch["category_id"])


def create_product(*, patch: dict) -> Product:
    _check_category(patch)

    def _op() -> Product:
        product = Product(is_active=True)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(*, product_id: int, patch: dict) -> Product:
    """Invoice lines keep the name they were written with."""
    _check_category(patch)

    def _op() -> Product:
        product = require_product(product_id)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(*, product_id: int) -> Product:
    def _op() -> Product:
        product = require_product(product_id)
        product.is_active = False
        db.session.commit()
        return product

    return run_with_retry(_op)


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories(*, active_only: bool = False) -> list[dict]:
    """Categories by name, each with the number of products filed under it."""
    counts = dict(
        db.session.query(Product.category_id, db.func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    query = db.session.query(Category)
    if active_only:
        query = query.filter(Category.is_active.is_(True))

    rows = []
    for category in query.order_by(Category.name.asc(), Category.id.asc()).all():
        data = category.to_dict()
        data["products_count"] = int(counts.get(category.id, 0))
        rows.append(data)
    return rows


def create_category(*, patch: dict) -> Category:
    def _op() -> Category:
        category = Category(is_active=True)
        _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(*, category_id: int, patch: dict) -> Category:
    def _op() -> Category:
        category = require_category(category_id)
        _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
        db.session.commit()
        return category

    return run_with_retry(_op)


def deactivate_category(*, category_id: int) -> Category:
    """Soft delete: products keep their category_id."""
    def _op() -> Category:
        category = require_category(category_id)
        category.is_active = False
        db.session.commit()
        return category

    return run_with_retry(_op)
