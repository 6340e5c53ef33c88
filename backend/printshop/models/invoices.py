from __future__ import annotations

from ..extensions import db
from printshop.money import money_str, quantity_str
from printshop.time_utils import to_iso_date, to_utc_z


INVOICE_STATUS_NEW = "new"
INVOICE_STATUS_IN_PROGRESS = "in_progress"
INVOICE_STATUS_READY = "ready"
INVOICE_STATUS_DELIVERED = "delivered"
INVOICE_STATUS_CANCELLED = "cancelled"

INVOICE_STATUSES = (
    INVOICE_STATUS_NEW,
    INVOICE_STATUS_IN_PROGRESS,
    INVOICE_STATUS_READY,
    INVOICE_STATUS_DELIVERED,
    INVOICE_STATUS_CANCELLED,
)

PAYMENT_TYPES = ("deposit", "partial", "full")


class Invoice(db.Model):
    """
    Invoice aggregate root.

    Stored totals are derived and rewritten by invoice_service on every
    item edit or payment:
    - total = subtotal - discount
    - remaining_amount = max(total - paid_amount, 0)
    - profit = total - total_cost
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_status_date", "status", "invoice_date"),
        db.Index("ix_invoices_customer_date", "customer_id", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_NEW)

    invoice_date = db.Column(db.Date, nullable=False)
    delivery_date = db.Column(db.Date, nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remaining_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    payments = db.relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, *, include_items: bool = False, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "customer_phone": self.customer.phone if self.customer else None,
            "status": self.status,
            "invoice_date": to_iso_date(self.invoice_date),
            "delivery_date": to_iso_date(self.delivery_date),
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "total_cost": money_str(self.total_cost),
            "profit": money_str(self.profit),
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class InvoiceItem(db.Model):
    """One invoice line. total_cost is the raw sum of its costs."""
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="items")
    product = db.relationship("Product")
    costs = db.relationship(
        "ItemCost",
        back_populates="invoice_item",
        cascade="all, delete-orphan",
        order_by="ItemCost.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "description": self.description,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "total_price": money_str(self.total_price),
            "total_cost": money_str(self.total_cost),
            "profit": money_str(self.profit),
            "costs": [c.to_dict() for c in self.costs],
        }


class ItemCost(db.Model):
    """
    Cost attached to an invoice line.

    A non-internal cost with a supplier is part of that supplier's payable
    while is_paid is False. Create, delete and is_paid flips must go through
    supplier_service so Supplier.total_debt follows.
    """
    __tablename__ = "item_costs"
    __table_args__ = (
        db.Index("ix_item_costs_supplier_unpaid", "supplier_id", "is_paid"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_item_id = db.Column(db.Integer, db.ForeignKey("invoice_items.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    cost_type = db.Column(db.String(100), nullable=False, default="general cost")
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    is_internal = db.Column(db.Boolean, nullable=False, default=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice_item = db.relationship("InvoiceItem", back_populates="costs")
    supplier = db.relationship("Supplier", backref=db.backref("costs", lazy=True))

    @property
    def accrues_payable(self) -> bool:
        """True while this cost counts toward its supplier's payable."""
        return bool(self.supplier_id) and not self.is_internal and not self.is_paid

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_item_id": self.invoice_item_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "cost_type": self.cost_type,
            "amount": money_str(self.amount),
            "is_internal": self.is_internal,
            "is_paid": self.is_paid,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class InvoicePayment(db.Model):
    """Customer payment against an invoice; mirrored by an invoice_payment CashMovement."""
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(8), nullable=False)
    payment_type = db.Column(db.String(16), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "payment_type": self.payment_type,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-period document sequences.

    WHY: Prevent two concurrent requests from allocating the same invoice
    number (no "read max, increment").
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    period = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period": self.period,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
