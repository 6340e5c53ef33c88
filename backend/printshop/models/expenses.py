from __future__ import annotations

from ..extensions import db
from printshop.money import money_str
from printshop.time_utils import to_iso_date, to_utc_z


class ExpenseType(db.Model):
    __tablename__ = "expense_types"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_expense_types_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """Operating expense (rent, electricity...). Posts an `expense` cash movement."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    expense_type_id = db.Column(db.Integer, db.ForeignKey("expense_types.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(8), nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    expense_type = db.relationship("ExpenseType")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_type_id": self.expense_type_id,
            "expense_type_name": self.expense_type.name if self.expense_type else None,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "expense_date": to_iso_date(self.expense_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Withdrawal(db.Model):
    """Owner/partner withdrawal. Posts a `withdrawal` cash movement."""
    __tablename__ = "withdrawals"
    __table_args__ = (
        db.Index("ix_withdrawals_date", "withdrawal_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    withdrawn_by = db.Column(db.String(100), nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(8), nullable=False)
    withdrawal_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "withdrawn_by": self.withdrawn_by,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "withdrawal_date": to_iso_date(self.withdrawal_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
