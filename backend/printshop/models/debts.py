from __future__ import annotations

from ..extensions import db
from printshop.money import money, money_str
from printshop.time_utils import to_iso_date, to_utc_z


class DebtAccount(db.Model):
    """Groups debts owed by the same party."""
    __tablename__ = "debt_accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    debts = db.relationship("Debt", back_populates="debt_account", order_by="Debt.debt_date.desc()")

    def to_dict(self, *, include_debts: bool = False) -> dict:
        total_debt = sum((money(d.amount) for d in self.debts), money(0))
        total_paid = sum((money(d.paid_amount) for d in self.debts), money(0))
        data = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "notes": self.notes,
            "is_active": self.is_active,
            "total_debt": money_str(total_debt),
            "total_paid": money_str(total_paid),
            "balance": money_str(total_debt - total_paid),
            "active_debts_count": sum(1 for d in self.debts if not d.is_paid),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_debts:
            data["debts"] = [d.to_dict(include_repayments=True) for d in self.debts]
        return data


class Debt(db.Model):
    """
    Money owed to the business by a third party.

    remaining_amount = amount - paid_amount; is_paid flips exactly when
    remaining reaches zero.
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.Index("ix_debts_paid_date", "is_paid", "debt_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debt_account_id = db.Column(db.Integer, db.ForeignKey("debt_accounts.id"), nullable=True, index=True)

    debtor_name = db.Column(db.String(100), nullable=False)
    source = db.Column(db.String(8), nullable=False, default="cash")

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remaining_amount = db.Column(db.Numeric(12, 2), nullable=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    debt_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt_account = db.relationship("DebtAccount", back_populates="debts")
    repayments = db.relationship(
        "DebtRepayment",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by="DebtRepayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> str:
        if self.is_paid:
            return "paid"
        if money(self.paid_amount) > 0:
            return "partial"
        return "pending"

    def to_dict(self, *, include_repayments: bool = False) -> dict:
        data = {
            "id": self.id,
            "debt_account_id": self.debt_account_id,
            "debtor_name": self.debtor_name,
            "source": self.source,
            "amount": money_str(self.amount),
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "is_paid": self.is_paid,
            "status": self.status,
            "debt_date": to_iso_date(self.debt_date),
            "due_date": to_iso_date(self.due_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_repayments:
            data["repayments"] = [r.to_dict() for r in self.repayments]
        return data


class DebtRepayment(db.Model):
    __tablename__ = "debt_repayments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("debts.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(8), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt = db.relationship("Debt", back_populates="repayments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "payment_date": to_iso_date(self.payment_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
