from __future__ import annotations

from ..extensions import db
from printshop.money import money, money_str
from printshop.time_utils import to_utc_z


SOURCE_CASH = "cash"
SOURCE_BANK = "bank"
SOURCES = (SOURCE_CASH, SOURCE_BANK)

MOVEMENT_TYPES = (
    "initial",
    "income",
    "expense",
    "withdrawal",
    "transfer_in",
    "transfer_out",
    "adjustment",
    "invoice_payment",
    "debt_repayment",
    "debt_created",
    "supplier_payment",
)

# Direction is decided by movement_type, never by the sign of amount
INFLOW_TYPES = frozenset({"initial", "income", "transfer_in", "invoice_payment", "debt_repayment"})
OUTFLOW_TYPES = frozenset({"expense", "withdrawal", "transfer_out", "supplier_payment", "debt_created"})
SIGNED_TYPES = frozenset({"adjustment"})


class CashBalance(db.Model):
    """
    Singleton row (id=1) holding cash-on-hand and bank balances.

    Only cash_service writes here, always in the same transaction as the
    CashMovement that explains the change.
    """
    __tablename__ = "cash_balance"

    SINGLETON_ID = 1

    id = db.Column(db.Integer, primary_key=True)
    cash_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    bank_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def balance_for(self, source: str):
        if source == SOURCE_CASH:
            return money(self.cash_balance)
        return money(self.bank_balance)

    def to_dict(self) -> dict:
        cash = money(self.cash_balance)
        bank = money(self.bank_balance)
        return {
            "cash_balance": money_str(cash),
            "bank_balance": money_str(bank),
            "total_balance": money_str(cash + bank),
            "updated_at": to_utc_z(self.updated_at),
        }


class CashMovement(db.Model):
    """Append-only audit row explaining one balance change."""
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_source_date", "source", "movement_date"),
        db.Index("ix_cash_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    movement_type = db.Column(db.String(32), nullable=False, index=True)
    source = db.Column(db.String(8), nullable=False)

    # Unsigned for typed movements; adjustments keep the caller's sign
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    description = db.Column(db.Text, nullable=True)
    reference_type = db.Column(db.String(50), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def signed_amount(self):
        """Balance delta this movement stands for."""
        amt = money(self.amount)
        if self.movement_type in INFLOW_TYPES:
            return amt.copy_abs()
        if self.movement_type in OUTFLOW_TYPES:
            return -amt.copy_abs()
        return amt

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "movement_type": self.movement_type,
            "source": self.source,
            "amount": money_str(self.amount),
            "direction": "in" if self.signed_amount() >= 0 else "out",
            "description": self.description,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "movement_date": to_utc_z(self.movement_date),
            "created_at": to_utc_z(self.created_at),
        }
