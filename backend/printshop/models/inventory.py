from __future__ import annotations

from ..extensions import db
from printshop.money import money_str, quantity_str, to_quantity
from printshop.time_utils import to_utc_z


INVENTORY_MOVEMENT_IN = "in"
INVENTORY_MOVEMENT_OUT = "out"
INVENTORY_MOVEMENT_TYPES = (INVENTORY_MOVEMENT_IN, INVENTORY_MOVEMENT_OUT)


class InventoryItem(db.Model):
    """
    Consumable stock (paper, ink, banner rolls...).

    Not linked to invoices: stock moves only through add/remove operations.
    unit_cost is a weighted average and stays NULL until the first costed
    receipt.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(20), nullable=False, default="piece")

    current_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    minimum_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    movements = db.relationship(
        "InventoryMovement",
        back_populates="inventory_item",
        order_by="InventoryMovement.id.desc()",
        lazy="dynamic",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return to_quantity(self.current_quantity or 0) <= to_quantity(self.minimum_quantity or 0)

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} qty={self.current_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "current_quantity": quantity_str(self.current_quantity),
            "minimum_quantity": quantity_str(self.minimum_quantity),
            "unit_cost": money_str(self.unit_cost),
            "is_low_stock": self.is_low_stock,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """Append-only stock movement (in/out) for an InventoryItem."""
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_item_date", "inventory_item_id", "movement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)

    movement_type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    total_cost = db.Column(db.Numeric(12, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory_item = db.relationship("InventoryItem", back_populates="movements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "item_name": self.inventory_item.name if self.inventory_item else None,
            "movement_type": self.movement_type,
            "quantity": quantity_str(self.quantity),
            "unit_cost": money_str(self.unit_cost),
            "total_cost": money_str(self.total_cost),
            "notes": self.notes,
            "movement_date": to_utc_z(self.movement_date),
            "created_at": to_utc_z(self.created_at),
        }
