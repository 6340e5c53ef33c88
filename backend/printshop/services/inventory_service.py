# Overview: Service-layer operations for consumable stock; quantity on hand and weighted-average cost.

"""
Inventory invariants:
- current_quantity never goes negative: a removal larger than the stock on
  hand fails with InsufficientStockError and changes nothing.
- unit_cost is a weighted average over costed receipts:
    new = (old_qty * old_cost + qty * cost) / (old_qty + qty)
  A receipt without unit_cost leaves unit_cost alone; a first costed
  receipt (unit_cost still NULL) takes the incoming cost as is.
- Removals never change unit_cost.
- Every quantity change appends an InventoryMovement in the same
  transaction.

Stock is independent of invoices: nothing here is triggered by invoicing.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import InventoryItem, InventoryMovement
from ..models.inventory import INVENTORY_MOVEMENT_IN, INVENTORY_MOVEMENT_OUT, INVENTORY_MOVEMENT_TYPES
from ..money import MAX_MONEY, MAX_QUANTITY, multiply, to_quantity, weighted_average
from ..time_utils import utcnow
from ..validation import (
    coerce_choice,
    coerce_datetime,
    coerce_id,
    coerce_money,
    coerce_quantity,
    coerce_text,
    field_error,
)
from .concurrency import lock_for_update, run_with_retry


INVENTORY_MUTABLE_FIELDS = {"name", "unit", "minimum_quantity", "notes", "is_active"}


def require_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def _lock_item(item_id: int) -> InventoryItem:
    item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


# =============================================================================
# ITEMS
# =============================================================================

def list_items(
    *,
    search: str | None = None,
    low_stock: bool = False,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[InventoryItem], int]:
    query = db.session.query(InventoryItem)
    if not include_inactive:
        query = query.filter(InventoryItem.is_active.is_(True))
    if search and search.strip():
        query = query.filter(InventoryItem.name.ilike(f"%{search.strip()}%"))
    if low_stock:
        query = query.filter(InventoryItem.current_quantity <= InventoryItem.minimum_quantity)

    total = query.count()
    rows = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).offset(offset).limit(limit).all()
    return rows, total


def create_item(*, patch: dict, initial_quantity=None, unit_cost=None) -> InventoryItem:
    """
    Create an item. An opening quantity is booked as a regular `in`
    movement so the movement log explains the whole stock level.
    """
    quantity = coerce_quantity("current_quantity", initial_quantity) if initial_quantity is not None else Decimal("0")
    cost = coerce_money("unit_cost", unit_cost, minimum=Decimal("0")) if unit_cost is not None else None

    def _op() -> InventoryItem:
        item = InventoryItem(is_active=True, current_quantity=Decimal("0"), unit_cost=None)
        for k, v in patch.items():
            if k in INVENTORY_MUTABLE_FIELDS:
                setattr(item, k, v)
        db.session.add(item)
        db.session.flush()

        if quantity > 0:
            _add_stock_inner(item, quantity=quantity, unit_cost=cost, notes="Opening stock")
        elif cost is not None:
            item.unit_cost = cost

        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(*, item_id: int, patch: dict) -> InventoryItem:
    """Quantity and cost are not patchable; they move only through stock operations."""
    def _op() -> InventoryItem:
        item = _lock_item(item_id)
        for k, v in patch.items():
            if k in INVENTORY_MUTABLE_FIELDS:
                setattr(item, k, v)
        db.session.commit()
        return item

    return run_with_retry(_op)


def deactivate_item(*, item_id: int) -> InventoryItem:
    def _op() -> InventoryItem:
        item = _lock_item(item_id)
        item.is_active = False
        db.session.commit()
        return item

    return run_with_retry(_op)


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

def _add_stock_inner(item: InventoryItem, *, quantity: Decimal, unit_cost: Decimal | None, notes=None, movement_date=None) -> InventoryMovement:
    """Core receipt logic without locking, retry or commit."""
    old_qty = to_quantity(item.current_quantity or 0)
    if old_qty + quantity > MAX_QUANTITY:
        raise field_error("quantity", "Stock on hand would exceed the maximum allowed quantity")
    if unit_cost is not None and multiply(quantity, unit_cost) > MAX_MONEY:
        raise field_error("quantity", "Receipt total cost exceeds the maximum allowed amount")
    if unit_cost is not None:
        item.unit_cost = weighted_average(old_qty, item.unit_cost, quantity, unit_cost)
    item.current_quantity = old_qty + quantity

    movement = InventoryMovement(
        inventory_item_id=item.id,
        movement_type=INVENTORY_MOVEMENT_IN,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=multiply(quantity, unit_cost) if unit_cost is not None else None,
        notes=notes,
        movement_date=movement_date or utcnow(),
    )
    db.session.add(movement)
    return movement


def _remove_stock_inner(item: InventoryItem, *, quantity: Decimal, notes=None, movement_date=None) -> InventoryMovement:
    """Core removal logic without locking, retry or commit."""
    on_hand = to_quantity(item.current_quantity or 0)
    if quantity > on_hand:
        raise InsufficientStockError(
            f"Insufficient stock: requested {quantity}, available {on_hand}",
            fields={"quantity": f"quantity must be <= {on_hand}"},
        )
    item.current_quantity = on_hand - quantity

    movement = InventoryMovement(
        inventory_item_id=item.id,
        movement_type=INVENTORY_MOVEMENT_OUT,
        quantity=quantity,
        unit_cost=item.unit_cost,
        total_cost=multiply(quantity, item.unit_cost) if item.unit_cost is not None else None,
        notes=notes,
        movement_date=movement_date or utcnow(),
    )
    db.session.add(movement)
    return movement


def add_stock(*, item_id: int, quantity, unit_cost=None, notes=None) -> InventoryMovement:
    quantity = coerce_quantity("quantity", quantity, strictly_positive=True)
    unit_cost = coerce_money("unit_cost", unit_cost, minimum=Decimal("0")) if unit_cost is not None else None
    notes = coerce_text("notes", notes)

    def _op() -> InventoryMovement:
        item = _lock_item(item_id)
        movement = _add_stock_inner(item, quantity=quantity, unit_cost=unit_cost, notes=notes)
        db.session.commit()
        current_app.logger.info("Stock in: item=%s qty=%s unit_cost=%s", item.id, quantity, unit_cost)
        return movement

    return run_with_retry(_op)


def remove_stock(*, item_id: int, quantity, notes=None) -> InventoryMovement:
    quantity = coerce_quantity("quantity", quantity, strictly_positive=True)
    notes = coerce_text("notes", notes)

    def _op() -> InventoryMovement:
        item = _lock_item(item_id)
        movement = _remove_stock_inner(item, quantity=quantity, notes=notes)
        db.session.commit()
        current_app.logger.info("Stock out: item=%s qty=%s", item.id, quantity)
        return movement

    return run_with_retry(_op)


def store_movement(*, inventory_item_id, movement_type, quantity, unit_cost=None, notes=None, movement_date=None) -> InventoryMovement:
    """Generic entry point: dispatch an in/out movement payload to add/remove."""
    if inventory_item_id is None:
        raise field_error("inventory_item_id", "inventory_item_id is required")
    item_id = coerce_id("inventory_item_id", inventory_item_id)
    movement_type = coerce_choice("movement_type", movement_type, INVENTORY_MOVEMENT_TYPES)
    quantity = coerce_quantity("quantity", quantity, strictly_positive=True)
    unit_cost = coerce_money("unit_cost", unit_cost, minimum=Decimal("0")) if unit_cost is not None else None
    notes = coerce_text("notes", notes)
    movement_date = coerce_datetime("movement_date", movement_date)

    def _op() -> InventoryMovement:
        item = _lock_item(item_id)
        if movement_type == INVENTORY_MOVEMENT_IN:
            movement = _add_stock_inner(item, quantity=quantity, unit_cost=unit_cost, notes=notes, movement_date=movement_date)
        else:
            movement = _remove_stock_inner(item, quantity=quantity, notes=notes, movement_date=movement_date)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(
    *,
    inventory_item_id: int | None = None,
    movement_type: str | None = None,
    date_from=None,
    date_to=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[InventoryMovement], int]:
    query = db.session.query(InventoryMovement)
    if inventory_item_id:
        query = query.filter(InventoryMovement.inventory_item_id == inventory_item_id)
    if movement_type:
        query = query.filter(InventoryMovement.movement_type == coerce_choice("movement_type", movement_type, INVENTORY_MOVEMENT_TYPES))
    if date_from:
        query = query.filter(InventoryMovement.movement_date >= date_from)
    if date_to:
        query = query.filter(InventoryMovement.movement_date <= date_to)

    total = query.count()
    rows = (
        query.order_by(InventoryMovement.movement_date.desc(), InventoryMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total
