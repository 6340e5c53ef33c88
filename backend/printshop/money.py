"""
Money and quantity primitives.

Money is a Decimal with exactly two places; quantities carry three places so
fractional units (meters, liters) survive repeated additions. Nothing here
ever goes through float arithmetic: JSON floats are converted through their
shortest repr, which is what the client actually typed.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional


MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")

ZERO = Decimal("0.00")

# Upper bounds for stored values (Numeric(12, 2) money, Numeric(12, 3) quantities)
MAX_MONEY = Decimal("9999999999.99")
MAX_QUANTITY = Decimal("999999999.999")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidOperation("booleans are not numbers")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        d = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidOperation("empty string")
        d = Decimal(stripped)
    else:
        raise InvalidOperation(f"unsupported type {type(value).__name__}")
    if not d.is_finite():
        raise InvalidOperation("not a finite number")
    return d


def to_money(value: Any) -> Decimal:
    """Coerce to a 2-place Decimal. Raises InvalidOperation on bad input."""
    return _to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_quantity(value: Any) -> Decimal:
    """Coerce to a 3-place Decimal. Raises InvalidOperation on bad input."""
    return _to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def money(value: Any) -> Decimal:
    """Normalize a value read back from the database (None -> 0.00)."""
    if value is None:
        return ZERO
    return to_money(value)


def money_sum(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for v in values:
        total += money(v)
    return total


def multiply(quantity: Any, unit_price: Any) -> Decimal:
    """Line total: quantity x unit price, rounded half-up to cents."""
    return (_to_decimal(quantity) * _to_decimal(unit_price)).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def weighted_average(
    old_quantity: Any,
    old_unit_cost: Optional[Any],
    added_quantity: Any,
    added_unit_cost: Any,
) -> Decimal:
    """
    Blend existing stock cost with an incoming receipt.

    new = (old_qty * old_cost + qty * cost) / (old_qty + qty)

    A missing old cost (or no stock on hand) means the incoming cost wins.
    """
    old_qty = _to_decimal(old_quantity)
    add_qty = _to_decimal(added_quantity)
    add_cost = _to_decimal(added_unit_cost)
    if old_unit_cost is None or old_qty <= 0:
        return add_cost.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    old_cost = _to_decimal(old_unit_cost)
    total_qty = old_qty + add_qty
    blended = (old_qty * old_cost + add_qty * add_cost) / total_qty
    return blended.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> Optional[str]:
    """Serialize for JSON as a decimal string ("120.00")."""
    if value is None:
        return None
    return str(to_money(value))


def quantity_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(to_quantity(value))
