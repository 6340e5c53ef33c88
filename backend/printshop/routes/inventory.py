# Overview: Flask API routes for consumable stock items and their in/out movements.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..models import InventoryItem
from ..services import inventory_service
from ..validation import ModelValidationPolicy, validate_payload
from .common import bool_arg, datetime_range_args, json_body, list_response, pagination_args


INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "minimum_quantity", "notes", "is_active"},
    required_on_create={"name"},
    non_negative={"minimum_quantity"},
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")
inventory_movements_bp = Blueprint("inventory_movements", __name__, url_prefix="/api/inventory-movements")


@inventory_bp.get("")
def list_items_route():
    """
    Query parameters:
    - search: item name
    - low_stock: only items at or below minimum_quantity
    - include_inactive: default false
    - limit, offset
    """
    try:
        limit, offset = pagination_args()
        rows, total = inventory_service.list_items(
            search=request.args.get("search"),
            low_stock=bool_arg("low_stock"),
            include_inactive=bool_arg("include_inactive"),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@inventory_bp.post("")
def create_item_route():
    """
    Request body:
    {
        "name": "A4 paper 80g",        // required
        "unit": "ream",
        "minimum_quantity": 5,
        "current_quantity": 20,        // optional opening stock
        "unit_cost": "4.50",           // optional opening cost
        "notes": "..."
    }
    """
    try:
        data = json_body()
        initial_quantity = data.pop("current_quantity", None)
        unit_cost = data.pop("unit_cost", None)
        patch = validate_payload(model=InventoryItem, payload=data, policy=INVENTORY_POLICY, partial=False)
        item = inventory_service.create_item(patch=patch, initial_quantity=initial_quantity, unit_cost=unit_cost)
        return jsonify(item.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    """Item with its 20 most recent movements."""
    try:
        item = inventory_service.require_item(item_id)
        movements, _ = inventory_service.list_movements(inventory_item_id=item.id, limit=20)
        data = item.to_dict()
        data["movements"] = [m.to_dict() for m in movements]
        return jsonify(data)
    except BookkeepingError as e:
        return error_response(e)


@inventory_bp.put("/<int:item_id>")
def update_item_route(item_id: int):
    try:
        patch = validate_payload(model=InventoryItem, payload=json_body(), policy=INVENTORY_POLICY, partial=True)
        item = inventory_service.update_item(item_id=item_id, patch=patch)
        return jsonify(item.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/<int:item_id>")
def deactivate_item_route(item_id: int):
    try:
        item = inventory_service.deactivate_item(item_id=item_id)
        return jsonify(item.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:item_id>/add-stock")
def add_stock_route(item_id: int):
    """Request body: {"quantity": 10, "unit_cost"?: "4.75", "notes"?}"""
    try:
        data = json_body()
        movement = inventory_service.add_stock(
            item_id=item_id,
            quantity=data.get("quantity"),
            unit_cost=data.get("unit_cost"),
            notes=data.get("notes"),
        )
        item = inventory_service.require_item(item_id)
        return jsonify({"movement": movement.to_dict(), "item": item.to_dict()}), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:item_id>/remove-stock")
def remove_stock_route(item_id: int):
    """Request body: {"quantity": 3, "notes"?}. 409 when quantity exceeds stock on hand."""
    try:
        data = json_body()
        movement = inventory_service.remove_stock(
            item_id=item_id,
            quantity=data.get("quantity"),
            notes=data.get("notes"),
        )
        item = inventory_service.require_item(item_id)
        return jsonify({"movement": movement.to_dict(), "item": item.to_dict()}), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_movements_bp.get("")
def list_movements_route():
    try:
        limit, offset = pagination_args()
        date_from, date_to = datetime_range_args()
        rows, total = inventory_service.list_movements(
            inventory_item_id=request.args.get("inventory_item_id", type=int),
            movement_type=request.args.get("movement_type") or None,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@inventory_movements_bp.post("")
def store_movement_route():
    """Request body: {"inventory_item_id": 1, "movement_type": "in|out", "quantity": 5, "unit_cost"?, "notes"?}"""
    try:
        data = json_body()
        movement = inventory_service.store_movement(
            inventory_item_id=data.get("inventory_item_id"),
            movement_type=data.get("movement_type"),
            quantity=data.get("quantity"),
            unit_cost=data.get("unit_cost"),
            notes=data.get("notes"),
            movement_date=data.get("movement_date"),
        )
        return jsonify(movement.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to store inventory movement")
        return jsonify({"error": "Internal server error"}), 500
