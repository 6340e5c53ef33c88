# Overview: Flask API routes for suppliers, supplier payments and supplier cost settlement.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..models import Supplier
from ..models.suppliers import SUPPLIER_TYPES
from ..services import supplier_service
from ..services.catalog_service import require_supplier
from ..validation import ModelValidationPolicy, validate_payload
from .common import bool_arg, json_body, list_response, pagination_args


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "type", "phone", "address", "notes", "is_active"},
    required_on_create={"name"},
    choices={"type": SUPPLIER_TYPES},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
def list_suppliers_route():
    """
    Query parameters:
    - search: name or phone
    - type: printer | designer | service | material | other
    - include_inactive: default false
    - limit, offset
    """
    try:
        limit, offset = pagination_args()
        rows, total = supplier_service.list_suppliers(
            search=request.args.get("search"),
            supplier_type=request.args.get("type") or None,
            include_inactive=bool_arg("include_inactive"),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@suppliers_bp.post("")
def create_supplier_route():
    try:
        patch = validate_payload(model=Supplier, payload=json_body(), policy=SUPPLIER_POLICY, partial=False)
        supplier = supplier_service.create_supplier(patch=patch)
        return jsonify(supplier.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier_route(supplier_id: int):
    """Supplier statement: unpaid costs, payments and the payable derived from them."""
    try:
        supplier = require_supplier(supplier_id)
        return jsonify(supplier_service.supplier_statement(supplier))
    except BookkeepingError as e:
        return error_response(e)


@suppliers_bp.put("/<int:supplier_id>")
def update_supplier_route(supplier_id: int):
    try:
        patch = validate_payload(model=Supplier, payload=json_body(), policy=SUPPLIER_POLICY, partial=True)
        supplier = supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)
        return jsonify(supplier.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
def deactivate_supplier_route(supplier_id: int):
    """Soft delete; costs and payments keep their supplier."""
    try:
        supplier = supplier_service.deactivate_supplier(supplier_id=supplier_id)
        return jsonify(supplier.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("/<int:supplier_id>/payments")
def add_payment_route(supplier_id: int):
    """Request body: {"amount": "100.00", "payment_method": "cash|bank", "notes"?}"""
    try:
        data = json_body()
        payment = supplier_service.add_payment(
            supplier_id=supplier_id,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
        )
        supplier = require_supplier(supplier_id)
        return jsonify({
            "payment": payment.to_dict(),
            "supplier": supplier.to_dict(),
        }), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add supplier payment")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>/transactions")
def list_transactions_route(supplier_id: int):
    try:
        supplier = require_supplier(supplier_id)
        return jsonify({"items": supplier_service.list_transactions(supplier)})
    except BookkeepingError as e:
        return error_response(e)


@suppliers_bp.patch("/<int:supplier_id>/costs/<int:cost_id>")
def update_cost_route(supplier_id: int, cost_id: int):
    """Request body: {"is_paid": true}"""
    try:
        data = json_body()
        if "is_paid" not in data:
            return jsonify({"error": "is_paid is required", "fields": {"is_paid": "is_paid is required"}}), 422
        cost = supplier_service.set_cost_paid(supplier_id=supplier_id, cost_id=cost_id, is_paid=data["is_paid"])
        supplier = require_supplier(supplier_id)
        return jsonify({
            "cost": cost.to_dict(),
            "supplier": supplier.to_dict(),
        })
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier cost")
        return jsonify({"error": "Internal server error"}), 500
