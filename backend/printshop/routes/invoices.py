# Overview: Flask API routes for invoices; parses input and returns JSON responses.

"""
Invoice API Routes

- GET    /api/invoices                  list (search, status, customer_id, date_from, date_to)
- POST   /api/invoices                  create with items and costs
- GET    /api/invoices/<id>             invoice with items, costs and payments
- PUT    /api/invoices/<id>             patch fields and/or replace items
- DELETE /api/invoices/<id>             only when there are no payments
- PATCH  /api/invoices/<id>/status      status workflow
- POST   /api/invoices/<id>/payments    apply a customer payment
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..services import invoice_service
from .common import date_arg, json_body, list_response, pagination_args


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
def list_invoices_route():
    try:
        limit, offset = pagination_args()
        rows, total = invoice_service.list_invoices(
            search=request.args.get("search"),
            status=request.args.get("status") or None,
            customer_id=request.args.get("customer_id", type=int),
            date_from=date_arg("date_from"),
            date_to=date_arg("date_to"),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@invoices_bp.post("")
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "customer_id": 1,                 // optional (walk-in when omitted)
        "invoice_date": "2026-03-01",     // optional, defaults to today
        "delivery_date": "2026-03-05",    // optional
        "discount": "10.00",              // optional
        "notes": "...",
        "items": [
            {
                "product_id": 3, "product_name": "Flyer A5", "description": "...",
                "quantity": 2, "unit_price": "50.00",
                "costs": [{"supplier_id": 1, "cost_type": "printing", "amount": "20.00", "is_internal": false}]
            }
        ]
    }

    Returns:
        201: Invoice with items and payments
        404: Unknown customer or supplier
        422: Validation failed
    """
    try:
        data = json_body()
        invoice = invoice_service.create_invoice(
            items=data.get("items"),
            customer_id=data.get("customer_id"),
            invoice_date=data.get("invoice_date"),
            delivery_date=data.get("delivery_date"),
            discount=data.get("discount"),
            notes=data.get("notes"),
        )
        return jsonify(invoice.to_dict(include_items=True, include_payments=True)), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify(invoice.to_dict(include_items=True, include_payments=True))
    except BookkeepingError as e:
        return error_response(e)


@invoices_bp.put("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    """
    Update an invoice. Scalar fields are patched; when "items" is present
    the whole item set is replaced.
    """
    try:
        data = json_body()
        items = data.pop("items", None)
        invoice = invoice_service.update_invoice(invoice_id=invoice_id, patch=data, items=items)
        return jsonify(invoice.to_dict(include_items=True, include_payments=True))
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.destroy_invoice(invoice_id=invoice_id)
        return jsonify({"ok": True})
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.patch("/<int:invoice_id>/status")
def update_status_route(invoice_id: int):
    """Request body: {"status": "new|in_progress|ready|delivered|cancelled"}"""
    try:
        data = json_body()
        invoice = invoice_service.update_status(invoice_id=invoice_id, status=data.get("status"))
        return jsonify(invoice.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice status")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/payments")
def add_payment_route(invoice_id: int):
    """
    Apply a payment.

    Request body:
    {
        "amount": "120.00",
        "payment_method": "cash",        // cash | bank
        "payment_type": "full",          // deposit | partial | full
        "payment_date": "2026-03-01T10:00:00Z",  // optional
        "notes": "..."
    }

    Returns:
        201: {payment, invoice}
        422: Validation failed, overpayment or cancelled invoice
    """
    try:
        data = json_body()
        payment = invoice_service.add_payment(
            invoice_id=invoice_id,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            payment_type=data.get("payment_type"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
        )
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify({
            "payment": payment.to_dict(),
            "invoice": invoice.to_dict(),
        }), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add invoice payment")
        return jsonify({"error": "Internal server error"}), 500
