# Overview: Flask API routes for cash and bank balances and the cash movement ledger.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..services import cash_service
from .common import datetime_range_args, json_body, list_response, pagination_args


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.get("/balance")
def get_balance_route():
    """Current cash, bank and total balance."""
    try:
        return jsonify(cash_service.get_balance().to_dict())
    except Exception:
        current_app.logger.exception("Failed to load cash balance")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/movements")
def list_movements_route():
    """
    Query parameters:
    - movement_type, source (cash|bank)
    - date_from, date_to (YYYY-MM-DD, inclusive)
    - limit, offset
    """
    try:
        limit, offset = pagination_args()
        date_from, date_to = datetime_range_args()
        rows, total = cash_service.list_movements(
            movement_type=request.args.get("movement_type") or None,
            source=request.args.get("source") or None,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@cash_bp.post("/transfer")
def transfer_route():
    """Request body: {"from": "cash", "to": "bank", "amount": "50.00", "description"?}"""
    try:
        data = json_body()
        movements = cash_service.transfer(
            from_source=data.get("from"),
            to_source=data.get("to"),
            amount=data.get("amount"),
            description=data.get("description"),
        )
        return jsonify({
            "movements": [m.to_dict() for m in movements],
            "balance": cash_service.get_balance().to_dict(),
        }), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to transfer funds")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/set-initial")
def set_initial_route():
    """
    Overwrite both balances (opening balance / reset).

    Request body: {"cash_balance": "1000.00", "bank_balance": "5000.00"}
    """
    try:
        data = json_body()
        balance = cash_service.set_initial(
            cash_balance=data.get("cash_balance", 0),
            bank_balance=data.get("bank_balance", 0),
        )
        return jsonify(balance.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set initial balances")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/adjust")
def adjust_route():
    """Request body: {"source": "cash", "amount": "-25.00", "description": "Till count difference"}"""
    try:
        data = json_body()
        movement = cash_service.adjust(
            source=data.get("source"),
            amount=data.get("amount"),
            description=data.get("description"),
        )
        return jsonify({
            "movement": movement.to_dict(),
            "balance": cash_service.get_balance().to_dict(),
        }), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust balance")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/reconcile")
def reconcile_route():
    """Stored balances vs. balances derived from the movement log."""
    return jsonify(cash_service.reconcile())
