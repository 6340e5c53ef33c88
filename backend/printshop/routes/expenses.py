# Overview: Flask API routes for expenses, expense types and withdrawals.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..services import expense_service
from .common import bool_arg, date_arg, json_body, list_response, pagination_args


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")
expense_types_bp = Blueprint("expense_types", __name__, url_prefix="/api/expense-types")
withdrawals_bp = Blueprint("withdrawals", __name__, url_prefix="/api/withdrawals")


@expense_types_bp.get("")
def list_expense_types_route():
    rows = expense_service.list_expense_types(include_inactive=bool_arg("include_inactive"))
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@expense_types_bp.post("")
def create_expense_type_route():
    try:
        data = json_body()
        expense_type = expense_service.create_expense_type(
            name=data.get("name"),
            description=data.get("description"),
        )
        return jsonify(expense_type.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create expense type")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("")
def list_expenses_route():
    try:
        limit, offset = pagination_args()
        rows, total = expense_service.list_expenses(
            expense_type_id=request.args.get("expense_type_id", type=int),
            payment_method=request.args.get("payment_method") or None,
            date_from=date_arg("date_from"),
            date_to=date_arg("date_to"),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@expenses_bp.post("")
def create_expense_route():
    """Request body: {"expense_type_id": 1, "amount": "300.00", "payment_method": "cash|bank", "expense_date"?, "notes"?}"""
    try:
        data = json_body()
        expense = expense_service.create_expense(
            expense_type_id=data.get("expense_type_id"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            expense_date=data.get("expense_date"),
            notes=data.get("notes"),
        )
        return jsonify(expense.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@withdrawals_bp.get("")
def list_withdrawals_route():
    try:
        limit, offset = pagination_args()
        rows, total = expense_service.list_withdrawals(
            payment_method=request.args.get("payment_method") or None,
            date_from=date_arg("date_from"),
            date_to=date_arg("date_to"),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@withdrawals_bp.post("")
def create_withdrawal_route():
    """Request body: {"withdrawn_by": "Owner", "amount": "200.00", "payment_method": "cash|bank", "withdrawal_date"?, "notes"?}"""
    try:
        data = json_body()
        withdrawal = expense_service.create_withdrawal(
            withdrawn_by=data.get("withdrawn_by"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            withdrawal_date=data.get("withdrawal_date"),
            notes=data.get("notes"),
        )
        return jsonify(withdrawal.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create withdrawal")
        return jsonify({"error": "Internal server error"}), 500
