# Overview: Flask API routes for debts, debt repayments and debt accounts.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..models import DebtAccount
from ..services import debt_service
from ..validation import ModelValidationPolicy, validate_payload
from .common import bool_arg, json_body, list_response, pagination_args


DEBT_ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "notes", "is_active"},
    required_on_create={"name"},
)

debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")
debt_accounts_bp = Blueprint("debt_accounts", __name__, url_prefix="/api/debt-accounts")


# =============================================================================
# DEBTS
# =============================================================================

@debts_bp.get("")
def list_debts_route():
    """
    Query parameters:
    - search: debtor name
    - status: paid | unpaid
    - debt_account_id
    - limit, offset
    """
    try:
        limit, offset = pagination_args()
        rows, total = debt_service.list_debts(
            search=request.args.get("search"),
            status=request.args.get("status") or None,
            debt_account_id=request.args.get("debt_account_id", type=int),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@debts_bp.post("")
def create_debt_route():
    """
    Request body:
    {
        "debtor_name": "Ahmed",        // required
        "source": "cash",              // cash | bank
        "amount": "40.00",
        "debt_date": "2026-03-01",     // optional, defaults to today
        "due_date": "2026-04-01",      // optional, >= debt_date
        "debt_account_id": 1,          // optional
        "notes": "..."
    }
    """
    try:
        data = json_body()
        debt = debt_service.create_debt(
            debtor_name=data.get("debtor_name"),
            source=data.get("source"),
            amount=data.get("amount"),
            debt_date=data.get("debt_date"),
            due_date=data.get("due_date"),
            debt_account_id=data.get("debt_account_id"),
            notes=data.get("notes"),
        )
        return jsonify(debt.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create debt")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.get("/<int:debt_id>")
def get_debt_route(debt_id: int):
    try:
        debt = debt_service.require_debt(debt_id)
        return jsonify(debt.to_dict(include_repayments=True))
    except BookkeepingError as e:
        return error_response(e)


@debts_bp.delete("/<int:debt_id>")
def delete_debt_route(debt_id: int):
    try:
        debt_service.destroy_debt(debt_id=debt_id)
        return jsonify({"ok": True})
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete debt")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.post("/<int:debt_id>/repay")
def repay_route(debt_id: int):
    """Request body: {"amount": "40.00", "payment_method": "cash|bank", "notes"?}"""
    try:
        data = json_body()
        repayment = debt_service.repay(
            debt_id=debt_id,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
            payment_date=data.get("payment_date"),
        )
        debt = debt_service.require_debt(debt_id)
        return jsonify({
            "repayment": repayment.to_dict(),
            "debt": debt.to_dict(),
        }), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to repay debt")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DEBT ACCOUNTS
# =============================================================================

@debt_accounts_bp.get("")
def list_accounts_route():
    try:
        limit, offset = pagination_args()
        rows, total = debt_service.list_accounts(
            search=request.args.get("search"),
            include_inactive=bool_arg("include_inactive"),
            limit=limit,
            offset=offset,
        )
        return list_response(rows, total, limit, offset)
    except BookkeepingError as e:
        return error_response(e)


@debt_accounts_bp.post("")
def create_account_route():
    try:
        patch = validate_payload(model=DebtAccount, payload=json_body(), policy=DEBT_ACCOUNT_POLICY, partial=False)
        account = debt_service.create_account(patch=patch)
        return jsonify(account.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create debt account")
        return jsonify({"error": "Internal server error"}), 500


@debt_accounts_bp.get("/<int:account_id>")
def get_account_route(account_id: int):
    try:
        account = debt_service.require_account(account_id)
        return jsonify(account.to_dict(include_debts=True))
    except BookkeepingError as e:
        return error_response(e)


@debt_accounts_bp.put("/<int:account_id>")
def update_account_route(account_id: int):
    try:
        patch = validate_payload(model=DebtAccount, payload=json_body(), policy=DEBT_ACCOUNT_POLICY, partial=True)
        account = debt_service.update_account(account_id=account_id, patch=patch)
        return jsonify(account.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update debt account")
        return jsonify({"error": "Internal server error"}), 500


@debt_accounts_bp.delete("/<int:account_id>")
def delete_account_route(account_id: int):
    try:
        debt_service.destroy_account(account_id=account_id)
        return jsonify({"ok": True})
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete debt account")
        return jsonify({"error": "Internal server error"}), 500
