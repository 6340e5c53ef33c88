# Overview: Flask API routes for the read-only dashboard aggregates.

from flask import Blueprint, jsonify, request

from ..services import reporting_service
from ..services.reporting_service import ReportError


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
def dashboard_route():
    return jsonify(reporting_service.dashboard_summary())


@dashboard_bp.get("/charts")
def charts_route():
    """Query parameters: days (1..366, default 30)."""
    days = request.args.get("days", 30, type=int)
    try:
        return jsonify(reporting_service.daily_sales(days))
    except ReportError as e:
        return jsonify({"error": str(e)}), 422
