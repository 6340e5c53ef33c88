# Overview: Request parsing helpers shared by the API blueprints (pagination, filters, JSON body).

from __future__ import annotations

from datetime import datetime, time

from flask import current_app, jsonify, request

from ..validation import coerce_date, require_json_object


def pagination_args() -> tuple[int, int]:
    """limit/offset from the query string, clamped to 1..MAX_PAGE_SIZE and >= 0."""
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 500)

    limit = request.args.get("limit", default, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > maximum:
        limit = maximum
    if offset < 0:
        offset = 0
    return limit, offset


def list_response(rows, total: int, limit: int, offset: int):
    return jsonify({
        "items": [r.to_dict() for r in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


def bool_arg(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def date_arg(name: str):
    """Optional YYYY-MM-DD query parameter; raises ValidationError when malformed."""
    return coerce_date(name, request.args.get(name) or None)


def datetime_range_args(from_name: str = "date_from", to_name: str = "date_to"):
    """Whole-day datetime bounds for filtering timestamp columns by date."""
    start = date_arg(from_name)
    end = date_arg(to_name)
    return (
        datetime.combine(start, time.min) if start else None,
        datetime.combine(end, time.max) if end else None,
    )


def json_body() -> dict:
    return require_json_object(request.get_json(silent=True))
