# Overview: Business-rule exception taxonomy shared by services and routes.

"""
Every exception a service raises on purpose derives from BookkeepingError
and carries the HTTP status the API answers with. Services raise before
their first write; the retry wrapper rolls the session back on anything
raised after it.
"""

from __future__ import annotations

from flask import jsonify


class BookkeepingError(Exception):
    """Base for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message: str, *, fields: dict | None = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.fields:
            body["fields"] = self.fields
        return body


class ValidationError(BookkeepingError):
    """Malformed, missing or out-of-range input."""
    status_code = 422


class InvalidStatusTransition(ValidationError):
    """Invoice status change not allowed by the workflow."""


class OverpaymentError(ValidationError):
    """Payment larger than what is still owed."""


class SameAccountTransferError(ValidationError):
    """Cash transfer whose source and destination are the same."""


class NotFoundError(BookkeepingError):
    status_code = 404


class ConflictError(BookkeepingError):
    """409-level business rule conflict."""
    status_code = 409


class HasPaymentsError(ConflictError):
    """Invoice with payments cannot be deleted; cancel it instead."""


class HasUnpaidDebtsError(ConflictError):
    """Debt account still has unpaid debts."""


class InsufficientStockError(ConflictError):
    """Stock removal exceeds the quantity on hand."""


def error_response(exc: BookkeepingError):
    return jsonify(exc.to_dict()), exc.status_code
