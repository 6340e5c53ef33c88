# Overview: Atomic document number allocation (invoice numbers).

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import today
from .concurrency import ConcurrentWriteError


DOCUMENT_TYPE_INVOICE = "invoice"


def next_document_number(
    *,
    document_type: str,
    period: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Atomically allocate the next number for (document_type, period).

    Runs inside the caller's transaction: the sequence row is bumped with
    UPDATE ... SET next_number = next_number + 1, so two writers can never
    read the same value. If the row does not exist yet and two requests
    race to create it, the loser raises ConcurrentWriteError and its whole
    unit of work is retried.
    """
    if not document_type:
        raise ValueError("document_type is required")
    if not period:
        raise ValueError("period is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(document_type=document_type, period=period, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConcurrentWriteError(f"{document_type} sequence for {period} created concurrently") from exc
        next_num = 1

    return f"{prefix}-{period}-{next_num:0{pad}d}"


def next_invoice_number(invoice_date=None) -> str:
    """INV-YYYY-NNNN, numbered per calendar year of the invoice date."""
    year = (invoice_date or today()).year
    return next_document_number(
        document_type=DOCUMENT_TYPE_INVOICE,
        period=f"{year:04d}",
        prefix=current_app.config.get("INVOICE_NUMBER_PREFIX", "INV"),
    )
