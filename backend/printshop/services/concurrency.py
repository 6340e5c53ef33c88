# Overview: Transaction helpers shared by every write operation: row locks and retry on write conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ConcurrentWriteError(Exception):
    """A concurrent writer won a race (e.g. both inserted the same sequence row); retry the operation."""


RETRYABLE_ERRORS = (OperationalError, StaleDataError, ConcurrentWriteError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id check
    on flush detects the conflict instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation as one unit of work.

    Any exception rolls the session back so no partial write survives.
    OperationalError (locks), StaleDataError (optimistic locking conflict)
    and ConcurrentWriteError are retried with exponential backoff; the
    operation re-reads everything it needs on each attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Write conflict (%s), retrying attempt %d/%d", type(exc).__name__, attempt + 2, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
