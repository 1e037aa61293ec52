# Overview: Row locking and retry of a unit of work for stock-moving operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)
DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.1


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows the query returns.

    Rows already in the session are refreshed from the locked read, so
    values computed after the lock wait see the committed state.

    NOTE: SQLite ignores it; there the InventoryItem.version_id check is what
    catches a concurrent writer.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = DEFAULT_ATTEMPTS, backoff_base: float = DEFAULT_BACKOFF_SECONDS):
    """
    Run `func` as one unit of work.

    `func` does its reads and writes and commits at the end. On a lock
    timeout, deadlock or stale row version (another request changed the
    same inventory row first) the session is rolled back and `func` runs
    again from scratch, re-reading current quantities. Any other exception
    rolls back and propagates, so a failed stock check never leaves part of
    the work pending in the session.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("Giving up after %s attempts: %s", attempts, exc)
                raise
            current_app.logger.warning("Concurrent update detected (attempt %s/%s), retrying", attempt, attempts)
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
