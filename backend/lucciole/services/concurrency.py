# Overview: Retry and failure translation around database writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..extensions import db


class WriteFailure(Exception):
    """A create/update/delete against the Item Store or Transaction Log failed."""


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient lock failures.

    Retries on OperationalError ("database is locked", deadlocks).
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def write_with_retry(func, *, action: str, attempts: int = 3, backoff_base: float = 0.1):
    """
    run_with_retry, then translate any remaining SQLAlchemyError into WriteFailure.

    The session is rolled back; nothing from the failed operation is kept.
    """
    try:
        return run_with_retry(func, attempts=attempts, backoff_base=backoff_base)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise WriteFailure(f"Could not {action}") from exc
