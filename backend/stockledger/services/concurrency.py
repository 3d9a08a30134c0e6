# Overview: Transaction, locking and retry helpers shared by every ledger engine.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InternalError
from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the unit of work holds
    the database write lock from BEGIN IMMEDIATE instead.
    """
    return query.with_for_update()


def is_sqlite() -> bool:
    return db.engine.dialect.name == "sqlite"


def begin_write_transaction() -> None:
    """
    Take the write lock up front on SQLite.

    pysqlite defers BEGIN until the first DML statement, so two writers could
    both read the same stock quantity before either writes. BEGIN IMMEDIATE
    closes that window. Skipped when the driver connection is already inside
    a transaction.
    """
    if not is_sqlite():
        return
    raw = db.session.connection().connection.driver_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work():
    """Begin a write transaction, commit on success, roll back on any error."""
    begin_write_transaction()
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, busy database) and StaleDataError
    (optimistic locking conflicts on versioned rows). Business errors
    propagate on the first attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after lock conflict (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def execute_unit_of_work(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run ``func`` inside one retried unit of work and return its result.

    Storage failures that survive the retries surface as InternalError.
    """
    def _op():
        with unit_of_work():
            return func()

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except SQLAlchemyError as exc:
        logger.exception("Unit of work failed")
        raise InternalError("Storage failure", {"reason": exc.__class__.__name__}) from exc
