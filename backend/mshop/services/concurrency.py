# Overview: Service-layer operations for concurrency; transaction boundaries and retries.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InfrastructureError, MshopError
from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the unit of work takes the database write lock up front instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the transaction in write mode where the dialect needs it.

    SQLite has no row locks: BEGIN IMMEDIATE takes the RESERVED lock before
    the first read, so two units of work never interleave their reads and
    writes. Other backends rely on the conditional UPDATEs and FOR UPDATE
    locks issued by the services.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(
    func: Callable[[], T],
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    operation: str | None = None,
) -> T:
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF_SECONDS", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise InfrastructureError(
                    "Store is busy; the operation was rolled back, please retry",
                    operation=operation,
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Retrying %s after concurrency failure (attempt %d/%d): %s",
                operation or "db operation", attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise AssertionError("unreachable")


def unit_of_work(operation: str, func: Callable[[], T]) -> T:
    """
    Run `func` as one business transaction: everything it writes commits
    together, or nothing does.

    `func` must only flush; this helper owns BEGIN and COMMIT. Engine errors
    come back with `operation` filled in; store failures unrelated to
    business rules come back as InfrastructureError.
    """
    def _op() -> T:
        begin_write_transaction()
        result = func()
        db.session.commit()
        return result

    try:
        result = run_with_retry(_op, operation=operation)
    except MshopError as exc:
        if exc.operation is None:
            exc.operation = operation
        raise
    except SQLAlchemyError as exc:
        raise InfrastructureError(
            f"{operation} aborted by the store",
            operation=operation,
            details={"reason": exc.__class__.__name__},
        ) from exc

    current_app.logger.info("%s committed (id=%s)", operation, getattr(result, "id", None))
    return result
