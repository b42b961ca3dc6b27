# Overview: Service-layer helpers for locking, retries and unit-of-work boundaries.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrencyConflict, NotFoundError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_lock covers it there.
    """
    return query.with_for_update()


def begin_write_lock() -> None:
    """
    Take the database write lock up front on SQLite.

    Must be the first statement of the unit of work. Stock checks made
    after this call cannot be invalidated by a concurrent writer.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def raise_conflict(model, row_id) -> None:
    """
    Surface a failed optimistic version check.

    A row that vanished is reported as not found; otherwise the conflict
    itself is raised.
    """
    db.session.rollback()
    exists = db.session.query(model.id).filter(model.id == row_id).first() is not None
    if not exists:
        raise NotFoundError(f"{model.__name__} {row_id} not found")
    raise ConcurrencyConflict(
        f"{model.__name__} {row_id} was modified concurrently",
        details={"id": row_id},
    )


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, conflict_target=None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks) and StaleDataError (optimistic
    locking). Any other failure rolls the session back and propagates
    unmodified. conflict_target is an optional (Model, id) pair used to
    turn an exhausted StaleDataError into NotFoundError/ConcurrencyConflict.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            logger.warning("Retrying unit of work after %s (attempt %d)", type(exc).__name__, attempt + 1)
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError) and conflict_target is not None:
                    model, row_id = conflict_target
                    try:
                        raise_conflict(model, row_id)
                    except (NotFoundError, ConcurrencyConflict) as conflict:
                        raise conflict from exc
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
