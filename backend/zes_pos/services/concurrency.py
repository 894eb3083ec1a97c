# Overview: Transaction helpers shared by every multi-record write.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

log = logging.getLogger(__name__)


class ConsistencyError(Exception):
    """
    Raised when a transaction cannot keep the ledger invariants, typically
    because concurrent writers kept conflicting until retries ran out.
    The caller should retry the whole operation.
    """


def begin_write() -> None:
    """
    Open the write transaction up front.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, so writers are serialized by
    taking the RESERVED lock immediately instead.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls back the
    session and propagates unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                log.warning("Giving up after %d attempts: %s", attempts, exc)
                raise ConsistencyError(
                    "Concurrent modification detected; retry the operation"
                ) from exc
            log.info("Retrying after concurrency conflict (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
