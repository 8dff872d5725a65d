# Overview: Row locking and retry helpers shared by services that mutate money rows.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for read-validate-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the unique constraints
    checked at commit are what reject a racing writer.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work, retrying lock timeouts (OperationalError) and
    optimistic version conflicts (StaleDataError).

    Business errors raised by func propagate immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency failure (attempt %s/%s): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))


def commit_or_conflict(message: str, *, ids=None) -> None:
    """
    Commit the session; a unique-constraint violation rolls back and is
    surfaced as ConflictError carrying the offending ids.
    """
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message, ids=ids)
