# Overview: Transaction and row-locking helpers shared by the write services.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError

from ..errors import ValidationFailed
from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for read-then-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite serializes writers on its own database lock instead.
    """
    return query.with_for_update()


def flush_unique(field: str, message: str) -> None:
    """
    Flush pending inserts/updates, reporting a unique-constraint violation
    as a field error.

    Uniqueness is pre-checked during validation; this catches a concurrent
    writer that took the same value in between. The caller's atomic() block
    rolls the session back.
    """
    try:
        db.session.flush()
    except IntegrityError:
        logger.info("unique constraint conflict on %s", field)
        raise ValidationFailed.single(field, message)


@contextmanager
def atomic():
    """
    Run a multi-step mutation as one unit.

    Commits when the block finishes, rolls back everything on any exception
    and re-raises it. Failures are never retried.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.debug("transaction rolled back", exc_info=True)
        raise
