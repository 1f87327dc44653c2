from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db


@contextmanager
def transactional():
    """Context manager for database transactions."""
    try:
        yield
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


@contextmanager
def best_effort(label: str):
    """
    Run a side write inside a SAVEPOINT.

    A database failure rolls back only the savepoint and is logged; the
    surrounding transaction carries on.
    """
    try:
        with db.session.begin_nested():
            yield
    except SQLAlchemyError as exc:
        current_app.logger.warning("%s failed and was skipped: %s", label, exc)
