from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StoreError

logger = structlog.get_logger(__name__)


def commit_or_fail(db: Session, failure_message: str, **context) -> None:
    """Commit, or roll back and raise a StoreError carrying `failure_message`."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("store_write_failed", message=failure_message, **context)
        raise StoreError(failure_message)


@contextmanager
def reading(what: str):
    try:
        yield
    except SQLAlchemyError:
        logger.exception("store_read_failed", query=what)
        raise StoreError(f"Failed to load {what}")
