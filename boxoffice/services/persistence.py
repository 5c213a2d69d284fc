import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from boxoffice.domain.errors import PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def persistence_guard(db: Session, entity: str, operation: str):
    """Roll back and re-raise database failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database error while trying to %s %s", operation, entity)
        raise PersistenceError(entity, operation) from exc
