import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from permit_intake.config.constants import LOGGER_NAME
from permit_intake.exceptions import StoreError

logger = logging.getLogger(LOGGER_NAME)


@contextmanager
def store_operation(db: Session, message: str):
    """Translate database errors into StoreError(message) after rolling back."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{message}: {e}", exc_info=True)
        raise StoreError(message, e) from e
