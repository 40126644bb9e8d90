"""
Session helpers shared by the write paths of the core.
"""
import logging
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import InternalError

logger = logging.getLogger(__name__)


def commit(db: Session, action: str) -> None:
    """
    Commit the session, rolling back on any storage failure.

    Raises:
        IntegrityError: Re-raised after rollback so callers can map it to a Conflict
        InternalError: For every other storage failure
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Storage failure during %s", action)
        raise InternalError(f"Storage failure during {action}") from exc
