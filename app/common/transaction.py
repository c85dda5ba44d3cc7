"""
Unit of work around paired mutations.

Every write that must land together with its ledger or status effect
(payment + balance, expense update revert + apply, invoice + items + counters)
runs inside ``unit_of_work``. The session is committed once at the end; any
exception rolls the whole unit back and propagates to the caller.
"""
from contextlib import contextmanager
from sqlalchemy.orm import Session
import logging

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session, name: str = "unit"):
    """
    Args:
        db: request-scoped session; nothing may have been written on it yet
        name: label used in log lines

    Yields:
        the same session, for symmetry with ``with ... as db``
    """
    logger.debug(f"Opening unit of work '{name}'")
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Unit of work '{name}' rolled back: {e}")
        raise
    logger.debug(f"Unit of work '{name}' committed")
