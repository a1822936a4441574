"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row locking helpers
- Translation of transient store failures into StoreUnavailable
"""

import logging
from contextlib import contextmanager
from typing import Optional, TypeVar, Type, List
from sqlalchemy.orm import Session
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, TimeoutError as PoolTimeoutError

from ..exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        return db.bind.dialect.name == 'postgresql'
    except Exception:
        return False


def is_sqlite(db: Session) -> bool:
    """Check if the database is SQLite"""
    try:
        return db.bind.dialect.name == 'sqlite'
    except Exception:
        return True


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a single record.

    Only applies FOR UPDATE on PostgreSQL; SQLite serializes writers itself.

    Example:
        invoice = acquire_row_lock(db, Invoice, Invoice.id == invoice_id)
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        if nowait:
            query = query.with_for_update(nowait=True)
        else:
            query = query.with_for_update()

    return query.first()


def lock_rows(db: Session, model: Type[T], *filter_conditions, order_by=None) -> List[T]:
    """
    Lock every row matching the filters, in a stable order to avoid deadlocks
    between two transactions locking overlapping sets.
    """
    query = db.query(model).filter(*filter_conditions)
    query = query.order_by(order_by if order_by is not None else model.id)

    if is_postgres(db):
        query = query.with_for_update()

    return query.all()


@contextmanager
def store_guard(db: Optional[Session] = None, operation: str = "store operation"):
    """
    Translate connection errors and timeouts into StoreUnavailable.

    Integrity errors are programming/data errors and propagate unchanged.
    The session is rolled back before re-raising.
    """
    try:
        yield
    except IntegrityError:
        if db is not None:
            db.rollback()
        raise
    except (OperationalError, PoolTimeoutError, DBAPIError) as e:
        if db is not None:
            db.rollback()
        logger.error(f"Store unavailable during {operation}: {e}")
        raise StoreUnavailable(f"Store unavailable during {operation}") from e
