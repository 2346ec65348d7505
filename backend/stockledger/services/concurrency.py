# Overview: Service-layer transaction and locking helpers for check-then-write ledger operations.

"""
Stock Ledger Concurrency Model (authoritative)

- Stock is derived, so every outflow is a read (current stock) followed by a
  write (movement/entry). Two such sequences on the same (product, location)
  must never interleave.
- stock_guard() serializes them for the lifetime of the current transaction:
    - PostgreSQL: pg_advisory_xact_lock(product_id, location_id) per pair,
      taken in sorted order so multi-line sales cannot deadlock each other
    - SQLite: BEGIN IMMEDIATE (database write lock held until commit)
    - anything else: SELECT ... FOR UPDATE on the product rows
- atomic() commits on success and rolls back on any exception.
- Nothing here retries: a failed sale or transfer is reported to the caller,
  who may safely re-submit because nothing partial was committed.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable

from sqlalchemy import text

from ..extensions import db
from ..models import Product


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Run a block as one database transaction.

    Commits when the block exits normally, rolls back and re-raises otherwise.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _begin_sqlite_write_transaction() -> None:
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def stock_guard(keys: Iterable[tuple[int, int]]) -> None:
    """
    Serialize stock checks for the given (product_id, location_id) pairs.

    Must be called inside atomic() BEFORE reading current stock; the lock is
    held until that transaction commits or rolls back.
    """
    pairs = sorted(set(keys))
    if not pairs:
        return

    dialect = db.session.get_bind().dialect.name

    if dialect == "postgresql":
        for product_id, location_id in pairs:
            db.session.execute(
                text("SELECT pg_advisory_xact_lock(:product_id, :location_id)"),
                {"product_id": product_id, "location_id": location_id},
            )
    elif dialect == "sqlite":
        _begin_sqlite_write_transaction()
    else:
        product_ids = sorted({product_id for product_id, _ in pairs})
        lock_for_update(
            db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id)
        ).all()
