# Overview: Locking, lock-timeout and retry helpers for ledger transactions.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LedgerBusyError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id column on
    StockRecord turns a lost update into StaleDataError at flush.
    populate_existing() makes sure a locked read never returns identity-map state.
    """
    return query.with_for_update().populate_existing()


def apply_lock_timeout(session, timeout_ms: int) -> None:
    """
    Bound how long the current transaction waits on a row lock.

    PostgreSQL honors SET LOCAL lock_timeout for the current transaction only.
    SQLite and MySQL get theirs per connection from lock_timeout_engine_options().
    """
    if timeout_ms <= 0:
        return
    if session.get_bind().dialect.name == "postgresql":
        session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


def lock_timeout_engine_options(uri: str, timeout_ms: int) -> dict:
    """
    Engine options that carry the lock timeout on every pooled connection.

    SQLite: driver busy timeout. MySQL/MariaDB: innodb_lock_wait_timeout set by
    the driver init_command (whole seconds, at least 1), so a connection handed
    back to the pool never keeps a value set by an earlier transaction.
    """
    backend = make_url(uri).get_backend_name()
    if backend == "sqlite":
        return {"connect_args": {"timeout": max(timeout_ms, 1) / 1000.0}}
    if backend in ("mysql", "mariadb") and timeout_ms > 0:
        seconds = max(1, int(timeout_ms) // 1000)
        return {"connect_args": {"init_command": f"SET SESSION innodb_lock_wait_timeout = {seconds}"}}
    return {}


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock waits) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session back
    and propagates untouched, so business-rule failures are never retried and
    never leave partial state behind.

    Raises LedgerBusyError once the attempts are exhausted.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise LedgerBusyError(
                    "Stock record is busy, please retry",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
