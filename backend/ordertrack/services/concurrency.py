# Overview: Service-layer operations for concurrency; row locking, retries and per-customer serialization.

from __future__ import annotations

import threading
import time
import weakref
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Entries live only while some caller holds the lock object
_customer_locks: weakref.WeakValueDictionary[int, threading.RLock] = weakref.WeakValueDictionary()
_customer_locks_guard = threading.Lock()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _lock_for_customer(customer_id: int) -> threading.RLock:
    with _customer_locks_guard:
        lock = _customer_locks.get(customer_id)
        if lock is None:
            lock = threading.RLock()
            _customer_locks[customer_id] = lock
        return lock


@contextmanager
def customer_guard(customer_id: int):
    """
    Serialize balance-affecting work for one customer within this process.

    The balance check, the ledger insert and the reconciliation must run as
    one unit per customer; the row lock covers multi-process deployments on
    databases that honor FOR UPDATE, this lock covers SQLite and threads.
    Re-entrant so nested service calls for the same customer do not deadlock.
    """
    lock = _lock_for_customer(customer_id)
    with lock:
        yield


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates unchanged, so a rejected mutation leaves no
    partial state behind.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
