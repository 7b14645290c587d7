# tenantbook/locks.py

import logging
import threading
from contextlib import contextmanager

from sqlalchemy import text
from sqlmodel import Session

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_worker_locks: dict[tuple[int, int], threading.Lock] = {}


def _local_lock(business_id: int, worker_id: int) -> threading.Lock:
    key = (business_id, worker_id)
    with _registry_lock:
        lock = _worker_locks.get(key)
        if lock is None:
            lock = _worker_locks[key] = threading.Lock()
        return lock


@contextmanager
def worker_guard(session: Session, business_id: int, worker_id: int):
    """Serialize check-then-write for one worker's schedule.

    PostgreSQL: transaction-scoped advisory lock, released on commit/rollback,
    so the caller must commit inside the block. Other dialects: a process-local
    lock held for the duration of the block.
    """
    if session.get_bind().dialect.name == "postgresql":
        session.exec(
            text("SELECT pg_advisory_xact_lock(:business_id, :worker_id)").bindparams(
                business_id=business_id, worker_id=worker_id
            )
        )
        yield
        return

    lock = _local_lock(business_id, worker_id)
    with lock:
        yield
