"""Per-doctor serialization of booking units of work.

Server databases serialize bookings with ``SELECT ... FOR UPDATE`` on the
doctor row. SQLite ignores row locks, so for an embedded store the unit of
work is wrapped in an in-process mutex per doctor instead. That mutex only
serializes threads of one process: a SQLite deployment must run a single
worker process, and production refuses SQLite altogether.
"""

from contextlib import contextmanager
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy import text
from sqlalchemy.orm import Session

from clinic_booking.errors import TransientStoreFailure

_registry_lock = Lock()
# Entries disappear once no booking holds or waits on the lock.
_doctor_locks: WeakValueDictionary = WeakValueDictionary()


def lock_for_doctor(doctor_id: int) -> Lock:
    with _registry_lock:
        lock = _doctor_locks.get(doctor_id)
        if lock is None:
            lock = Lock()
            _doctor_locks[doctor_id] = lock
        return lock


@contextmanager
def doctor_lock(doctor_id: int, timeout: float):
    lock = lock_for_doctor(doctor_id)
    if not lock.acquire(timeout=timeout):
        raise TransientStoreFailure('Timed out waiting for the booking lock.', doctor_id=doctor_id)
    try:
        yield
    finally:
        lock.release()


def dialect_name(db: Session) -> str:
    return db.get_bind().dialect.name


@contextmanager
def booking_scope(db: Session, doctor_id: int, timeout: float):
    if dialect_name(db) == 'sqlite':
        with doctor_lock(doctor_id, timeout):
            yield
        return

    if dialect_name(db) == 'postgresql':
        # Scoped to the current transaction; a timeout surfaces as OperationalError.
        db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout * 1000)}ms'"))
    yield
