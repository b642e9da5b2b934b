from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, time, timedelta
from threading import Barrier

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic_booking.database import Base, engine_options
from clinic_booking.errors import SlotAlreadyBooked
from clinic_booking.models.appointment import Appointment
from clinic_booking.models.doctor import Doctor
from clinic_booking.services.booking import BookingRequest, book

WORKERS = 8


@pytest.fixture
def shared_session_factory(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'concurrency.db'}"
    engine = create_engine(database_url, **engine_options(database_url))
    Base.metadata.create_all(bind=engine, tables=[Doctor.__table__, Appointment.__table__])
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def _create_doctor(session_factory) -> int:
    db = session_factory()
    try:
        doctor = Doctor(
            name='Dr. Barbara Liskov',
            specialization='Neurology',
            is_active=True,
            working_hours={'monday': ['09:00', '17:00']},
        )
        db.add(doctor)
        db.commit()
        return doctor.id
    finally:
        db.close()


def _race(session_factory, requests: list[BookingRequest]) -> list[object]:
    barrier = Barrier(len(requests))

    def attempt(request: BookingRequest):
        db = session_factory()
        try:
            barrier.wait()
            return book(db, request).id
        except SlotAlreadyBooked as exc:
            return exc
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(requests)) as executor:
        return list(executor.map(attempt, requests))


def _live_rows(session_factory, doctor_id: int) -> list[Appointment]:
    db = session_factory()
    try:
        return db.query(Appointment).filter(Appointment.doctor_id == doctor_id).all()
    finally:
        db.close()


def _monday() -> datetime:
    today = datetime.now().date()
    return datetime.combine(today + timedelta(days=14 - today.weekday()), time.min)


def test_concurrent_bookings_for_the_same_slot_have_one_winner(shared_session_factory) -> None:
    doctor_id = _create_doctor(shared_session_factory)
    start = _monday().replace(hour=10)
    requests = [
        BookingRequest(doctor_id=doctor_id, patient_name=f'Patient {index}', start_time=start)
        for index in range(WORKERS)
    ]

    results = _race(shared_session_factory, requests)

    winners = [result for result in results if isinstance(result, int)]
    conflicts = [result for result in results if isinstance(result, SlotAlreadyBooked)]
    assert len(winners) == 1
    assert len(conflicts) == WORKERS - 1
    assert len(_live_rows(shared_session_factory, doctor_id)) == 1


def test_concurrent_overlapping_intervals_have_one_winner(shared_session_factory) -> None:
    doctor_id = _create_doctor(shared_session_factory)
    monday = _monday()
    # Every pair of requests overlaps but no two share a start time.
    requests = [
        BookingRequest(
            doctor_id=doctor_id,
            patient_name=f'Patient {index}',
            start_time=monday.replace(hour=10, minute=offset),
            end_time=monday.replace(hour=10, minute=offset) + timedelta(minutes=30),
        )
        for index, offset in enumerate(range(0, 30, 5))
    ]

    results = _race(shared_session_factory, requests)

    assert sum(isinstance(result, int) for result in results) == 1
    assert sum(isinstance(result, SlotAlreadyBooked) for result in results) == len(requests) - 1
    assert len(_live_rows(shared_session_factory, doctor_id)) == 1


def test_concurrent_bookings_for_distinct_slots_all_succeed(shared_session_factory) -> None:
    doctor_id = _create_doctor(shared_session_factory)
    monday = _monday()
    requests = [
        BookingRequest(
            doctor_id=doctor_id,
            patient_name=f'Patient {index}',
            start_time=monday.replace(hour=9) + timedelta(minutes=30 * index),
        )
        for index in range(WORKERS)
    ]

    results = _race(shared_session_factory, requests)

    assert all(isinstance(result, int) for result in results)
    assert len(_live_rows(shared_session_factory, doctor_id)) == WORKERS
