"""Booking transaction for new appointments.

Business rules (doctor exists and is active, interval inside that day's
working hours) are checked before anything is written. The overlap check
that decides a conflict runs inside the locked unit of work, immediately
before the insert.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core import config
from clinic_booking.errors import (
    BookingError,
    DoctorInactive,
    DoctorNotFound,
    InvalidTimeRange,
    NoWorkingHoursForDay,
    OutsideWorkingHours,
    SlotAlreadyBooked,
    TransientStoreFailure,
)
from clinic_booking.models.appointment import SLOT_INDEX_NAME, Appointment, AppointmentStatus
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.working_hours import Weekday
from clinic_booking.services import store
from clinic_booking.services.availability import SLOT_DURATION
from clinic_booking.services.locks import booking_scope

logger = logging.getLogger(__name__)

# SQLite names the indexed columns instead of the index.
_SQLITE_SLOT_VIOLATION = 'UNIQUE constraint failed: appointments.doctor_id, appointments.start_time'


@dataclass(frozen=True)
class BookingRequest:
    doctor_id: int
    patient_name: str
    start_time: datetime
    patient_email: str | None = None
    patient_phone: str | None = None
    end_time: datetime | None = None
    notes: str | None = None


def resolve_end_time(start_time: datetime, end_time: datetime | None) -> datetime:
    return end_time if end_time is not None else start_time + SLOT_DURATION


def apply_booking_defaults(request: BookingRequest) -> dict:
    """Column values for a new appointment, with end time and status filled in."""
    end_time = resolve_end_time(request.start_time, request.end_time)

    return {
        'doctor_id': request.doctor_id,
        'patient_name': request.patient_name,
        'patient_email': request.patient_email,
        'patient_phone': request.patient_phone,
        'start_time': request.start_time,
        'end_time': end_time,
        'notes': request.notes,
        'status': AppointmentStatus.SCHEDULED.value,
        'version': 1,
    }


def ensure_doctor_is_active(doctor: Doctor) -> None:
    if not doctor.is_active:
        raise DoctorInactive(doctor_id=doctor.id)


def ensure_valid_time_range(start_time: datetime, end_time: datetime) -> None:
    if end_time <= start_time:
        raise InvalidTimeRange(start_time=start_time.isoformat(), end_time=end_time.isoformat())


def ensure_within_working_hours(doctor: Doctor, start_time: datetime, end_time: datetime) -> None:
    day = start_time.date()
    hours = doctor.schedule.on(day)

    if hours is None:
        raise NoWorkingHoursForDay(Weekday.of(day).value)

    day_start, day_end = hours.window(day)
    if start_time < day_start or end_time > day_end:
        raise OutsideWorkingHours(
            working_hours=hours.as_pair(),
            weekday=Weekday.of(day).value,
        )


def is_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return SLOT_INDEX_NAME in message or _SQLITE_SLOT_VIOLATION in message


def _insert_if_free(db: Session, doctor: Doctor, values: dict) -> Appointment:
    # Serializes concurrent bookings for this doctor on server databases.
    store.find_doctor_by_id(db, doctor.id, for_update=True)

    overlapping = store.find_overlapping(
        db,
        doctor.id,
        values['start_time'],
        values['end_time'],
        for_update=True,
    )
    if overlapping:
        raise SlotAlreadyBooked(conflicting_appointment_id=overlapping[0].id)

    return store.insert_appointment(db, Appointment(**values))


def book(db: Session, request: BookingRequest, *, lock_timeout: float | None = None) -> Appointment:
    try:
        doctor = store.find_doctor_by_id(db, request.doctor_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Looking up doctor %s for a booking failed in the store', request.doctor_id)
        raise TransientStoreFailure() from exc

    if doctor is None:
        raise DoctorNotFound(doctor_id=request.doctor_id)

    values = apply_booking_defaults(request)
    try:
        ensure_doctor_is_active(doctor)
        ensure_valid_time_range(values['start_time'], values['end_time'])
        ensure_within_working_hours(doctor, values['start_time'], values['end_time'])
    except BookingError as exc:
        logger.warning('Rejected booking for doctor %s: %s', doctor.id, exc.code)
        raise

    timeout = config.BOOKING_LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    try:
        with booking_scope(db, doctor.id, timeout):
            appointment = _insert_if_free(db, doctor, values)
            db.commit()
    except SlotAlreadyBooked:
        db.rollback()
        logger.warning(
            'Rejected booking for doctor %s at %s: slot already booked',
            doctor.id,
            values['start_time'].isoformat(),
        )
        raise
    except IntegrityError as exc:
        db.rollback()
        if not is_slot_violation(exc):
            logger.exception('Booking for doctor %s violated a store constraint', doctor.id)
            raise
        # The partial unique index caught a race the overlap check did not see.
        logger.warning(
            'Rejected booking for doctor %s at %s: unique index violation',
            doctor.id,
            values['start_time'].isoformat(),
        )
        raise SlotAlreadyBooked() from exc
    except BookingError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Booking for doctor %s failed in the store', doctor.id)
        raise TransientStoreFailure() from exc

    logger.info(
        'Booked appointment %s for doctor %s from %s to %s',
        appointment.id,
        doctor.id,
        values['start_time'].isoformat(),
        values['end_time'].isoformat(),
    )
    return appointment
