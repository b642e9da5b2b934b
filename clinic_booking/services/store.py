"""Queries the booking core runs against the appointment store."""

from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from clinic_booking.models.appointment import Appointment, AppointmentStatus
from clinic_booking.models.doctor import Doctor


def find_doctor_by_id(db: Session, doctor_id: int, *, for_update: bool = False) -> Doctor | None:
    query = db.query(Doctor).filter(
        Doctor.id == doctor_id,
        Doctor.deleted_at.is_(None),
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def find_appointment_by_id(db: Session, appointment_id: int) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.deleted_at.is_(None),
    ).first()


def find_overlapping(
    db: Session,
    doctor_id: int,
    start_time: datetime,
    end_time: datetime,
    *,
    exclude_cancelled: bool = True,
    for_update: bool = False,
) -> list[Appointment]:
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
        Appointment.deleted_at.is_(None),
    )
    if exclude_cancelled:
        query = query.filter(Appointment.status != AppointmentStatus.CANCELLED.value)
    if for_update:
        query = query.with_for_update()
    return query.order_by(Appointment.start_time.asc()).all()


def find_booked_intervals(db: Session, doctor_id: int, day: date) -> list[tuple[datetime, datetime]]:
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)
    return [
        (appointment.start_time, appointment.end_time)
        for appointment in find_overlapping(db, doctor_id, day_start, day_end)
    ]


def insert_appointment(db: Session, appointment: Appointment) -> Appointment:
    db.add(appointment)
    db.flush()
    return appointment


def update_appointment_status(db: Session, appointment_id: int, expected_version: int, changes: dict) -> bool:
    """Apply ``changes`` only if the row still carries ``expected_version``."""
    updated_rows = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.version == expected_version,
        Appointment.deleted_at.is_(None),
    ).update(changes, synchronize_session=False)
    return updated_rows == 1
