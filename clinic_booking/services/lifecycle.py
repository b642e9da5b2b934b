"""Status changes for existing appointments.

``apply_transition`` computes the column changes for a move without touching
the appointment; ``transition`` persists them with a compare-and-swap on
``version`` so two concurrent status changes cannot both win.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.errors import (
    AppointmentNotFound,
    AppointmentVersionConflict,
    InvalidStatusTransition,
    TransientStoreFailure,
)
from clinic_booking.models.appointment import OPEN_STATUSES, Appointment, AppointmentStatus
from clinic_booking.services import store

logger = logging.getLogger(__name__)

VALID_NEXT = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.NO_SHOW: set(),
}


def can_be_cancelled(appointment: Appointment, now: datetime | None = None) -> bool:
    now = now or datetime.now()
    return appointment.current_status in OPEN_STATUSES and appointment.start_time > now


def check_transition(appointment: Appointment, target: AppointmentStatus, now: datetime) -> None:
    current = appointment.current_status

    if target not in VALID_NEXT[current]:
        raise InvalidStatusTransition(
            f'Cannot change an appointment from {current.value} to {target.value}.',
            current_status=current.value,
            requested_status=target.value,
        )

    if target is AppointmentStatus.CANCELLED and not can_be_cancelled(appointment, now):
        raise InvalidStatusTransition(
            'Only appointments that have not started yet can be cancelled.',
            current_status=current.value,
            requested_status=target.value,
        )

    if target is AppointmentStatus.NO_SHOW and appointment.end_time > now:
        raise InvalidStatusTransition(
            'An appointment can only be marked as a no-show after it has ended.',
            current_status=current.value,
            requested_status=target.value,
        )


def apply_transition(
    appointment: Appointment,
    target: AppointmentStatus,
    *,
    now: datetime,
    reason: str | None = None,
) -> dict:
    check_transition(appointment, target, now)

    changes = {
        'status': target.value,
        'version': appointment.version + 1,
    }
    if target is AppointmentStatus.CANCELLED:
        changes['cancelled_at'] = now
        changes['cancellation_reason'] = reason

    return changes


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    try:
        appointment = store.find_appointment_by_id(db, appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Reading appointment %s failed in the store', appointment_id)
        raise TransientStoreFailure() from exc

    if appointment is None:
        raise AppointmentNotFound(appointment_id=appointment_id)
    return appointment


def transition(
    db: Session,
    appointment_id: int,
    target: AppointmentStatus,
    *,
    reason: str | None = None,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)

    if expected_version is not None and expected_version != appointment.version:
        raise AppointmentVersionConflict(
            appointment_id=appointment_id,
            expected_version=expected_version,
            current_version=appointment.version,
        )

    previous_status = appointment.status
    read_version = appointment.version
    changes = apply_transition(appointment, target, now=now or datetime.now(), reason=reason)

    try:
        updated = store.update_appointment_status(db, appointment_id, read_version, changes)
        if not updated:
            db.rollback()
            raise AppointmentVersionConflict(appointment_id=appointment_id, expected_version=read_version)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Status change for appointment %s failed in the store', appointment_id)
        raise TransientStoreFailure() from exc

    db.refresh(appointment)
    logger.info(
        'Appointment %s moved from %s to %s (version %s)',
        appointment_id,
        previous_status,
        appointment.status,
        appointment.version,
    )
    return appointment


def confirm(db: Session, appointment_id: int, **kwargs) -> Appointment:
    return transition(db, appointment_id, AppointmentStatus.CONFIRMED, **kwargs)


def cancel(db: Session, appointment_id: int, reason: str | None = None, **kwargs) -> Appointment:
    return transition(db, appointment_id, AppointmentStatus.CANCELLED, reason=reason, **kwargs)


def complete(db: Session, appointment_id: int, **kwargs) -> Appointment:
    return transition(db, appointment_id, AppointmentStatus.COMPLETED, **kwargs)


def mark_no_show(db: Session, appointment_id: int, **kwargs) -> Appointment:
    return transition(db, appointment_id, AppointmentStatus.NO_SHOW, **kwargs)


def delete_appointment(db: Session, appointment_id: int, *, now: datetime | None = None) -> None:
    appointment = get_appointment(db, appointment_id)

    try:
        appointment.deleted_at = now or datetime.now()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Deleting appointment %s failed in the store', appointment_id)
        raise TransientStoreFailure() from exc

    logger.info('Appointment %s deleted', appointment_id)
