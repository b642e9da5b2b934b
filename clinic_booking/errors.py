"""Booking and availability failures.

Every failure carries a stable ``code`` that the HTTP layer renders next to
the human readable message, and the status it maps to.
"""


class BookingError(Exception):
    """Base class for rule violations and store failures raised by the core."""

    code = 'booking_error'
    status_code = 400
    default_message = 'The request could not be processed.'

    def __init__(self, message: str | None = None, **context) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {'code': self.code, 'message': self.message}
        if self.context:
            payload['context'] = self.context
        return payload


class DoctorNotFound(BookingError):
    """Raised when a doctor lookup returns no (non-deleted) row."""

    code = 'doctor_not_found'
    status_code = 404
    default_message = 'Doctor not found.'


class DoctorUnavailable(BookingError):
    """Raised by availability lookups for a doctor who is not active."""

    code = 'doctor_unavailable'
    status_code = 422
    default_message = 'Doctor is not currently active.'


class DoctorInactive(BookingError):
    """Raised when booking against a doctor who is not active."""

    code = 'doctor_inactive'
    status_code = 422
    default_message = 'Cannot book with an inactive doctor.'


class DoctorEmailTaken(BookingError):
    code = 'doctor_email_taken'
    status_code = 422
    default_message = 'A doctor with this email already exists.'


class InvalidTimeRange(BookingError):
    code = 'invalid_time_range'
    status_code = 422
    default_message = 'Appointment end time must be after its start time.'


class OutsideWorkingHours(BookingError):
    """Raised when the requested interval is not inside the doctor's hours."""

    code = 'outside_working_hours'
    status_code = 422
    default_message = 'Appointment must be within working hours.'


class NoWorkingHoursForDay(OutsideWorkingHours):
    """Raised when the doctor does not work on the requested weekday at all."""

    code = 'no_working_hours_for_day'

    def __init__(self, weekday: str, message: str | None = None) -> None:
        super().__init__(message or f'Doctor is not available on {weekday}.', weekday=weekday)


class SlotAlreadyBooked(BookingError):
    """Raised when the requested interval overlaps a non-cancelled appointment."""

    code = 'slot_already_booked'
    status_code = 409
    default_message = 'This time slot is already booked for the selected doctor.'


class TransientStoreFailure(BookingError):
    """Raised on lock timeouts and connection problems; safe for the caller to retry."""

    code = 'transient_store_failure'
    status_code = 503
    default_message = 'Database unavailable. Please retry the request.'


class AppointmentNotFound(BookingError):
    code = 'appointment_not_found'
    status_code = 404
    default_message = 'Appointment not found.'


class InvalidStatusTransition(BookingError):
    """Raised when a status change is not allowed from the appointment's current state."""

    code = 'invalid_status_transition'
    status_code = 409
    default_message = 'This status change is not allowed.'


class AppointmentVersionConflict(BookingError):
    """Raised when the appointment changed since the caller last read it."""

    code = 'appointment_version_conflict'
    status_code = 409
    default_message = 'The appointment was modified by another request. Reload and try again.'


__all__ = [
    'AppointmentNotFound',
    'AppointmentVersionConflict',
    'BookingError',
    'DoctorEmailTaken',
    'DoctorInactive',
    'DoctorNotFound',
    'DoctorUnavailable',
    'InvalidStatusTransition',
    'InvalidTimeRange',
    'NoWorkingHoursForDay',
    'OutsideWorkingHours',
    'SlotAlreadyBooked',
    'TransientStoreFailure',
]
