from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from clinic_booking.database import ensure_database_ready, get_db
from clinic_booking.routes.doctor_routes import DoctorSummaryResponse
from clinic_booking.services import booking, lifecycle

router = APIRouter(tags=['appointments'])

MAX_PATIENT_NAME_LENGTH = 255
MAX_PATIENT_EMAIL_LENGTH = 255
MAX_PATIENT_PHONE_LENGTH = 50
MAX_APPOINTMENT_NOTES_LENGTH = 1000
MAX_CANCELLATION_REASON_LENGTH = 1000


def normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    return normalized or None


def to_wall_clock(value: datetime) -> datetime:
    # Clinic times are wall-clock times; any offset sent by the client is dropped.
    return value.replace(tzinfo=None, second=0, microsecond=0)


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    patient_name: str
    start_time: datetime
    patient_email: EmailStr | None = None
    patient_phone: str | None = None
    end_time: datetime | None = None
    notes: str | None = None

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient name is required.')
        if len(normalized) > MAX_PATIENT_NAME_LENGTH:
            raise ValueError(f'Patient name must be {MAX_PATIENT_NAME_LENGTH} characters or fewer.')
        return normalized

    @field_validator('patient_email')
    @classmethod
    def normalize_patient_email(cls, value: str | None) -> str | None:
        if not value:
            return None
        if len(value) > MAX_PATIENT_EMAIL_LENGTH:
            raise ValueError(f'Patient email must be {MAX_PATIENT_EMAIL_LENGTH} characters or fewer.')
        return value.strip().lower()

    @field_validator('patient_phone')
    @classmethod
    def validate_patient_phone(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized and len(normalized) > MAX_PATIENT_PHONE_LENGTH:
            raise ValueError(f'Patient phone must be {MAX_PATIENT_PHONE_LENGTH} characters or fewer.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized and len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return normalized

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        normalized = to_wall_clock(value)
        if normalized <= datetime.now():
            raise ValueError('Appointments must be scheduled in the future.')
        return normalized

    @field_validator('end_time')
    @classmethod
    def normalize_end_time(cls, value: datetime | None) -> datetime | None:
        return to_wall_clock(value) if value is not None else None

    @model_validator(mode='after')
    def validate_time_range(self) -> 'BookAppointmentRequest':
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError('The end time must be after the start time.')
        return self

    def to_booking_request(self) -> booking.BookingRequest:
        return booking.BookingRequest(
            doctor_id=self.doctor_id,
            patient_name=self.patient_name,
            start_time=self.start_time,
            patient_email=self.patient_email,
            patient_phone=self.patient_phone,
            end_time=self.end_time,
            notes=self.notes,
        )


class StatusChangeRequest(BaseModel):
    expected_version: int | None = Field(default=None, ge=1)


class CancelAppointmentRequest(StatusChangeRequest):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized and len(normalized) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_CANCELLATION_REASON_LENGTH} characters or fewer.')
        return normalized


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    doctor: DoctorSummaryResponse
    patient_name: str
    patient_email: str | None = None
    patient_phone: str | None = None
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    version: int
    can_be_cancelled: bool = False


def build_appointment_response(appointment) -> AppointmentResponse:
    response = AppointmentResponse.model_validate(appointment)
    response.can_be_cancelled = lifecycle.can_be_cancelled(appointment)
    return response


def _expected_version(data: StatusChangeRequest | None) -> int | None:
    return data.expected_version if data is not None else None


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: BookAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    appointment = booking.book(db, data.to_booking_request())
    return build_appointment_response(appointment)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    return build_appointment_response(lifecycle.get_appointment(db, appointment_id))


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    data: StatusChangeRequest | None = None,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.confirm(db, appointment_id, expected_version=_expected_version(data))
    return build_appointment_response(appointment)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.cancel(
        db,
        appointment_id,
        reason=data.reason if data is not None else None,
        expected_version=_expected_version(data),
    )
    return build_appointment_response(appointment)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: StatusChangeRequest | None = None,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.complete(db, appointment_id, expected_version=_expected_version(data))
    return build_appointment_response(appointment)


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_appointment_no_show(
    appointment_id: int,
    data: StatusChangeRequest | None = None,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.mark_no_show(db, appointment_id, expected_version=_expected_version(data))
    return build_appointment_response(appointment)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    lifecycle.delete_appointment(db, appointment_id)
