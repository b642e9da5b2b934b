import re
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core import config
from clinic_booking.database import ensure_database_ready, get_db
from clinic_booking.errors import DoctorNotFound, DoctorUnavailable, TransientStoreFailure
from clinic_booking.routes.doctor_routes import DoctorSummaryResponse
from clinic_booking.services import store
from clinic_booking.services.availability import get_available_slots

router = APIRouter(tags=['availability'])

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


class SlotResponse(BaseModel):
    start_time: str
    end_time: str


class AvailabilityResponse(BaseModel):
    doctor: DoctorSummaryResponse
    date: date
    slots: list[SlotResponse]
    message: str | None = None


def parse_availability_date(value: str) -> date:
    normalized = value.strip()
    if not DATE_PATTERN.match(normalized):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail='The date must use the YYYY-MM-DD format.',
        )

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail='The date is not a valid calendar date.',
        ) from exc


@router.get('/{doctor_id}/availability', response_model=AvailabilityResponse)
def get_doctor_availability(
    doctor_id: int,
    response: Response,
    date: str = Query(...),
    db: Session = Depends(get_db),
):
    day = parse_availability_date(date)

    ensure_database_ready()

    try:
        doctor = store.find_doctor_by_id(db, doctor_id)
        if doctor is None:
            raise DoctorNotFound(doctor_id=doctor_id)

        summary = DoctorSummaryResponse.model_validate(doctor)

        try:
            availability = get_available_slots(db, doctor, day)
        except DoctorUnavailable as exc:
            response.status_code = config.AVAILABILITY_INACTIVE_STATUS_CODE
            return AvailabilityResponse(doctor=summary, date=day, slots=[], message=exc.message)

        if not availability.is_working_day:
            response.status_code = config.AVAILABILITY_NO_HOURS_STATUS_CODE
            return AvailabilityResponse(
                doctor=summary,
                date=day,
                slots=[],
                message=f'Doctor is not available on {availability.weekday.value}.',
            )

        return AvailabilityResponse(
            doctor=summary,
            date=day,
            slots=[SlotResponse(**slot.as_dict()) for slot in availability.slots],
        )
    except SQLAlchemyError as exc:
        raise TransientStoreFailure() from exc
