from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from clinic_booking.core import config
from clinic_booking.database import ensure_database_ready, get_db
from clinic_booking.models.working_hours import WorkingHours
from clinic_booking.services import doctors as doctor_service
from clinic_booking.services.doctors import SORT_DIRECTIONS, SORTABLE_FIELDS, DoctorFilter

router = APIRouter(tags=['doctors'])

MAX_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 50
CLEARABLE_FIELDS = {'email', 'phone', 'working_hours'}


def normalize_working_hours(value: dict | None) -> dict | None:
    if value is None:
        return None
    return WorkingHours.from_mapping(value).to_mapping()


class DoctorSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    specialization: str


class DoctorResponse(DoctorSummaryResponse):
    email: str | None = None
    phone: str | None = None
    is_active: bool
    working_hours: dict[str, list[str]] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @field_validator('working_hours', mode='before')
    @classmethod
    def default_missing_hours(cls, value):
        return value or {}


class DoctorPageResponse(BaseModel):
    data: list[DoctorResponse]
    total: int
    page: int
    per_page: int
    last_page: int


class CreateDoctorRequest(BaseModel):
    name: str = Field(max_length=MAX_NAME_LENGTH)
    specialization: str = Field(max_length=MAX_NAME_LENGTH)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=MAX_PHONE_LENGTH)
    is_active: bool = True
    working_hours: dict[str, list[str] | None] | None = None

    @field_validator('name', 'specialization')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else None

    @field_validator('working_hours')
    @classmethod
    def validate_working_hours(cls, value: dict | None) -> dict | None:
        return normalize_working_hours(value)


class UpdateDoctorRequest(BaseModel):
    name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    specialization: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=MAX_PHONE_LENGTH)
    is_active: bool | None = None
    working_hours: dict[str, list[str] | None] | None = None

    @field_validator('name', 'specialization')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field cannot be blank.')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else None

    @field_validator('working_hours')
    @classmethod
    def validate_working_hours(cls, value: dict | None) -> dict | None:
        return normalize_working_hours(value)


@router.get('', response_model=DoctorPageResponse)
def list_doctors(
    specialization: str | None = Query(default=None, max_length=MAX_NAME_LENGTH),
    search: str | None = Query(default=None, max_length=MAX_NAME_LENGTH),
    sort_by: str = Query(default='name', pattern=f"^({'|'.join(SORTABLE_FIELDS)})$"),
    sort_dir: str = Query(default='asc', pattern=f"^({'|'.join(SORT_DIRECTIONS)})$"),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=config.DEFAULT_PER_PAGE, ge=1, le=config.MAX_PER_PAGE),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    result = doctor_service.list_doctors(
        db,
        DoctorFilter(
            specialization=specialization,
            search=search,
            sort_by=sort_by,
            sort_dir=sort_dir,
            page=page,
            per_page=per_page,
        ),
    )

    return DoctorPageResponse(
        data=[DoctorResponse.model_validate(doctor) for doctor in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        last_page=result.last_page,
    )


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(data: CreateDoctorRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    doctor = doctor_service.create_doctor(db, **data.model_dump())
    return DoctorResponse.model_validate(doctor)


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    return DoctorResponse.model_validate(doctor_service.get_doctor(db, doctor_id))


@router.api_route('/{doctor_id}', methods=['PUT', 'PATCH'], response_model=DoctorResponse)
def update_doctor(doctor_id: int, data: UpdateDoctorRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    changes = {
        name: value
        for name, value in data.model_dump(exclude_unset=True).items()
        if value is not None or name in CLEARABLE_FIELDS
    }

    doctor = doctor_service.get_doctor(db, doctor_id)
    doctor = doctor_service.update_doctor(db, doctor, **changes)
    return DoctorResponse.model_validate(doctor)


@router.delete('/{doctor_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    doctor = doctor_service.get_doctor(db, doctor_id)
    doctor_service.delete_doctor(db, doctor)
