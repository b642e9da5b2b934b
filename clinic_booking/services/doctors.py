"""Doctor directory: listing, creation, updates and soft deletion."""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core import config
from clinic_booking.errors import DoctorEmailTaken, DoctorNotFound, TransientStoreFailure
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.working_hours import default_working_hours
from clinic_booking.services import store

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ('name', 'specialization', 'created_at')
SORT_DIRECTIONS = ('asc', 'desc')

_TAG_PATTERN = re.compile(r'<[^>]*>')
_SEARCH_DISALLOWED = re.compile(r'[^\w\s]|_')


def sanitize_search(term: str | None) -> str | None:
    if term is None:
        return None
    cleaned = _SEARCH_DISALLOWED.sub('', _TAG_PATTERN.sub('', term)).strip()
    return cleaned or None


@dataclass
class DoctorFilter:
    specialization: str | None = None
    search: str | None = None
    sort_by: str = 'name'
    sort_dir: str = 'asc'
    page: int = 1
    per_page: int = field(default_factory=lambda: config.DEFAULT_PER_PAGE)

    def __post_init__(self) -> None:
        self.search = sanitize_search(self.search)


@dataclass
class Page:
    items: list[Doctor]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))


def list_doctors(db: Session, filters: DoctorFilter) -> Page:
    query = db.query(Doctor).filter(
        Doctor.is_active.is_(True),
        Doctor.deleted_at.is_(None),
    )

    if filters.specialization:
        query = query.filter(Doctor.specialization == filters.specialization)

    if filters.search:
        query = query.filter(Doctor.name.ilike(f'%{filters.search}%'))

    if filters.sort_by in SORTABLE_FIELDS:
        column = getattr(Doctor, filters.sort_by)
        query = query.order_by(column.desc() if filters.sort_dir == 'desc' else column.asc())
    query = query.order_by(Doctor.id.asc())

    try:
        total = query.count()
        items = query.offset((filters.page - 1) * filters.per_page).limit(filters.per_page).all()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Listing doctors failed in the store')
        raise TransientStoreFailure() from exc

    return Page(items=items, total=total, page=filters.page, per_page=filters.per_page)


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    try:
        doctor = store.find_doctor_by_id(db, doctor_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Reading doctor %s failed in the store', doctor_id)
        raise TransientStoreFailure() from exc

    if doctor is None:
        raise DoctorNotFound(doctor_id=doctor_id)
    return doctor


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DoctorEmailTaken() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to %s doctor', action)
        raise TransientStoreFailure() from exc


def create_doctor(db: Session, **fields) -> Doctor:
    if fields.get('working_hours') is None:
        fields['working_hours'] = default_working_hours()

    doctor = Doctor(**fields)
    db.add(doctor)
    _commit(db, 'create')
    db.refresh(doctor)

    logger.info('Created doctor %s (%s)', doctor.id, doctor.specialization)
    return doctor


def update_doctor(db: Session, doctor: Doctor, **fields) -> Doctor:
    for name, value in fields.items():
        setattr(doctor, name, value)
    _commit(db, 'update')
    db.refresh(doctor)
    return doctor


def delete_doctor(db: Session, doctor: Doctor) -> None:
    doctor.deleted_at = datetime.now()
    _commit(db, 'delete')
    logger.info('Deleted doctor %s', doctor.id)
