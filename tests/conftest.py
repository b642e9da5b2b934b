import os
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_booking.database import Base  # noqa: E402
from clinic_booking.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from clinic_booking.models.doctor import Doctor  # noqa: E402


MONDAY_HOURS = {'monday': ['09:00', '17:00']}


def upcoming_monday(today: date | None = None) -> date:
    today = today or date.today()
    # Always at least a week out so "future" checks hold for the whole day.
    return today + timedelta(days=7 - today.weekday() + 7)


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[Doctor.__table__, Appointment.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, Doctor.__table__])
        engine.dispose()


@pytest.fixture
def monday() -> date:
    return upcoming_monday()


@pytest.fixture
def make_doctor(db_session):
    def _make_doctor(**overrides) -> Doctor:
        fields = {
            'name': 'Dr. Grace Hopper',
            'specialization': 'Cardiology',
            'email': None,
            'is_active': True,
            'working_hours': MONDAY_HOURS,
        }
        fields.update(overrides)
        doctor = Doctor(**fields)
        db_session.add(doctor)
        db_session.commit()
        db_session.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_appointment(db_session):
    def _make_appointment(
        doctor: Doctor,
        start_time: datetime,
        end_time: datetime | None = None,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        **overrides,
    ) -> Appointment:
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_name=overrides.pop('patient_name', 'John Smith'),
            start_time=start_time,
            end_time=end_time or start_time + timedelta(minutes=30),
            status=status.value,
            **overrides,
        )
        db_session.add(appointment)
        db_session.commit()
        db_session.refresh(appointment)
        return appointment

    return _make_appointment
