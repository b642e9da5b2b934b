"""Appointment model definitions."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from clinic_booking.database import Base


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


OPEN_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})

_LIVE_ROW_CLAUSE = "status <> 'cancelled' AND deleted_at IS NULL"

SLOT_INDEX_NAME = 'unique_doctor_appointment'


class Appointment(Base):
    """Represents a booked patient appointment with one doctor."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_doctor_start_status', 'doctor_id', 'start_time', 'status'),
        Index('idx_appointments_doctor_time_range', 'doctor_id', 'start_time', 'end_time'),
        # Cancelled and deleted rows must not block re-booking the same start.
        Index(
            SLOT_INDEX_NAME,
            'doctor_id',
            'start_time',
            unique=True,
            sqlite_where=text(_LIVE_ROW_CLAUSE),
            postgresql_where=text(_LIVE_ROW_CLAUSE),
        ),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    patient_name = Column(String(255), nullable=False, index=True)
    patient_email = Column(String(255), nullable=True, index=True)
    patient_phone = Column(String(50), nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value, index=True)
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime, nullable=True)

    doctor = relationship("Doctor", back_populates="appointments")

    @property
    def current_status(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)
