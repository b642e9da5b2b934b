"""Doctor model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from clinic_booking.database import Base
from clinic_booking.models.working_hours import WorkingHours, default_working_hours


class Doctor(Base):
    """Represents a doctor whose weekly hours can be booked."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    specialization = Column(String(255), nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    working_hours = Column(JSON, nullable=True, default=default_working_hours)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime, nullable=True)

    appointments = relationship("Appointment", back_populates="doctor")

    @property
    def schedule(self) -> WorkingHours:
        return WorkingHours.from_mapping(self.working_hours)
