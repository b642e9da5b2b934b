"""Free slot computation for a doctor on a given day.

The day is tiled into fixed 30 minute slots between the doctor's start and end
of work; a slot is offered only when it overlaps no non-cancelled appointment.
The result is advisory: nothing is reserved.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from sqlalchemy.orm import Session

from clinic_booking.errors import DoctorUnavailable
from clinic_booking.models.working_hours import TIME_FORMAT, Weekday
from clinic_booking.services import store

SLOT_DURATION_MINUTES = 30
SLOT_DURATION = timedelta(minutes=SLOT_DURATION_MINUTES)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return intervals_overlap(self.start, self.end, start, end)

    def as_dict(self) -> dict[str, str]:
        return {
            'start_time': self.start.strftime(TIME_FORMAT),
            'end_time': self.end.strftime(TIME_FORMAT),
        }


class UnavailableReason(str, Enum):
    NO_WORKING_HOURS = 'no_working_hours_for_day'


@dataclass
class DayAvailability:
    day: date
    weekday: Weekday
    slots: list[Slot] = field(default_factory=list)
    unavailable_reason: UnavailableReason | None = None

    @property
    def is_working_day(self) -> bool:
        return self.unavailable_reason is None


def generate_slots(window_start: datetime, window_end: datetime, duration: timedelta = SLOT_DURATION) -> list[Slot]:
    slots: list[Slot] = []
    current = window_start

    # A trailing remainder shorter than one slot is dropped.
    while current + duration <= window_end:
        slots.append(Slot(current, current + duration))
        current += duration

    return slots


def ensure_doctor_available(doctor) -> None:
    if not doctor.is_active:
        raise DoctorUnavailable(doctor_id=doctor.id)


def compute_available_slots(doctor, day: date, booked: Iterable[tuple[datetime, datetime]]) -> DayAvailability:
    ensure_doctor_available(doctor)

    weekday = Weekday.of(day)
    hours = doctor.schedule.on(day)
    if hours is None:
        return DayAvailability(day, weekday, unavailable_reason=UnavailableReason.NO_WORKING_HOURS)

    booked_intervals = list(booked)
    day_start, day_end = hours.window(day)
    free_slots = [
        slot
        for slot in generate_slots(day_start, day_end)
        if not any(slot.overlaps(booked_start, booked_end) for booked_start, booked_end in booked_intervals)
    ]

    return DayAvailability(day, weekday, free_slots)


def get_available_slots(db: Session, doctor, day: date) -> DayAvailability:
    ensure_doctor_available(doctor)

    if doctor.schedule.on(day) is None:
        return compute_available_slots(doctor, day, [])

    return compute_available_slots(doctor, day, store.find_booked_intervals(db, doctor.id, day))
