"""Weekly working hours for a doctor.

Hours are stored as ``{"monday": ["09:00", "17:00"], ...}``. A weekday that is
missing from the mapping is a day the doctor does not work.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum

TIME_FORMAT = '%H:%M'


class Weekday(str, Enum):
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'
    SUNDAY = 'sunday'

    @classmethod
    def of(cls, day: date) -> 'Weekday':
        return _WEEKDAYS[day.weekday()]


_WEEKDAYS = tuple(Weekday)


def parse_clock_time(value: str) -> time:
    try:
        return datetime.strptime(value.strip(), TIME_FORMAT).time()
    except (AttributeError, ValueError) as exc:
        raise ValueError(f'Invalid time {value!r}; expected HH:MM.') from exc


@dataclass(frozen=True)
class DayHours:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError('Working hours must end after they start.')

    def window(self, day: date) -> tuple[datetime, datetime]:
        """Anchor the wall-clock bounds to ``day``."""
        return datetime.combine(day, self.start), datetime.combine(day, self.end)

    def as_pair(self) -> list[str]:
        return [self.start.strftime(TIME_FORMAT), self.end.strftime(TIME_FORMAT)]


class WorkingHours:
    """One optional :class:`DayHours` per weekday, Monday first."""

    __slots__ = ('_days',)

    def __init__(self, days: Mapping[Weekday, DayHours] | None = None) -> None:
        days = days or {}
        self._days: tuple[DayHours | None, ...] = tuple(days.get(weekday) for weekday in Weekday)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> 'WorkingHours':
        if not raw:
            return cls()

        days: dict[Weekday, DayHours] = {}
        for key, bounds in raw.items():
            try:
                weekday = Weekday(str(key).strip().lower())
            except ValueError as exc:
                raise ValueError(f'Unknown weekday {key!r}.') from exc

            if bounds is None:
                continue
            if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
                raise ValueError(f'Working hours for {weekday.value} must be a [start, end] pair.')

            days[weekday] = DayHours(parse_clock_time(bounds[0]), parse_clock_time(bounds[1]))

        return cls(days)

    def for_weekday(self, weekday: Weekday) -> DayHours | None:
        return self._days[_WEEKDAYS.index(weekday)]

    def on(self, day: date) -> DayHours | None:
        return self.for_weekday(Weekday.of(day))

    def to_mapping(self) -> dict[str, list[str]]:
        return {
            weekday.value: hours.as_pair()
            for weekday, hours in zip(Weekday, self._days)
            if hours is not None
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkingHours):
            return NotImplemented
        return self._days == other._days

    def __repr__(self) -> str:
        return f'WorkingHours({self.to_mapping()!r})'


DEFAULT_WORKING_HOURS = {
    Weekday.MONDAY.value: ['09:00', '17:00'],
    Weekday.TUESDAY.value: ['09:00', '17:00'],
    Weekday.WEDNESDAY.value: ['09:00', '17:00'],
    Weekday.THURSDAY.value: ['09:00', '17:00'],
    Weekday.FRIDAY.value: ['09:00', '17:00'],
}


def default_working_hours() -> dict[str, list[str]]:
    return {weekday: list(bounds) for weekday, bounds in DEFAULT_WORKING_HOURS.items()}
