"""Helpers for the "h:mm AM/PM" time-of-day strings stored on appointments."""
from datetime import date, datetime, time

from .errors import InvalidTimeOfDay

_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M")


def parse_time_of_day(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    text = str(value).strip().upper()
    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise InvalidTimeOfDay(value)


def format_time_of_day(value: time) -> str:
    """9:05 -> "9:05 AM", 15:00 -> "3:00 PM"."""
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{value.hour % 12 or 12}:{value.minute:02d} {suffix}"


def normalise_time_of_day(value: str | time) -> str:
    return format_time_of_day(parse_time_of_day(value))


def combine(on_date: date, time_of_day: str | time) -> datetime:
    return datetime.combine(on_date, parse_time_of_day(time_of_day))


def appointment_start(appointment) -> datetime:
    return combine(appointment.date, appointment.time)
