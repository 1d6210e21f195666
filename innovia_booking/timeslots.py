import datetime
from enum import Enum
from typing import NamedTuple

from dateutil import parser

from .config import LOCAL_TZ
from .errors import InvalidDate, InvalidSlot


class Timeslot(str, Enum):
    MORNING = "FM"
    AFTERNOON = "EF"


# local wall-clock hours, [start, end)
SLOT_HOURS = {
    Timeslot.MORNING: (8, 12),
    Timeslot.AFTERNOON: (12, 16),
}


class Interval(NamedTuple):
    start: datetime.datetime
    end: datetime.datetime


def parse_timeslot(code: str) -> Timeslot:
    try:
        return Timeslot(code)
    except ValueError:
        raise InvalidSlot(f"Unknown timeslot {code!r}, expected FM or EF")


def parse_booking_date(value: str) -> datetime.date:
    """Parse the civil booking date. Any time part is ignored."""
    if not value or not isinstance(value, str):
        raise InvalidDate("Booking date is required")
    try:
        return parser.isoparse(value.strip()).date()
    except (ValueError, OverflowError):
        raise InvalidDate(f"Invalid booking date {value!r}, expected yyyy-MM-dd")


def compute_interval(day: datetime.date, slot: Timeslot, zone=LOCAL_TZ) -> Interval:
    """
    Local start/end wall-clock times for the slot on `day`, converted to UTC
    with the zone's offset on that date (DST aware).
    """
    start_hour, end_hour = SLOT_HOURS[slot]
    start_local = datetime.datetime.combine(day, datetime.time(start_hour), tzinfo=zone)
    end_local = datetime.datetime.combine(day, datetime.time(end_hour), tzinfo=zone)
    return Interval(
        start=start_local.astimezone(datetime.timezone.utc),
        end=end_local.astimezone(datetime.timezone.utc),
    )


def interval_for(date_string: str, slot_code: str, zone=LOCAL_TZ) -> tuple[Timeslot, Interval]:
    slot = parse_timeslot(slot_code)
    day = parse_booking_date(date_string)
    return slot, compute_interval(day, slot, zone)
