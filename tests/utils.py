"""Row builders and date helpers shared by the test modules."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from reservations.codes import random_booking_code
from reservations.models import Booking, Group, Planning, ReservedInterval, Resource, ResourceRelation
from reservations.periods import Period, as_periods

# A Monday, far enough ahead that no planning window is accidentally in the past.
MONDAY = date(2030, 1, 7)


def at(day: date, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def day_period(day: date, start_hour: int = 9, end_hour: int = 17) -> Period:
    return Period(at(day, start_hour), at(day, end_hour))


def days_period(first: date, last: date) -> Period:
    return Period(at(first, 9), at(last, 17))


def next_days(count: int, start: date = MONDAY) -> list[date]:
    return [start + timedelta(days=offset) for offset in range(count)]


def make_planning(owner, strategy: str = "all", starts_on=None, ends_on=None, **weekdays) -> Planning:
    planning = Planning(
        matching_strategy=strategy,
        starts_on=starts_on,
        ends_on=ends_on,
        monday=weekdays.get("monday", True),
        tuesday=weekdays.get("tuesday", True),
        wednesday=weekdays.get("wednesday", True),
        thursday=weekdays.get("thursday", True),
        friday=weekdays.get("friday", True),
        saturday=weekdays.get("saturday", True),
        sunday=weekdays.get("sunday", True),
    )
    if isinstance(owner, Group):
        planning.group_id = owner.id
    elif owner is not None:
        planning.resource_id = owner.id
    return planning


def make_relation(parent, related, is_required: bool = True) -> ResourceRelation:
    relation = ResourceRelation(is_required=is_required)
    if isinstance(parent, Group):
        relation.parent_group_id = parent.id
    else:
        relation.parent_resource_id = parent.id
    if isinstance(related, Group):
        relation.group_id = related.id
    else:
        relation.resource_id = related.id
    return relation


def make_booking(resource: Resource, periods, excluded=None, deleted: bool = False) -> Booking:
    booking = Booking(code=random_booking_code(), deleted_at=datetime(2029, 12, 1) if deleted else None)
    for period in as_periods(periods):
        booking.intervals.append(
            ReservedInterval(resource_id=resource.id, starts_at=period.start, ends_at=period.end, is_excluded=False)
        )
    for period in as_periods(excluded):
        booking.intervals.append(
            ReservedInterval(resource_id=resource.id, starts_at=period.start, ends_at=period.end, is_excluded=True)
        )
    return booking
