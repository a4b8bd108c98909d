"""Recurring availability (planning) matching."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Sequence, Union

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.orm import Session

from reservations.exceptions import OutOfPlanningError, RelationsOutOfPlanningError
from reservations.models import WEEKDAY_COLUMNS, Group, Planning, Resource
from reservations.periods import Period, unique_dates

logger = logging.getLogger(__name__)

Bookable = Union[Resource, Group]


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        return cls(WEEKDAY_COLUMNS[day.weekday()])

    @property
    def column(self):
        return getattr(Planning, self.value)


class MatchingStrategy(str, Enum):
    ALL = "all"
    ANY = "any"


def _date_matches(planning: Planning, day: date) -> bool:
    return planning.contains(day) and planning.weekday_enabled(Weekday.from_date(day).value)


def rule_covers(planning: Planning, dates: Iterable[date]) -> bool:
    """Evaluate a single planning against a date set.

    ``all`` needs every date inside the window with its weekday enabled;
    ``any`` needs at least one such date.
    """
    days = unique_dates(dates)
    if not days:
        return True
    if MatchingStrategy(planning.matching_strategy) is MatchingStrategy.ANY:
        return any(_date_matches(planning, day) for day in days)
    return all(_date_matches(planning, day) for day in days)


def period_is_valid(planning: Planning, period: Period) -> bool:
    weekdays: list[Weekday] = []
    cursor = period.start.date()
    while cursor <= period.end.date() and len(weekdays) < 7:
        weekdays.append(Weekday.from_date(cursor))
        cursor += timedelta(days=1)

    flags = [planning.weekday_enabled(weekday.value) for weekday in set(weekdays)]
    if MatchingStrategy(planning.matching_strategy) is MatchingStrategy.ANY:
        weekdays_ok = any(flags)
    else:
        weekdays_ok = all(flags)

    starts_ok = planning.starts_on is None or planning.starts_on <= period.end.date()
    ends_ok = planning.ends_on is None or planning.ends_on >= period.start.date()
    return weekdays_ok and starts_ok and ends_ok


def _window_contains(day: date):
    return and_(
        or_(Planning.starts_on.is_(None), Planning.starts_on <= day),
        or_(Planning.ends_on.is_(None), Planning.ends_on >= day),
    )


def where_dates_are_valid(stmt: Select, dates: Sequence[date]) -> Select:
    if not dates:
        return stmt

    weekdays = {Weekday.from_date(day) for day in dates}
    all_strategy = and_(
        Planning.matching_strategy == MatchingStrategy.ALL.value,
        *[weekday.column.is_(True) for weekday in weekdays],
        *[_window_contains(day) for day in dates],
    )
    any_strategy = and_(
        Planning.matching_strategy == MatchingStrategy.ANY.value,
        or_(*[and_(Weekday.from_date(day).column.is_(True), _window_contains(day)) for day in dates]),
    )
    return stmt.where(or_(all_strategy, any_strategy))


def owner_filter(bookable: Bookable):
    if isinstance(bookable, Group):
        return Planning.group_id == bookable.id
    if bookable.group_id is None:
        return Planning.resource_id == bookable.id
    return or_(Planning.resource_id == bookable.id, Planning.group_id == bookable.group_id)


class PlanningMatcher:
    def __init__(self, session: Session):
        self.session = session

    def plannings_for(self, bookable: Bookable) -> list[Planning]:
        stmt = select(Planning).where(owner_filter(bookable)).order_by(Planning.id)
        return list(self.session.scalars(stmt))

    def _count(self, bookable: Bookable, dates: Sequence[date] | None = None) -> int:
        stmt = select(func.count()).select_from(Planning).where(owner_filter(bookable))
        if dates is not None:
            stmt = where_dates_are_valid(stmt, dates)
        return int(self.session.scalar(stmt) or 0)

    def has_valid_planning(self, bookable: Bookable, dates: Iterable[date]) -> bool:
        return self._count(bookable, unique_dates(dates)) > 0

    def ensure_has_valid_planning(
        self,
        bookable: Bookable,
        dates: Iterable[date],
        relations: Sequence[Bookable] | None = None,
    ) -> None:
        days = unique_dates(dates)
        if not self.has_valid_planning(bookable, days):
            logger.info(f"{bookable!r} has no planning for {len(days)} requested date(s)")
            raise OutOfPlanningError()

        self.ensure_relations_have_valid_planning(days, relations)

    def _members(self, related: Bookable) -> list[Resource]:
        if isinstance(related, Resource):
            return [related]
        stmt = select(Resource).where(Resource.group_id == related.id).order_by(Resource.id)
        return list(self.session.scalars(stmt))

    def _member_is_covered(self, resource: Resource, dates: Sequence[date]) -> bool:
        if self._count(resource) == 0:
            return True
        return self._count(resource, dates) > 0

    def ensure_relations_have_valid_planning(
        self,
        dates: Iterable[date],
        relations: Sequence[Bookable] | None = None,
    ) -> None:
        if not relations:
            return

        days = unique_dates(dates)
        for related in relations:
            if not any(self._member_is_covered(member, days) for member in self._members(related)):
                logger.info(f"Relation {related!r} has no member with a valid planning")
                raise RelationsOutOfPlanningError()

