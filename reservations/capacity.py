"""Seat accounting for resources and groups."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

from sqlalchemy import Select, distinct, func, or_, select
from sqlalchemy.orm import Session

from reservations.exceptions import NoFreeSeatsError, RelationsHaveNoFreeSeatsError, UnbookableError
from reservations.models import Booking, Group, ReservedInterval, Resource
from reservations.periods import unique_dates
from reservations.planning import Bookable

logger = logging.getLogger(__name__)


def where_touches_dates(stmt: Select, dates: Sequence[date]) -> Select:
    """Keep intervals touching at least one of the calendar days."""
    conditions = []
    for day in dates:
        day_start = datetime.combine(day, time.min)
        conditions.append(
            (ReservedInterval.starts_at < day_start + timedelta(days=1)) & (ReservedInterval.ends_at >= day_start)
        )
    return stmt.where(or_(*conditions))


class CapacityChecker:
    def __init__(self, session: Session):
        self.session = session

    def effective_capacity(self, bookable: Bookable, ignore_unbookable: bool = False) -> int:
        if isinstance(bookable, Resource):
            if ignore_unbookable or bookable.is_bookable:
                return int(bookable.capacity or 0)
            return 0

        if not ignore_unbookable and not bookable.is_bookable:
            return 0
        stmt = select(func.coalesce(func.sum(Resource.capacity), 0)).where(Resource.group_id == bookable.id)
        if not ignore_unbookable:
            stmt = stmt.where(Resource.is_bookable.is_(True))
        return int(self.session.scalar(stmt) or 0)

    def booked_count(
        self,
        bookable: Bookable,
        dates: Iterable[date],
        ignore_booking: Booking | None = None,
    ) -> int:
        """Distinct live bookings holding non-excluded time on any of the dates."""
        days = unique_dates(dates)
        if not days:
            return 0

        stmt = (
            select(func.count(distinct(ReservedInterval.booking_id)))
            .select_from(ReservedInterval)
            .join(Booking, Booking.id == ReservedInterval.booking_id)
            .where(
                Booking.deleted_at.is_(None),
                ReservedInterval.is_excluded.is_(False),
            )
        )
        if isinstance(bookable, Group):
            stmt = stmt.join(Resource, Resource.id == ReservedInterval.resource_id).where(Resource.group_id == bookable.id)
        else:
            stmt = stmt.where(ReservedInterval.resource_id == bookable.id)
        if ignore_booking is not None:
            stmt = stmt.where(ReservedInterval.booking_id != ignore_booking.id)

        return int(self.session.scalar(where_touches_dates(stmt, days)) or 0)

    def has_free_seats(
        self,
        bookable: Bookable,
        dates: Iterable[date],
        ignore_unbookable: bool = False,
        ignore_booking: Booking | None = None,
    ) -> bool:
        return self.effective_capacity(bookable, ignore_unbookable) > self.booked_count(bookable, dates, ignore_booking)

    def ensure_free_seats(
        self,
        bookable: Bookable,
        dates: Iterable[date],
        relations: Sequence[Bookable] | None = None,
        ignore_unbookable: bool = False,
        ignore_booking: Booking | None = None,
    ) -> None:
        days = unique_dates(dates)
        capacity = self.effective_capacity(bookable, ignore_unbookable)
        if capacity == 0:
            raise UnbookableError()

        demand = self.booked_count(bookable, days, ignore_booking)
        if capacity <= demand:
            logger.info(f"{bookable!r} is full: capacity={capacity} demand={demand}")
            raise NoFreeSeatsError()

        self.ensure_relations_have_free_seats(days, relations, ignore_unbookable, ignore_booking)

    def ensure_relations_have_free_seats(
        self,
        dates: Iterable[date],
        relations: Sequence[Bookable] | None = None,
        ignore_unbookable: bool = False,
        ignore_booking: Booking | None = None,
    ) -> None:
        if not relations:
            return

        days = unique_dates(dates)
        groups = [related for related in relations if isinstance(related, Group)]
        resources = [related for related in relations if isinstance(related, Resource)]

        for pool in (groups, resources):
            if pool and not any(self.has_free_seats(related, days, ignore_unbookable, ignore_booking) for related in pool):
                logger.info(f"No related {type(pool[0]).__name__.lower()} has free seats")
                raise RelationsHaveNoFreeSeatsError()
