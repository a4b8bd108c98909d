"""Concurrency ceiling checks for reserved intervals."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from reservations.events import BookingChangeFailed, BookingFailed, EventDispatcher, UnbookableReason
from reservations.exceptions import OverlapError
from reservations.models import Booking, ReservedInterval, Resource
from reservations.periods import Period, PeriodsLike, as_periods

logger = logging.getLogger(__name__)


def overlap_query(
    *,
    resource_id,
    start_time: datetime,
    end_time: datetime,
    ignore_booking_id=None,
) -> Select:
    # Boundaries are inclusive: touching intervals count as overlapping.
    stmt = (
        select(ReservedInterval.id)
        .join(Booking, Booking.id == ReservedInterval.booking_id)
        .where(
            ReservedInterval.resource_id == resource_id,
            ReservedInterval.is_excluded.is_(False),
            Booking.deleted_at.is_(None),
            ReservedInterval.starts_at <= end_time,
            ReservedInterval.ends_at >= start_time,
        )
    )
    if ignore_booking_id is not None:
        stmt = stmt.where(ReservedInterval.booking_id != ignore_booking_id)
    return stmt


def overlap_count(
    db: Session,
    *,
    resource_id,
    start_time: datetime,
    end_time: datetime,
    ignore_booking_id=None,
    lock_rows: bool = False,
) -> int:
    stmt = overlap_query(
        resource_id=resource_id,
        start_time=start_time,
        end_time=end_time,
        ignore_booking_id=ignore_booking_id,
    )
    if lock_rows:
        # Aggregates cannot carry FOR UPDATE, so lock the rows and count them here.
        stmt = stmt.with_for_update(of=ReservedInterval)
    return len(list(db.scalars(stmt)))


class OverlapGuard:
    def __init__(self, session: Session, events: Optional[EventDispatcher] = None):
        self.session = session
        self.events = events

    def _lock_resource(self, resource: Resource) -> Resource:
        stmt = (
            select(Resource)
            .where(Resource.id == resource.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        locked = self.session.scalar(stmt)
        if locked is None:
            raise LookupError(f"Resource {resource.id} not found.")
        return locked

    def count_overlaps(
        self,
        period: Period,
        resource: Resource,
        ignore_booking: Optional[Booking] = None,
        lock_rows: bool = True,
    ) -> int:
        return overlap_count(
            self.session,
            resource_id=resource.id,
            start_time=period.start,
            end_time=period.end,
            ignore_booking_id=ignore_booking.id if ignore_booking is not None else None,
            lock_rows=lock_rows,
        )

    def check_overlaps(
        self,
        periods: PeriodsLike,
        resource: Resource,
        ignore_booking: Optional[Booking] = None,
        emit_event: bool = False,
        throw: bool = False,
    ) -> bool:
        requested = as_periods(periods)
        if not requested:
            return True

        locked = self._lock_resource(resource)
        if locked.max_concurrent is None:
            return True

        for period in requested:
            found = self.count_overlaps(period, locked, ignore_booking)
            if found >= locked.max_concurrent:
                logger.info(
                    f"Overlap on resource {locked.id} for {period.start.isoformat()} - {period.end.isoformat()}: "
                    f"{found} existing, max {locked.max_concurrent}"
                )
                self._handle_failure(requested, resource, ignore_booking, emit_event, throw)
                return False

        return True

    def _handle_failure(
        self,
        periods: list[Period],
        resource: Resource,
        ignore_booking: Optional[Booking],
        emit_event: bool,
        throw: bool,
    ) -> None:
        if emit_event and self.events is not None:
            if ignore_booking is not None:
                self.events.emit(BookingChangeFailed(ignore_booking, UnbookableReason.PERIOD_OVERLAP, resource, periods))
            else:
                self.events.emit(BookingFailed(UnbookableReason.PERIOD_OVERLAP, resource, periods))

        if throw:
            raise OverlapError()
