"""Read-only availability checks run before a booking transaction opens."""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from reservations.capacity import CapacityChecker
from reservations.exceptions import AvailabilityError
from reservations.models import Booking, Group, ReservedInterval, Resource, ResourceRelation
from reservations.periods import Period, PeriodsLike, to_dates
from reservations.planning import Bookable, PlanningMatcher, period_is_valid


def check_availability(
    db: Session,
    periods: PeriodsLike,
    bookable: Bookable,
    relations: Optional[Sequence[Bookable]] = None,
    ignore_unbookable: bool = False,
    ignore_booking: Optional[Booking] = None,
) -> None:
    dates = to_dates(periods)
    PlanningMatcher(db).ensure_has_valid_planning(bookable, dates, relations)
    CapacityChecker(db).ensure_free_seats(bookable, dates, relations, ignore_unbookable, ignore_booking)


def is_available(
    db: Session,
    periods: PeriodsLike,
    bookable: Bookable,
    relations: Optional[Sequence[Bookable]] = None,
    ignore_unbookable: bool = False,
    ignore_booking: Optional[Booking] = None,
) -> bool:
    try:
        check_availability(db, periods, bookable, relations, ignore_unbookable, ignore_booking)
    except AvailabilityError:
        return False
    return True


def resolve_relations(db: Session, resource: Resource, required_only: bool = True) -> list[Bookable]:
    """Resources and groups the resource declares as related."""
    owners = [ResourceRelation.parent_resource_id == resource.id]
    if resource.group_id is not None:
        # Group-level edges apply to every member of the group.
        owners.append(
            (ResourceRelation.parent_group_id == resource.group_id)
            & ResourceRelation.parent_resource_id.is_(None)
        )

    stmt = select(ResourceRelation).where(or_(*owners)).order_by(ResourceRelation.id)
    if required_only:
        stmt = stmt.where(ResourceRelation.is_required.is_(True))

    related: list[Bookable] = []
    for edge in list(db.scalars(stmt)):
        if edge.resource_id is not None:
            target = db.get(Resource, edge.resource_id)
        else:
            target = db.get(Group, edge.group_id) if edge.group_id is not None else None
        if target is not None and target not in related:
            related.append(target)
    return related


def _active_count(db: Session, resource_id, period: Period) -> int:
    stmt = (
        select(func.count())
        .select_from(ReservedInterval)
        .join(Booking, Booking.id == ReservedInterval.booking_id)
        .where(
            ReservedInterval.resource_id == resource_id,
            ReservedInterval.is_excluded.is_(False),
            Booking.deleted_at.is_(None),
            ReservedInterval.starts_at < period.end,
            ReservedInterval.ends_at > period.start,
        )
    )
    return int(db.scalar(stmt) or 0)


def find_available_resources(db: Session, period: Period, group: Optional[Group] = None) -> list[Resource]:
    """Bookable resources with a free slot and a planning valid for the period."""
    stmt = select(Resource).where(Resource.is_bookable.is_(True)).order_by(Resource.id)
    if group is not None:
        stmt = stmt.where(Resource.group_id == group.id)

    matcher = PlanningMatcher(db)
    available: list[Resource] = []
    for resource in list(db.scalars(stmt)):
        if resource.max_concurrent is not None and _active_count(db, resource.id, period) >= resource.max_concurrent:
            continue
        if any(period_is_valid(planning, period) for planning in matcher.plannings_for(resource)):
            available.append(resource)
    return available
