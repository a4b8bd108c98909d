"""Payload-level entry points: validate, pre-check, then book."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from reservations.availability import check_availability, resolve_relations
from reservations.coordinator import BookerRef, BookingCoordinator, reserved_periods
from reservations.events import EventDispatcher
from reservations.exceptions import BookingError, BookingNotFoundError
from reservations.models import Booking, Group, Resource
from reservations.planning import Bookable
from reservations.schema import (
    BookingRequest,
    BookingResult,
    CancelBookingRequest,
    PeriodIn,
    RelationIn,
    RelationKind,
)

logger = logging.getLogger(__name__)


def _failure(reason: str, error: Optional[str] = None) -> dict[str, Any]:
    return BookingResult(success=False, reason=reason, error=error).model_dump(mode="json")


def _error_result(exc: BookingError) -> dict[str, Any]:
    return _failure(str(exc), exc.reason)


def _coordinator(
    session_factory: Optional[sessionmaker],
    events: Optional[EventDispatcher],
) -> BookingCoordinator:
    if session_factory is not None:
        return BookingCoordinator(session_factory, events)

    from config import get_settings
    from db.session import get_session_factory

    settings = get_settings()
    return BookingCoordinator(
        get_session_factory(),
        events,
        code_prefix=settings.code_prefix or None,
        code_suffix=settings.code_suffix or None,
    )


def _load_relations(db: Session, relations: Optional[list[RelationIn]], resource: Resource) -> list[Bookable]:
    if relations is None:
        return resolve_relations(db, resource)

    loaded: list[Bookable] = []
    for relation in relations:
        model = Resource if relation.kind == RelationKind.RESOURCE else Group
        target = db.get(model, relation.id)
        if target is None:
            raise LookupError(f"Related {relation.kind.value} {relation.id} not found.")
        loaded.append(target)
    return loaded


def execute_booking(
    payload: dict,
    session_factory: Optional[sessionmaker] = None,
    events: Optional[EventDispatcher] = None,
) -> dict:
    try:
        request = BookingRequest.model_validate(payload)
    except ValidationError as exc:
        return _failure(f"Invalid booking payload: {exc}", "invalid_payload")

    coordinator = _coordinator(session_factory, events)
    periods = [period.to_period() for period in request.periods]
    excluded = [period.to_period() for period in request.excluded]

    # Pre-checks run on their own short-lived session so no lock is held
    # when the booking transaction starts.
    with coordinator.session_factory() as db:
        resource = db.get(Resource, request.resource_id)
        if resource is None:
            return _failure("Resource not found.", "resource_not_found")

        booking: Optional[Booking] = None
        if request.booking_id is not None:
            booking = db.get(Booking, request.booking_id)
            if booking is None or booking.is_deleted:
                return _error_result(BookingNotFoundError())

        if not request.skip_availability_check:
            try:
                relations = _load_relations(db, request.relations, resource)
            except LookupError as exc:
                return _failure(str(exc), "relation_not_found")
            try:
                check_availability(
                    db,
                    periods,
                    resource,
                    relations,
                    request.ignore_unbookable,
                    ignore_booking=booking,
                )
            except BookingError as exc:
                logger.info(f"Availability check failed for resource {resource.id}: {exc.reason}")
                return _error_result(exc)

    booker = BookerRef(request.booker_type, request.booker_id) if request.booker_type else None
    try:
        record = coordinator.book(
            periods,
            resource,
            booker=booker,
            booking=booking,
            excluded=excluded,
            code=request.code,
            code_prefix=request.code_prefix,
            code_suffix=request.code_suffix,
            label=request.label,
            note=request.note,
            meta=request.meta,
        )
    except BookingError as exc:
        return _error_result(exc)

    return BookingResult(
        success=True,
        booking_id=record.id,
        code=record.code,
        periods=[PeriodIn.from_period(period) for period in reserved_periods(record)],
    ).model_dump(mode="json")


def cancel_booking(
    payload: dict,
    session_factory: Optional[sessionmaker] = None,
    events: Optional[EventDispatcher] = None,
) -> dict:
    try:
        request = CancelBookingRequest.model_validate(payload)
    except ValidationError as exc:
        return _failure(f"Invalid cancel payload: {exc}", "invalid_payload")

    coordinator = _coordinator(session_factory, events)
    try:
        booking = coordinator.get_booking(request.booking_id)
        record = coordinator.cancel(booking)
    except BookingError as exc:
        return _error_result(exc)

    return BookingResult(success=True, booking_id=record.id, code=record.code).model_dump(mode="json")
