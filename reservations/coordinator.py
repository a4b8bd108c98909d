"""Transactional create/update/cancel of booking aggregates.

Every write runs in a single transaction on a fresh session:

* create: ``BookingInProgress`` -> overlap guard -> booking row -> interval
  rows -> commit -> ``BookingCompleted``.
* update: ``BookingChanging`` -> overlap guard ignoring the booking itself ->
  booking row -> replace all interval rows -> commit -> ``BookingChanged``.

A failure notification is emitted before the rollback and the original
exception is re-raised. Completion notifications are only emitted once the
commit has succeeded.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from reservations.codes import BookingCodeGenerator, random_booking_code
from reservations.events import (
    BookingCancelled,
    BookingChanged,
    BookingChangeFailed,
    BookingChanging,
    BookingCompleted,
    BookingFailed,
    BookingInProgress,
    EventDispatcher,
    UnbookableReason,
)
from reservations.exceptions import BookingNotFoundError, OverlapError
from reservations.models import Booking, ReservedInterval, Resource
from reservations.overlaps import OverlapGuard
from reservations.periods import Period, PeriodsLike, as_periods, subtract

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookerRef:
    type: str
    id: str


def booker_reference(booker: Any) -> tuple[Optional[str], Optional[str]]:
    if booker is None:
        return None, None
    if isinstance(booker, BookerRef):
        return booker.type, booker.id
    return type(booker).__name__, str(booker.id)


def reserved_periods(booking: Booking) -> list[Period]:
    """Time actually held by a booking: included rows minus excluded rows."""
    included = [Period(row.starts_at, row.ends_at) for row in booking.intervals if not row.is_excluded]
    excluded = [Period(row.starts_at, row.ends_at) for row in booking.intervals if row.is_excluded]
    return subtract(sorted(included), excluded)


class BookingCoordinator:
    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        events: Optional[EventDispatcher] = None,
        code_generator: Optional[BookingCodeGenerator] = None,
        code_prefix: Optional[str] = None,
        code_suffix: Optional[str] = None,
    ):
        if session_factory is None:
            from db.session import get_session_factory

            session_factory = get_session_factory()
        self.session_factory = session_factory
        self.events = events or EventDispatcher()
        self.code_generator = code_generator or random_booking_code
        self.code_prefix = code_prefix
        self.code_suffix = code_suffix

    def book(
        self,
        periods: PeriodsLike,
        resource: Resource,
        booker: Any = None,
        booking: Optional[Booking] = None,
        excluded: PeriodsLike = None,
        code: Optional[str] = None,
        code_prefix: Optional[str] = None,
        code_suffix: Optional[str] = None,
        label: Optional[str] = None,
        note: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> Booking:
        fields = dict(code=code, code_prefix=code_prefix, code_suffix=code_suffix, label=label, note=note, meta=meta)
        if booking is not None and booking.id is not None:
            return self.update(booking, periods, resource, booker=booker, excluded=excluded, **fields)
        return self.create(periods, resource, booker=booker, excluded=excluded, **fields)

    def create(
        self,
        periods: PeriodsLike,
        resource: Resource,
        booker: Any = None,
        excluded: PeriodsLike = None,
        code: Optional[str] = None,
        code_prefix: Optional[str] = None,
        code_suffix: Optional[str] = None,
        label: Optional[str] = None,
        note: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> Booking:
        requested = as_periods(periods)
        carved = as_periods(excluded)

        def write(db: Session) -> Booking:
            self.events.emit(BookingInProgress(resource, requested))

            effective = subtract(requested, carved)
            OverlapGuard(db, self.events).check_overlaps(effective, resource, emit_event=True, throw=True)

            booker_type, booker_id = booker_reference(booker)
            record = Booking(
                code=code or self._generate_code(code_prefix, code_suffix),
                booker_type=booker_type,
                booker_id=booker_id,
                label=label,
                note=note,
                meta=meta,
            )
            db.add(record)
            db.flush()

            self._add_intervals(db, record, resource, effective, carved)
            return record

        def failed(reason: UnbookableReason, exc: Exception) -> None:
            if reason is UnbookableReason.PERIOD_OVERLAP:
                # The overlap guard already reported it.
                return
            self.events.emit(
                BookingFailed(reason, resource, requested, str(exc), traceback.format_exc())
            )

        record = self._execute_in_transaction(write, failed)
        logger.info(f"Booking {record.code} created on resource {resource.id} with {len(record.intervals)} interval(s)")
        self.events.emit(BookingCompleted(record, requested))
        return record

    def update(
        self,
        booking: Booking,
        periods: PeriodsLike,
        resource: Resource,
        booker: Any = None,
        excluded: PeriodsLike = None,
        code: Optional[str] = None,
        code_prefix: Optional[str] = None,
        code_suffix: Optional[str] = None,
        label: Optional[str] = None,
        note: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> Booking:
        requested = as_periods(periods)
        carved = as_periods(excluded)

        def write(db: Session) -> Booking:
            self.events.emit(BookingChanging(booking, resource, requested))

            effective = subtract(requested, carved)
            OverlapGuard(db, self.events).check_overlaps(effective, resource, ignore_booking=booking, throw=True)

            stored = self._load_for_update(db, booking.id)

            booker_type, booker_id = booker_reference(booker)
            stored.code = code or stored.code or self._generate_code(code_prefix, code_suffix)
            stored.booker_type = booker_type or stored.booker_type
            stored.booker_id = booker_id or stored.booker_id
            stored.label = label
            stored.note = note
            stored.meta = meta

            stored.intervals.clear()
            db.flush()

            self._add_intervals(db, stored, resource, effective, carved)
            return stored

        def failed(reason: UnbookableReason, exc: Exception) -> None:
            self.events.emit(
                BookingChangeFailed(
                    booking,
                    reason,
                    resource,
                    requested,
                    str(exc),
                    traceback.format_exc() if reason is UnbookableReason.EXCEPTION else None,
                )
            )

        record = self._execute_in_transaction(write, failed)
        logger.info(f"Booking {record.code} changed on resource {resource.id} with {len(record.intervals)} interval(s)")
        self.events.emit(BookingChanged(record, requested))
        return record

    def cancel(self, booking: Booking) -> Booking:
        with self.session_factory() as db:
            with db.begin():
                stored = self._load_for_update(db, booking.id)
                stored.deleted_at = datetime.now()
                stored.intervals.clear()

        logger.info(f"Booking {stored.code} cancelled")
        self.events.emit(BookingCancelled(stored))
        return stored

    def get_booking(self, booking_id: int, include_deleted: bool = False) -> Booking:
        with self.session_factory() as db:
            stmt = select(Booking).options(selectinload(Booking.intervals)).where(Booking.id == booking_id)
            if not include_deleted:
                stmt = stmt.where(Booking.deleted_at.is_(None))
            record = db.scalar(stmt)
            if record is None:
                raise BookingNotFoundError()
            return record

    def _execute_in_transaction(
        self,
        write: Callable[[Session], Booking],
        on_failure: Callable[[UnbookableReason, Exception], None],
    ) -> Booking:
        with self.session_factory() as db:
            try:
                db.begin()
                result = write(db)
                db.commit()
                return result
            except OverlapError as exc:
                on_failure(UnbookableReason.PERIOD_OVERLAP, exc)
                db.rollback()
                raise
            except Exception as exc:
                logger.exception(f"Booking transaction failed: {exc}")
                on_failure(UnbookableReason.EXCEPTION, exc)
                db.rollback()
                raise

    def _load_for_update(self, db: Session, booking_id: int) -> Booking:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.intervals))
            .where(Booking.id == booking_id, Booking.deleted_at.is_(None))
            .with_for_update()
        )
        stored = db.scalar(stmt)
        if stored is None:
            raise BookingNotFoundError()
        return stored

    def _generate_code(self, prefix: Optional[str], suffix: Optional[str]) -> str:
        return self.code_generator(
            prefix=prefix if prefix is not None else self.code_prefix,
            suffix=suffix if suffix is not None else self.code_suffix,
        )

    def _add_intervals(
        self,
        db: Session,
        booking: Booking,
        resource: Resource,
        included: list[Period],
        excluded: list[Period],
    ) -> None:
        for period, is_excluded in [(p, False) for p in included] + [(p, True) for p in excluded]:
            booking.intervals.append(
                ReservedInterval(
                    resource_id=resource.id,
                    starts_at=period.start,
                    ends_at=period.end,
                    is_excluded=is_excluded,
                )
            )
        db.flush()
