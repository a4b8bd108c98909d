"""Error taxonomy for availability checks and booking writes."""

from __future__ import annotations


class BookingError(Exception):
    reason = "booking_error"
    default_message = "Booking could not be completed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class AvailabilityError(BookingError):
    """Raised by the read-only pre-checks, before any transaction opens."""

    reason = "unavailable"


class OutOfPlanningError(AvailabilityError):
    reason = "out_of_planning"
    default_message = "No planning covers the requested dates."


class RelationsOutOfPlanningError(AvailabilityError):
    reason = "relations_out_of_planning"
    default_message = "No related resource has a planning covering the requested dates."


class UnbookableError(AvailabilityError):
    reason = "unbookable"
    default_message = "The resource is not bookable."


class NoFreeSeatsError(AvailabilityError):
    reason = "no_free_seats"
    default_message = "No free seats left for the requested dates."


class RelationsHaveNoFreeSeatsError(AvailabilityError):
    reason = "relations_have_no_free_seats"
    default_message = "No related resource has free seats for the requested dates."


class OverlapError(BookingError):
    reason = "period_overlap"
    default_message = "The requested periods overlap existing reservations."


class BookingCodeError(BookingError):
    reason = "invalid_code"
    default_message = "Please keep your prefix and suffix below 26 characters."


class BookingNotFoundError(BookingError):
    reason = "booking_not_found"
    default_message = "Booking not found."
