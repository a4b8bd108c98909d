"""Booking lifecycle notifications.

Listeners are observers only: they receive events for audit and
observability, and an exception raised by a listener is logged without
changing the booking outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from reservations.models import Booking, Resource
from reservations.periods import Period

logger = logging.getLogger(__name__)


class UnbookableReason(str, Enum):
    PERIOD_OVERLAP = "period_overlap"
    EXCEPTION = "exception"


@dataclass
class BookingInProgress:
    resource: Resource
    periods: list[Period]


@dataclass
class BookingCompleted:
    booking: Booking
    periods: list[Period]


@dataclass
class BookingChanging:
    booking: Booking
    resource: Resource
    periods: list[Period]


@dataclass
class BookingChanged:
    booking: Booking
    periods: list[Period]


@dataclass
class BookingFailed:
    reason: UnbookableReason
    resource: Resource
    periods: list[Period]
    message: Optional[str] = None
    stack_trace: Optional[str] = None


@dataclass
class BookingChangeFailed:
    booking: Booking
    reason: UnbookableReason
    resource: Resource
    periods: list[Period]
    message: Optional[str] = None
    stack_trace: Optional[str] = None


@dataclass
class BookingCancelled:
    booking: Booking


Listener = Callable[[object], None]


@dataclass
class EventDispatcher:
    _listeners: list[tuple[Optional[type], Listener]] = field(default_factory=list)

    def subscribe(self, listener: Listener, event_type: Optional[type] = None) -> Listener:
        self._listeners.append((event_type, listener))
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners = [(kind, fn) for kind, fn in self._listeners if fn is not listener]

    def emit(self, event: object) -> None:
        logger.debug(f"Emitting {type(event).__name__}")
        for event_type, listener in list(self._listeners):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener {listener!r} failed on {type(event).__name__}")
