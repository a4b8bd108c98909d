"""Interval algebra over half-open ``[start, end)`` periods."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Union


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


@dataclass(frozen=True, order=True)
class Period:
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", _as_datetime(self.start))
        object.__setattr__(self, "end", _as_datetime(self.end))
        if self.end < self.start:
            raise ValueError(f"Period end {self.end.isoformat()} is before start {self.start.isoformat()}.")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def dates(self) -> list[date]:
        """Calendar days touched by the period, start and end day included."""
        days: list[date] = []
        cursor = self.start.date()
        last = self.end.date()
        while cursor <= last:
            days.append(cursor)
            cursor += timedelta(days=1)
        return days

    def overlaps(self, other: "Period") -> bool:
        return self.start < other.end and other.start < self.end

    def touches(self, other: "Period") -> bool:
        return self.start <= other.end and other.start <= self.end

    def subtract(self, other: "Period") -> list["Period"]:
        if not self.overlaps(other):
            return [self]
        pieces: list[Period] = []
        if self.start < other.start:
            pieces.append(Period(self.start, other.start))
        if other.end < self.end:
            pieces.append(Period(other.end, self.end))
        return pieces


PeriodsLike = Union[Period, Iterable[Period], None]


def as_periods(periods: PeriodsLike) -> list[Period]:
    if periods is None:
        return []
    if isinstance(periods, Period):
        return [periods]
    return list(periods)


def unique_dates(values: Iterable[date | datetime]) -> list[date]:
    seen: set[date] = set()
    result: list[date] = []
    for value in values:
        day = value.date() if isinstance(value, datetime) else value
        if day not in seen:
            seen.add(day)
            result.append(day)
    return result


def to_dates(periods: PeriodsLike, remove_duplicates: bool = True) -> list[date]:
    days: list[date] = []
    for period in as_periods(periods):
        days.extend(period.dates())
    if remove_duplicates:
        return unique_dates(days)
    return days


def subtract(included: PeriodsLike, excluded: PeriodsLike) -> list[Period]:
    """Cut every excluded period out of the included ones.

    Each included period is processed independently, so the result keeps one
    or more maximal continuous pieces per included period. Empty input on
    either side short-circuits.
    """
    main = as_periods(included)
    if not main:
        return []

    others = as_periods(excluded)
    if not others:
        return main

    result: list[Period] = []
    for period in main:
        pieces = [period]
        for other in others:
            pieces = [piece for chunk in pieces for piece in chunk.subtract(other)]
            if not pieces:
                break
        result.extend(pieces)
    return result


def union(periods: PeriodsLike) -> list[Period]:
    ordered = sorted(as_periods(periods))
    if not ordered:
        return []

    merged = [ordered[0]]
    for period in ordered[1:]:
        last = merged[-1]
        if period.touches(last):
            merged[-1] = Period(last.start, max(last.end, period.end))
        else:
            merged.append(period)
    return merged
