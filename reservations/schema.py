"""Pydantic schemas for booking payloads and results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reservations.periods import Period


class RelationKind(str, Enum):
    RESOURCE = "resource"
    GROUP = "group"


class PeriodIn(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        # Stored columns are naive UTC.
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    @model_validator(mode="after")
    def validate_order(self):
        if self.end < self.start:
            raise ValueError("end must not be earlier than start.")
        return self

    @classmethod
    def from_period(cls, period: Period) -> "PeriodIn":
        return cls(start=period.start, end=period.end)

    def to_period(self) -> Period:
        return Period(self.start, self.end)


class RelationIn(BaseModel):
    kind: RelationKind
    id: int


class BookingRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    resource_id: int
    periods: list[PeriodIn] = Field(min_length=1)
    excluded: list[PeriodIn] = Field(default_factory=list)
    booking_id: Optional[int] = None
    booker_type: Optional[str] = None
    booker_id: Optional[str] = None
    code: Optional[str] = Field(default=None, min_length=1, max_length=64)
    code_prefix: Optional[str] = None
    code_suffix: Optional[str] = None
    label: Optional[str] = Field(default=None, max_length=255)
    note: Optional[str] = None
    meta: Optional[dict[str, Any]] = None
    relations: Optional[list[RelationIn]] = None
    ignore_unbookable: bool = False
    skip_availability_check: bool = False

    @model_validator(mode="after")
    def validate_booker(self):
        if (self.booker_type is None) != (self.booker_id is None):
            raise ValueError("booker_type and booker_id must be provided together.")
        return self


class CancelBookingRequest(BaseModel):
    booking_id: int


class BookingResult(BaseModel):
    success: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    booking_id: Optional[int] = None
    code: Optional[str] = None
    periods: list[PeriodIn] = Field(default_factory=list)

    @field_validator("reason")
    @classmethod
    def normalize_reason(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None
