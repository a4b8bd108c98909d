"""SQLAlchemy models for resources, plannings and bookings."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

WEEKDAY_COLUMNS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Base(DeclarativeBase):
    pass


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_bookable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    resources: Mapped[list["Resource"]] = relationship(back_populates="group")

    def __repr__(self) -> str:
        return f"Group(id={self.id!r}, name={self.name!r})"


class Resource(Base):
    __tablename__ = "resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    group_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("groups.id", ondelete="SET NULL"), nullable=True, index=True)
    parent_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("resources.id", ondelete="SET NULL"), nullable=True, index=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_concurrent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_bookable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    group: Mapped[Group | None] = relationship(back_populates="resources")
    parent: Mapped["Resource | None"] = relationship(remote_side="Resource.id", back_populates="children")
    children: Mapped[list["Resource"]] = relationship(back_populates="parent")

    def __repr__(self) -> str:
        return f"Resource(id={self.id!r}, name={self.name!r})"


class ResourceRelation(Base):
    """Directed edge: the parent resource (or group) requires the related one."""

    __tablename__ = "resource_relations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_resource_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=True, index=True)
    parent_group_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=True, index=True)
    resource_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=True, index=True)
    group_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=True, index=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Planning(Base):
    __tablename__ = "plannings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=True, index=True)
    group_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=True, index=True)
    monday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    tuesday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    wednesday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    thursday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    friday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    saturday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sunday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    starts_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    ends_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    matching_strategy: Mapped[str] = mapped_column(String(8), nullable=False, default="all")

    def weekday_enabled(self, weekday_name: str) -> bool:
        return bool(getattr(self, weekday_name))

    def contains(self, day: date) -> bool:
        if self.starts_on is not None and day < self.starts_on:
            return False
        if self.ends_on is not None and day > self.ends_on:
            return False
        return True


class Booking(Base):
    __tablename__ = "bookings"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    booker_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    booker_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    intervals: Mapped[list["ReservedInterval"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="ReservedInterval.starts_at",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ReservedInterval(Base):
    __tablename__ = "reserved_intervals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_id: Mapped[int] = mapped_column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    is_excluded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)

    booking: Mapped[Booking] = relationship(back_populates="intervals")
    resource: Mapped[Resource] = relationship()
