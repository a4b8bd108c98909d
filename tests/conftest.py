"""
Shared fixtures for the reservation core test suite.

Every test gets its own file-backed SQLite database under ``tmp_path`` so the
write-lock behaviour (BEGIN IMMEDIATE) matches what concurrent workers see.
"""

from __future__ import annotations

import threading

import pytest

from db.session import build_engine, build_session_factory, init_db
from reservations.events import EventDispatcher
from reservations.models import Booking, Group, Planning, Resource, ResourceRelation
from utils import make_booking, make_planning, make_relation


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'reservations.db'}", lock_timeout_seconds=30)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    """
    A plain session for read-only checker tests.

    Do not mix with coordinator calls in the same test: an open transaction
    holds the SQLite write lock.
    """
    session = session_factory()
    yield session
    session.close()


class RecordingDispatcher(EventDispatcher):
    def __init__(self):
        super().__init__()
        self.received: list[object] = []
        self._lock = threading.Lock()
        self.subscribe(self._record)

    def _record(self, event):
        with self._lock:
            self.received.append(event)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.received if isinstance(event, event_type)]

    def names(self) -> list[str]:
        return [type(event).__name__ for event in self.received]


@pytest.fixture
def events():
    return RecordingDispatcher()


class Seeder:
    """Writes fixture rows in short committed transactions and returns detached rows."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _save(self, *rows):
        with self.session_factory() as db:
            with db.begin():
                db.add_all(rows)
        return rows[0] if len(rows) == 1 else rows

    def group(self, name: str = "Floor 1", is_bookable: bool = True) -> Group:
        return self._save(Group(name=name, is_bookable=is_bookable))

    def resource(
        self,
        name: str = "Room A",
        capacity: int = 1,
        max_concurrent: int | None = 1,
        is_bookable: bool = True,
        group: Group | None = None,
    ) -> Resource:
        return self._save(
            Resource(
                name=name,
                capacity=capacity,
                max_concurrent=max_concurrent,
                is_bookable=is_bookable,
                group_id=group.id if group is not None else None,
            )
        )

    def planning(self, owner, strategy: str = "all", starts_on=None, ends_on=None, **weekdays) -> Planning:
        return self._save(make_planning(owner, strategy, starts_on, ends_on, **weekdays))

    def relation(self, parent, related, is_required: bool = True) -> ResourceRelation:
        return self._save(make_relation(parent, related, is_required))

    def booking(self, resource: Resource, periods, excluded=None, deleted: bool = False) -> Booking:
        return self._save(make_booking(resource, periods, excluded, deleted))


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)

