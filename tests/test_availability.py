from datetime import timedelta

import pytest

from reservations.availability import check_availability, find_available_resources, is_available, resolve_relations
from reservations.exceptions import (
    NoFreeSeatsError,
    OutOfPlanningError,
    RelationsHaveNoFreeSeatsError,
    RelationsOutOfPlanningError,
    UnbookableError,
)
from reservations.periods import Period
from utils import MONDAY, at, day_period

WEDNESDAY = MONDAY + timedelta(days=2)


def test_available_resource_passes_both_checks(seed, db_session):
    room = seed.resource(capacity=2)
    seed.planning(room, "all")

    check_availability(db_session, day_period(MONDAY), room)
    assert is_available(db_session, day_period(MONDAY), room)


def test_planning_is_checked_before_seats(seed, db_session):
    room = seed.resource(capacity=0)
    seed.planning(room, "all", monday=False)

    with pytest.raises(OutOfPlanningError):
        check_availability(db_session, day_period(MONDAY), room)
    with pytest.raises(UnbookableError):
        check_availability(db_session, day_period(WEDNESDAY), room)
    assert not is_available(db_session, day_period(MONDAY), room)


def test_full_resource_is_unavailable(seed, db_session):
    room = seed.resource(capacity=1)
    seed.planning(room, "all")
    seed.booking(room, day_period(MONDAY, 8, 9))

    with pytest.raises(NoFreeSeatsError):
        check_availability(db_session, day_period(MONDAY, 15, 16), room)


def test_relations_are_checked(seed, db_session):
    room = seed.resource(capacity=4)
    seed.planning(room, "all")
    projector = seed.resource(name="Projector", capacity=1)
    seed.planning(projector, "all", wednesday=False)
    seed.booking(projector, day_period(MONDAY))

    with pytest.raises(RelationsOutOfPlanningError):
        check_availability(db_session, day_period(WEDNESDAY), room, relations=[projector])
    with pytest.raises(RelationsHaveNoFreeSeatsError):
        check_availability(db_session, day_period(MONDAY), room, relations=[projector])


def test_resolve_relations_follows_resource_and_group_edges(seed, db_session):
    floor = seed.group()
    room = seed.resource(group=floor)
    projector = seed.resource(name="Projector")
    catering = seed.group(name="Catering")
    whiteboard = seed.resource(name="Whiteboard")
    seed.relation(room, projector)
    seed.relation(floor, catering)
    seed.relation(room, whiteboard, is_required=False)

    required = resolve_relations(db_session, room)
    everything = resolve_relations(db_session, room, required_only=False)

    assert [(type(item).__name__, item.id) for item in required] == [("Resource", projector.id), ("Group", catering.id)]
    assert {item.id for item in everything if type(item).__name__ == "Resource"} == {projector.id, whiteboard.id}


def test_find_available_resources(seed, db_session):
    floor = seed.group()
    free_room = seed.resource(name="Free", group=floor)
    busy_room = seed.resource(name="Busy", group=floor)
    closed_room = seed.resource(name="Closed", group=floor)
    disabled_room = seed.resource(name="Disabled", group=floor, is_bookable=False)
    unlimited_room = seed.resource(name="Unlimited", max_concurrent=None)
    for room in (free_room, busy_room, disabled_room, unlimited_room):
        seed.planning(room, "all")
    seed.planning(closed_room, "all", monday=False)
    seed.booking(busy_room, day_period(MONDAY))
    seed.booking(unlimited_room, day_period(MONDAY))

    period = Period(at(MONDAY, 10), at(MONDAY, 11))

    assert [room.name for room in find_available_resources(db_session, period, group=floor)] == ["Free"]
    assert [room.name for room in find_available_resources(db_session, period)] == ["Free", "Unlimited"]
    # Back-to-back slots are free under strict overlap.
    after = Period(at(MONDAY, 17), at(MONDAY, 18))
    assert "Busy" in [room.name for room in find_available_resources(db_session, after)]
