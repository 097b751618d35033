import pytest

from territory_engine.claims import ClaimService
from territory_engine.errors import (
    CollisionViolationError,
    SpeedViolationError,
    TerritoryEngineError,
    TrackingAbortedError,
)
from territory_engine.models import CollisionKind, ValidationFailure, WarningLevel
from territory_engine.store import InMemoryTerritoryStore, TerritoryCatalog
from territory_engine.tracking import SessionEventKind, SessionState, TrackingSession

from conftest import SQUARE_LOOP, T0, make_sample


@pytest.fixture
def territories():
    return []


@pytest.fixture
def events():
    return []


@pytest.fixture
def session(feed, scheduler, territories, events):
    session = TrackingSession(feed, scheduler, lambda: territories)
    session.add_listener(events.append)
    return session


def walk(feed, scheduler, coords, start_s=0.0, step_s=5.0):
    """Publish one sample per sampling tick."""
    for i, (x, y) in enumerate(coords):
        feed.publish(make_sample(x, y, seconds=start_s + step_s * i))
        scheduler.advance(2.0)


def kinds(events):
    return [e.kind for e in events]


def test_square_loop_closes_and_validates(session, feed, scheduler, events):
    session.start("me", started_at=T0)
    walk(feed, scheduler, SQUARE_LOOP)

    assert session.is_closed
    assert session.validation.passed
    assert kinds(events).count(SessionEventKind.CLOSED) == 1
    assert kinds(events).count(SessionEventKind.VALIDATED) == 1
    assert session.point_count == 16

    result = session.stop()
    assert result.passed
    assert not session.manual_validation
    assert session.state is SessionState.STOPPED
    assert scheduler.pending() == 0

    draft = session.claim_draft()
    assert draft.owner_id == "me"
    assert draft.started_at == T0
    assert len(draft.path) == draft.validation.point_count == 15


def test_validated_claim_reaches_the_store(session, feed, scheduler):
    store = InMemoryTerritoryStore()
    catalog = TerritoryCatalog(store)
    session.start("me")
    walk(feed, scheduler, SQUARE_LOOP)
    session.stop()

    territory = ClaimService(store, catalog).submit(session.claim_draft())
    assert territory.owner_id == "me"
    assert [t.id for t in catalog.territories()] == [territory.id]


def test_stale_sample_is_not_offered_twice(session, feed, scheduler, events):
    session.start("me")
    feed.publish(make_sample(0, 0))
    scheduler.advance(2.0)
    scheduler.advance(2.0)
    scheduler.advance(2.0)
    assert session.point_count == 1
    assert kinds(events).count(SessionEventKind.POINT_ACCEPTED) == 1


def test_start_inside_foreign_territory_is_refused(
    session, feed, scheduler, territories, foreign_territory, events
):
    territories.append(foreign_territory)
    feed.publish(make_sample(12, 2))
    result = session.start("me")
    assert result.has_collision
    assert result.kind is CollisionKind.POINT_IN_TERRITORY
    assert session.state is SessionState.IDLE
    assert scheduler.pending() == 0
    assert kinds(events) == [SessionEventKind.START_BLOCKED]


def test_hard_speed_violation_aborts(session, feed, scheduler, events):
    session.start("me")
    feed.publish(make_sample(0, 0, seconds=0))
    scheduler.advance(2.0)
    feed.publish(make_sample(3, 0, seconds=2))
    scheduler.advance(2.0)

    assert session.state is SessionState.ABORTED
    assert isinstance(session.error, SpeedViolationError)
    assert SessionEventKind.ABORTED in kinds(events)
    assert scheduler.pending() == 0
    assert session.point_count == 1

    with pytest.raises(TrackingAbortedError):
        session.start("me")
    session.reset()
    assert session.state is SessionState.IDLE
    session.start("me")
    assert session.is_tracking


def test_soft_speed_warning_is_reported(session, feed, scheduler, events):
    session.start("me")
    walk(feed, scheduler, [(0, 0), (1, 0)], step_s=2.0)
    assert session.speed_warning is not None
    assert SessionEventKind.SPEED_WARNING in kinds(events)
    assert session.is_tracking


def test_collision_tick_warns_then_aborts(
    session, feed, scheduler, territories, foreign_territory, events
):
    territories.append(foreign_territory)
    session.start("me")
    walk(feed, scheduler, [(6, 2), (7, 2), (8, 2), (9, 2), (11, 2)])

    changes = [e.payload for e in events if e.kind is SessionEventKind.WARNING_LEVEL_CHANGED]
    assert changes == [(WarningLevel.SAFE, WarningLevel.WARNING)]
    assert session.collision.warning_level is WarningLevel.WARNING

    result = session.check_collisions_now()
    assert result.kind is CollisionKind.PATH_CROSSES_TERRITORY
    assert session.state is SessionState.ABORTED
    assert isinstance(session.error, CollisionViolationError)
    assert scheduler.pending() == 0


def test_early_stop_runs_manual_validation(session, feed, scheduler, events):
    session.start("me")
    walk(feed, scheduler, [(0, 0), (1, 0), (2, 0)])
    result = session.stop()
    assert result.failure is ValidationFailure.INSUFFICIENT_POINTS
    assert session.manual_validation
    assert session.claim_draft() is None

    assert session.stop() is result
    assert kinds(events).count(SessionEventKind.STOPPED) == 1


def test_ticks_after_stop_are_ignored(session, feed, scheduler):
    session.start("me")
    walk(feed, scheduler, [(0, 0)])
    session.stop()
    feed.publish(make_sample(1, 0, seconds=5))
    session.sample_now()
    scheduler.advance(10.0)
    assert session.point_count == 1


def test_stop_with_empty_path_skips_validation(session):
    session.start("me")
    assert session.stop() is None
    assert not session.manual_validation


def test_start_twice_is_an_error(session):
    session.start("me")
    with pytest.raises(TerritoryEngineError):
        session.start("me")


def test_removed_listener_gets_nothing(feed, scheduler):
    session = TrackingSession(feed, scheduler, lambda: [])
    seen = []
    remove = session.add_listener(seen.append)
    remove()
    session.start("me")
    assert seen == []


def test_claim_draft_carries_only_the_validated_path(session, feed, scheduler):
    session.start("me")
    walk(feed, scheduler, SQUARE_LOOP + [(1, 1), (2, 1), (2, 2), (1, 2)])
    session.stop()
    assert session.point_count == 20

    draft = session.claim_draft()
    assert len(draft.path) == draft.validation.point_count
    assert draft.path == session.path[:15]
