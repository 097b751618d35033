import pytest

from territory_engine.exploration import ExplorationTracker

from conftest import UNIT_M, make_sample


@pytest.fixture
def failures():
    return []


@pytest.fixture
def tracker(scheduler, failures):
    tracker = ExplorationTracker(scheduler, on_failure=failures.append)
    tracker.start()
    return tracker


def test_accumulates_walked_distance(tracker):
    for i in range(4):
        assert tracker.offer(make_sample(i, 0, seconds=5 * i))
    assert tracker.total_distance_m == pytest.approx(3 * UNIT_M, rel=1e-3)


def test_rejects_inaccurate_and_too_frequent_samples(tracker):
    tracker.offer(make_sample(0, 0, seconds=0))
    assert not tracker.offer(make_sample(1, 0, seconds=5, accuracy=60.0))
    assert not tracker.offer(make_sample(1, 0, seconds=5, accuracy=-1.0))
    assert not tracker.offer(make_sample(1, 0, seconds=0.5))
    assert tracker.total_distance_m == 0.0
    summary = tracker.stop()
    assert summary.rejected_samples == 3


def test_large_jump_is_treated_as_glitch(tracker):
    tracker.offer(make_sample(0, 0, seconds=0))
    # 150 m in 30 s is a plausible pace but too large a single step.
    tracker.offer(make_sample(12.5, 0, seconds=30))
    assert tracker.total_distance_m == 0.0
    tracker.offer(make_sample(13.5, 0, seconds=35))
    assert tracker.total_distance_m == pytest.approx(UNIT_M, rel=1e-3)
    assert tracker.stop().glitch_samples == 1


def test_over_speed_suspends_distance_and_recovers(tracker, scheduler, failures):
    tracker.offer(make_sample(0, 0, seconds=0))
    tracker.offer(make_sample(1, 0, seconds=5, speed_mps=10.0))
    assert tracker.is_over_speed
    assert tracker.countdown_remaining_s == pytest.approx(10.0)
    assert tracker.total_distance_m == 0.0

    scheduler.advance(5.0)
    assert tracker.countdown_remaining_s == pytest.approx(5.0)
    tracker.offer(make_sample(2, 0, seconds=10, speed_mps=2.0))
    assert not tracker.is_over_speed
    assert tracker.countdown_remaining_s is None
    assert tracker.total_distance_m == pytest.approx(UNIT_M, rel=1e-3)

    scheduler.advance(30.0)
    assert failures == []
    assert tracker.is_exploring


def test_sustained_over_speed_force_stops_exactly_once(tracker, scheduler, failures):
    tracker.offer(make_sample(0, 0, seconds=0))
    tracker.offer(make_sample(1, 0, seconds=5, speed_mps=10.0))
    scheduler.advance(9.0)
    assert failures == []
    scheduler.advance(1.0)
    assert len(failures) == 1
    assert failures[0].failed
    assert failures[0].reason
    assert tracker.failure is failures[0]
    assert not tracker.is_exploring

    scheduler.advance(60.0)
    assert len(failures) == 1
    assert not tracker.offer(make_sample(2, 0, seconds=20))
    assert tracker.stop().distance_m == 0.0


def test_stop_reports_duration_and_is_idempotent(tracker, scheduler):
    tracker.offer(make_sample(0, 0, seconds=0))
    tracker.offer(make_sample(1, 0, seconds=5))
    scheduler.advance(30.0)
    summary = tracker.stop()
    assert not summary.failed
    assert summary.duration_s == pytest.approx(30.0)
    assert summary.distance_m == pytest.approx(UNIT_M, rel=1e-3)
    assert summary.started_at is not None

    again = tracker.stop()
    assert again.distance_m == 0.0
    assert again.started_at is None


def test_stop_cancels_pending_countdown(tracker, scheduler, failures):
    tracker.offer(make_sample(0, 0, seconds=0, speed_mps=20.0))
    assert tracker.is_over_speed
    tracker.stop()
    scheduler.advance(20.0)
    assert failures == []
    assert scheduler.pending() == 0


def test_start_twice_is_refused(tracker):
    assert not tracker.start()


def test_attached_feed_drives_tracker_until_stop(scheduler, feed):
    tracker = ExplorationTracker(scheduler)
    tracker.start()
    tracker.attach(feed)
    feed.publish(make_sample(0, 0, seconds=0))
    feed.publish(make_sample(1, 0, seconds=5))
    assert tracker.total_distance_m == pytest.approx(UNIT_M, rel=1e-3)
    tracker.stop()
    tracker.start()
    feed.publish(make_sample(2, 0, seconds=10))
    feed.publish(make_sample(3, 0, seconds=15))
    assert tracker.total_distance_m == 0.0


def test_quick_jump_does_not_start_speed_countdown(tracker, scheduler, failures):
    tracker.offer(make_sample(0, 0, seconds=0))
    # 150 m in 2 s with no reported speed.
    tracker.offer(make_sample(12.5, 0, seconds=2))
    assert not tracker.is_over_speed
    scheduler.advance(10.0)
    assert failures == []
    assert tracker.is_exploring
    assert tracker.total_distance_m == 0.0
    assert tracker.stop().glitch_samples == 1
