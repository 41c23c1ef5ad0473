"""Tests for the claim walk state machine."""

from datetime import timedelta

import pytest
from helpers import STEP, T0, fast_config, fix_at, square_walk

from landclaim.engine.path_tracker import FixDisposition, PathTracker, TrackerState
from landclaim.engine.validator import RejectionReason, TerritoryValidator
from landclaim.errors import InvariantViolation
from landclaim.models import RawPoint
from landclaim.stores import InMemoryTerritoryStore


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def create_tracker(**overrides):
    """Tracker in TRACKING with a fast test config."""
    clock = FakeClock()
    tracker = PathTracker(fast_config(**overrides), clock=clock)
    tracker.start("claim-1")
    return tracker, clock


def walk(tracker, fixes):
    return [tracker.ingest(f) for f in fixes]


class TestLifecycle:
    """Tests for state transitions."""

    def test_starts_idle(self):
        """Test the initial state."""
        tracker = PathTracker(fast_config())
        assert tracker.tracking_state == TrackerState.IDLE
        assert tracker.path_point_count == 0
        assert tracker.time_since_last_fix() is None

    def test_start_resets_path(self):
        """Test that start() gives an empty path at version 0."""
        tracker = PathTracker(fast_config())
        path = tracker.start()
        assert tracker.tracking_state == TrackerState.TRACKING
        assert path.version == 0
        assert path.point_count == 0
        assert path.claim_attempt_id

    def test_square_scenario_closes(self):
        """Test walking the (0,0) square: closed, 4 points, positive area."""
        tracker, _ = create_tracker()
        results = walk(tracker, square_walk())

        assert [r.disposition for r in results] == [FixDisposition.ACCEPTED] * 4 + [
            FixDisposition.CLOSED_LOOP
        ]
        assert tracker.tracking_state == TrackerState.CLOSED
        assert tracker.is_closed
        assert tracker.path_point_count == 4
        assert tracker.live_area_estimate > 0
        assert tracker.snapshot.points[0] == RawPoint(0, 0)

    def test_version_bumps_on_append_and_close(self):
        """Test that each accepted fix and the closure bump the version."""
        tracker, _ = create_tracker()
        versions = [r.version for r in walk(tracker, square_walk())]
        assert versions == [1, 2, 3, 4, 5]
        assert tracker.version == 5

    def test_ingest_after_close_is_ignored(self):
        """Test that a closed path does not accept more fixes."""
        tracker, _ = create_tracker()
        walk(tracker, square_walk())
        snapshot = tracker.snapshot

        result = tracker.ingest(fix_at(0.0004, 0.0004, 600))

        assert result.disposition == FixDisposition.IGNORED
        assert tracker.snapshot is snapshot

    def test_ingest_after_close_raises_in_strict_mode(self):
        """Test that invariant violations fail loudly in development."""
        tracker, _ = create_tracker(strict=True)
        walk(tracker, square_walk())
        with pytest.raises(InvariantViolation, match="closed"):
            tracker.ingest(fix_at(0.0004, 0.0004, 600))

    def test_ingest_while_idle_is_ignored(self):
        """Test that fixes before start() are dropped."""
        tracker = PathTracker(fast_config())
        assert tracker.ingest(fix_at(0, 0, 0)).disposition == FixDisposition.IGNORED
        assert tracker.path_point_count == 0

    def test_start_while_tracking_is_a_violation(self):
        """Test that start() cannot silently drop a walk in progress."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        tracker.start()
        assert tracker.path_point_count == 1
        assert tracker.claim_attempt_id == "claim-1"

        strict, _ = create_tracker(strict=True)
        with pytest.raises(InvariantViolation):
            strict.start()

    def test_discard_from_any_state(self):
        """Test that discard() returns to IDLE and clears the path."""
        tracker, _ = create_tracker()
        walk(tracker, square_walk())
        version = tracker.version

        path = tracker.discard()

        assert tracker.tracking_state == TrackerState.IDLE
        assert path.point_count == 0
        assert path.version == version + 1
        assert not tracker.is_closed


class TestScreening:
    """Tests for fix filtering."""

    def test_inaccurate_fix_rejected(self):
        """Test that a fix above the accuracy ceiling is dropped."""
        tracker, _ = create_tracker()
        result = tracker.ingest(fix_at(0, 0, 0, accuracy=80))
        assert result.disposition == FixDisposition.REJECTED_INACCURATE
        assert tracker.path_point_count == 0
        assert tracker.version == 0

    def test_stale_fix_rejected(self):
        """Test that a fix not newer than the last accepted one is dropped."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 10))
        result = tracker.ingest(fix_at(0, STEP, 10))
        assert result.disposition == FixDisposition.REJECTED_STALE
        assert tracker.path_point_count == 1

    def test_jitter_rejected(self):
        """Test that a fix within the minimum spacing is dropped."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        result = tracker.ingest(fix_at(0.00004, 0, 10))
        assert result.disposition == FixDisposition.REJECTED_JITTER
        assert tracker.path_point_count == 1

    def test_speed_reject_raises_warning_and_tracking_continues(self):
        """Test that a fix implying more than 12 m/s is dropped with a warning."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))

        result = tracker.ingest(fix_at(STEP, 0, 5))  # 100 m in 5 s

        assert result.disposition == FixDisposition.REJECTED_SPEED
        assert tracker.path_point_count == 1
        assert tracker.speed_warning_active
        assert "km/h" in tracker.speed_warning
        assert tracker.consecutive_over_speed == 1
        assert tracker.tracking_state == TrackerState.TRACKING

        result = tracker.ingest(fix_at(STEP, 0, 30))  # 100 m in 30 s
        assert result.disposition == FixDisposition.ACCEPTED
        assert not tracker.speed_warning_active
        assert tracker.consecutive_over_speed == 0

    def test_reported_speed_rejected(self):
        """Test that the device-reported speed is checked too."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        result = tracker.ingest(fix_at(0, STEP, 60, speed=15.0))
        assert result.disposition == FixDisposition.REJECTED_SPEED
        assert tracker.speed_warning_active

    def test_speed_limit_is_configurable(self):
        """Test a lower speed limit."""
        tracker, _ = create_tracker(max_speed_mps=2)
        tracker.ingest(fix_at(0, 0, 0))
        result = tracker.ingest(fix_at(STEP, 0, 30))  # 3.3 m/s
        assert result.disposition == FixDisposition.REJECTED_SPEED

    def test_consecutive_over_speed_counts(self):
        """Test the over-speed counter."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        tracker.ingest(fix_at(STEP, 0, 1))
        tracker.ingest(fix_at(2 * STEP, 0, 2))
        assert tracker.consecutive_over_speed == 2

    def test_rejections_are_recorded(self):
        """Test last_rejection."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0, accuracy=99))
        assert tracker.last_rejection == "rejectedInaccurate"


class TestClosure:
    """Tests for edge-triggered closure detection."""

    def test_loitering_before_minimum_does_not_close(self):
        """Test that points near the start do not close a short path."""
        tracker, _ = create_tracker()
        loiter = [
            fix_at(0, 0, 0),
            fix_at(0.00015, 0, 10),
            fix_at(0.00015, 0.00015, 20),
            fix_at(0, 0.00015, 30),
        ]
        results = walk(tracker, loiter)

        assert all(r.disposition == FixDisposition.ACCEPTED for r in results)
        assert tracker.tracking_state == TrackerState.TRACKING
        assert tracker.path_point_count == 4

    def test_first_qualifying_fix_closes(self):
        """Test that the first fix after the minimum count near the start closes."""
        tracker, _ = create_tracker()
        fixes = square_walk()
        walk(tracker, fixes[:3])
        assert tracker.tracking_state == TrackerState.TRACKING

        near_start_too_early = tracker.ingest(fix_at(0.0001, 0.00005, 75))
        assert near_start_too_early.disposition == FixDisposition.ACCEPTED
        assert tracker.path_point_count == 4

        closing = tracker.ingest(fix_at(0.00002, 0.00001, 120))
        assert closing.disposition == FixDisposition.CLOSED_LOOP
        assert tracker.path_point_count == 4

    def test_far_from_start_does_not_close(self):
        """Test that a fix outside the closure radius is appended."""
        tracker, _ = create_tracker()
        walk(tracker, square_walk()[:4])
        result = tracker.ingest(fix_at(0.0004, 0, 150))  # ~44 m from start
        assert result.disposition == FixDisposition.ACCEPTED
        assert tracker.tracking_state == TrackerState.TRACKING

    def test_degenerate_path_does_not_close(self):
        """Test that an out-and-back line never closes."""
        tracker, _ = create_tracker()
        line = [fix_at(0, 0.0002 * i, 10 * i) for i in range(4)]
        walk(tracker, line)

        result = tracker.ingest(fix_at(0, 0.00001, 60))

        assert result.disposition == FixDisposition.ACCEPTED
        assert tracker.tracking_state == TrackerState.TRACKING
        assert tracker.path_point_count == 5

    def test_closure_radius_is_configurable(self):
        """Test a tighter closure radius."""
        tracker, _ = create_tracker(closure_radius_m=5)
        walk(tracker, square_walk())  # closing fix is ~7.9 m from the start
        assert tracker.tracking_state == TrackerState.TRACKING


class TestObservables:
    """Tests for live metrics."""

    def test_distance_and_duration(self):
        """Test total distance and tracking duration."""
        tracker, clock = create_tracker()
        for f in square_walk()[:3]:
            clock.advance(30)
            tracker.ingest(f)
        assert tracker.total_distance_m == pytest.approx(200.16, rel=0.001)
        assert tracker.tracking_duration() == pytest.approx(90)

    def test_time_since_last_fix(self):
        """Test the liveness signal; silence never discards the session."""
        tracker, clock = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        clock.advance(300)
        assert tracker.time_since_last_fix() == pytest.approx(300)
        assert tracker.tracking_state == TrackerState.TRACKING

    def test_silence_before_first_fix_counts_from_start(self):
        """Test that a walk with no usable fix yet still reports silence."""
        tracker, clock = create_tracker()
        clock.advance(45)
        tracker.ingest(fix_at(0, 0, 0, accuracy=500))

        assert tracker.path_point_count == 0
        assert tracker.time_since_last_fix() == pytest.approx(45)

        tracker.discard()
        assert tracker.time_since_last_fix() is None

    def test_duration_freezes_on_close(self):
        """Test that duration stops counting once the loop closes."""
        tracker, clock = create_tracker()
        for f in square_walk():
            clock.advance(30)
            tracker.ingest(f)
        closed_duration = tracker.tracking_duration()
        clock.advance(600)
        assert tracker.tracking_duration() == closed_duration

    def test_status_snapshot(self):
        """Test the combined status object."""
        tracker, _ = create_tracker()
        walk(tracker, square_walk()[:2])
        status = tracker.status()
        assert status.tracking_state == TrackerState.TRACKING
        assert status.path_point_count == 2
        assert status.live_area_estimate == pytest.approx(0, abs=1e-6)
        assert not status.speed_warning_active

    def test_snapshots_are_immutable_and_replaced(self):
        """Test that a held snapshot does not change under later appends."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        held = tracker.snapshot
        tracker.ingest(fix_at(0, STEP, 30))
        assert held.point_count == 1
        assert tracker.snapshot.point_count == 2


class TestCommit:
    """Tests for committing through the validator."""

    @pytest.mark.asyncio
    async def test_successful_commit(self):
        """Test that a valid loop becomes a territory and clears the path."""
        tracker, _ = create_tracker()
        walk(tracker, square_walk())
        store = InMemoryTerritoryStore()

        result = await tracker.commit(TerritoryValidator(store, tracker.config), "owner-a")

        assert result.accepted
        assert tracker.tracking_state == TrackerState.COMMITTED
        assert tracker.path_point_count == 0
        assert tracker.committed_territory == result.territory
        assert result.territory.claim_attempt_id == "claim-1"
        assert result.territory.started_at == T0
        assert result.territory.completed_at == T0 + timedelta(seconds=120)

    @pytest.mark.asyncio
    async def test_area_too_small_leaves_path_unchanged(self):
        """Test that a rejected loop stays CLOSED with the same snapshot."""
        tracker, _ = create_tracker(min_area_sqm=50_000)
        walk(tracker, square_walk())
        snapshot = tracker.snapshot

        result = await tracker.commit(
            TerritoryValidator(InMemoryTerritoryStore(), tracker.config), "owner-a"
        )

        assert result.reason == RejectionReason.AREA_TOO_SMALL
        assert tracker.tracking_state == TrackerState.CLOSED
        assert tracker.snapshot is snapshot
        assert tracker.last_rejection == "areaTooSmall"

    @pytest.mark.asyncio
    async def test_commit_requires_closed(self):
        """Test that committing an open path is a no-op."""
        tracker, _ = create_tracker()
        tracker.ingest(fix_at(0, 0, 0))
        result = await tracker.commit(
            TerritoryValidator(InMemoryTerritoryStore(), tracker.config), "owner-a"
        )
        assert result is None
        assert tracker.tracking_state == TrackerState.TRACKING

    @pytest.mark.asyncio
    async def test_start_again_after_commit(self):
        """Test that a new claim can begin after a commit."""
        tracker, _ = create_tracker()
        walk(tracker, square_walk())
        await tracker.commit(TerritoryValidator(InMemoryTerritoryStore(), tracker.config), "a")

        path = tracker.start()

        assert tracker.tracking_state == TrackerState.TRACKING
        assert path.version == 0
        assert path.claim_attempt_id != "claim-1"
