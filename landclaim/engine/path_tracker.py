"""Claim walk state machine.

A tracker turns a stream of raw fixes into a closed loop:

    IDLE --start()--> TRACKING --closing fix--> CLOSED --commit()--> COMMITTED
      ^                                                                  |
      +------------------------ discard() (from any state) ------------+

Each fix is screened before it touches the path:
1. Horizontal accuracy above the ceiling -> dropped as noise
2. Timestamp not after the last accepted fix -> dropped as stale
3. Implied speed above the on-foot maximum -> dropped, speed warning raised
4. Within closure radius of the first point, with enough points and a
   non-degenerate loop -> the ring closes onto its first point
5. Too close to the last accepted point -> dropped as stationary jitter
6. Otherwise appended

Closure is checked with a cheap distance test on every fix; the O(n^2)
simple-polygon check runs once, at validation time.

The tracker is not thread-safe and not re-entrant. One owner drives it (see
ClaimSession). Readers use `snapshot`, which is replaced atomically.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from ..config import ClaimConfig
from ..errors import (
    ImplausibleSpeedError,
    InaccurateFixError,
    InvariantViolation,
    SensorError,
    StaleFixError,
    StationaryJitterError,
)
from ..models.fix import Fix
from ..models.geo_point import RawPoint
from ..models.territory import Territory
from ..models.tracked_path import TrackedPath
from ..utils.geo_math import distance_meters, polygon_area_square_meters
from .validator import ClaimResult, TerritoryValidator

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    CLOSED = "closed"
    COMMITTED = "committed"


class FixDisposition(str, Enum):
    """What ingest() did with a fix."""

    ACCEPTED = "accepted"
    CLOSED_LOOP = "closedLoop"
    REJECTED_INACCURATE = "rejectedInaccurate"
    REJECTED_STALE = "rejectedStale"
    REJECTED_SPEED = "rejectedSpeed"
    REJECTED_JITTER = "rejectedJitter"
    IGNORED = "ignored"  # Tracker was not in TRACKING


_SENSOR_DISPOSITIONS = {
    InaccurateFixError: FixDisposition.REJECTED_INACCURATE,
    StaleFixError: FixDisposition.REJECTED_STALE,
    ImplausibleSpeedError: FixDisposition.REJECTED_SPEED,
    StationaryJitterError: FixDisposition.REJECTED_JITTER,
}


@dataclass(frozen=True)
class IngestResult:
    disposition: FixDisposition
    version: int  # Path version after the call
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.disposition in (FixDisposition.ACCEPTED, FixDisposition.CLOSED_LOOP)


@dataclass(frozen=True)
class TrackerStatus:
    """Everything a UI needs to draw the claim-in-progress panel."""

    tracking_state: TrackerState
    claim_attempt_id: str | None
    version: int
    path_point_count: int
    live_area_estimate: float
    is_closed: bool
    speed_warning_active: bool
    speed_warning: str | None
    time_since_last_fix: float | None
    tracking_duration: float
    total_distance_m: float
    last_rejection: str | None


class PathTracker:
    """Single-owner state machine for one player's claim walk."""

    def __init__(
        self,
        config: ClaimConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize tracker in IDLE.

        Args:
            config: Thresholds (default: ClaimConfig())
            clock: Returns the current aware datetime, used for liveness and
                duration (default: UTC now)
        """
        self.config = config or ClaimConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = TrackerState.IDLE
        self._path = TrackedPath(claim_attempt_id=None)
        self._reset_session_stats()
        self._committed_territory: Territory | None = None

    def _reset_session_stats(self) -> None:
        self._last_fix: Fix | None = None
        self._last_accepted_at: datetime | None = None
        self._tracking_started_at: datetime | None = None
        self._first_fix_at: datetime | None = None
        self._closed_at: datetime | None = None
        self._closed_at_clock: datetime | None = None
        self._total_distance_m = 0.0
        self._live_area = 0.0
        self._speed_warning: str | None = None
        self._consecutive_over_speed = 0
        self._last_rejection: str | None = None

    # =========================================================================
    # OBSERVABLE STATE
    # Read-only; safe to call at any time
    # =========================================================================

    @property
    def tracking_state(self) -> TrackerState:
        return self._state

    @property
    def snapshot(self) -> TrackedPath:
        return self._path

    @property
    def version(self) -> int:
        return self._path.version

    @property
    def claim_attempt_id(self) -> str | None:
        return self._path.claim_attempt_id

    @property
    def path_point_count(self) -> int:
        return self._path.point_count

    @property
    def live_area_estimate(self) -> float:
        """Area of the path so far, closed onto its first point, in m²."""
        return self._live_area

    @property
    def is_closed(self) -> bool:
        return self._path.closed

    @property
    def speed_warning_active(self) -> bool:
        return self._speed_warning is not None

    @property
    def speed_warning(self) -> str | None:
        return self._speed_warning

    @property
    def consecutive_over_speed(self) -> int:
        return self._consecutive_over_speed

    @property
    def total_distance_m(self) -> float:
        return self._total_distance_m

    @property
    def last_rejection(self) -> str | None:
        return self._last_rejection

    @property
    def committed_territory(self) -> Territory | None:
        return self._committed_territory

    def time_since_last_fix(self) -> float | None:
        """Seconds since the last accepted fix, or None when not walking.

        Before the first accepted fix this counts from start(), so a walk that
        never gets a usable fix still shows as silent. The tracker never
        discards a session on its own; a long silence only means the UI should
        warn about lost GPS signal.
        """
        since = self._last_accepted_at or self._tracking_started_at
        if since is None:
            return None
        return max(0.0, (self._clock() - since).total_seconds())

    def tracking_duration(self) -> float:
        """Seconds since start(), frozen once the loop closes."""
        if self._tracking_started_at is None:
            return 0.0
        end = self._closed_at_clock or self._clock()
        return max(0.0, (end - self._tracking_started_at).total_seconds())

    def status(self) -> TrackerStatus:
        return TrackerStatus(
            tracking_state=self._state,
            claim_attempt_id=self._path.claim_attempt_id,
            version=self._path.version,
            path_point_count=self._path.point_count,
            live_area_estimate=self._live_area,
            is_closed=self._path.closed,
            speed_warning_active=self.speed_warning_active,
            speed_warning=self._speed_warning,
            time_since_last_fix=self.time_since_last_fix(),
            tracking_duration=self.tracking_duration(),
            total_distance_m=self._total_distance_m,
            last_rejection=self._last_rejection,
        )

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def start(self, claim_attempt_id: str | None = None) -> TrackedPath:
        """Begin a new claim walk (IDLE or COMMITTED -> TRACKING).

        Args:
            claim_attempt_id: Client-generated ID for this claim attempt
                (default: a new uuid4)

        Returns:
            The fresh, empty snapshot (version 0)
        """
        if self._state in (TrackerState.TRACKING, TrackerState.CLOSED):
            self._violation(f"start() called while {self._state.value}; discard first")
            return self._path

        self._reset_session_stats()
        self._committed_territory = None
        self._tracking_started_at = self._clock()
        self._path = TrackedPath(claim_attempt_id=claim_attempt_id or str(uuid.uuid4()))
        self._state = TrackerState.TRACKING

        logger.info(f"Claim {self._path.claim_attempt_id}: tracking started")
        return self._path

    def ingest(self, fix: Fix) -> IngestResult:
        """Screen a fix and append it, or close the loop with it.

        Rejected fixes never change the path. Only valid while TRACKING.

        Args:
            fix: Raw device fix

        Returns:
            IngestResult describing what happened
        """
        if self._state != TrackerState.TRACKING:
            message = f"ingest() called while {self._state.value}"
            self._violation(message)
            return IngestResult(FixDisposition.IGNORED, self._path.version, message)

        try:
            step_m = self._screen(fix)
        except SensorError as e:
            return self._reject(fix, e)

        if self._closes_loop(fix.point):
            self._close(fix)
            return IngestResult(FixDisposition.CLOSED_LOOP, self._path.version)

        if self._last_fix is not None and step_m < self.config.min_point_spacing_m:
            return self._reject(
                fix,
                StationaryJitterError(
                    f"Moved {step_m:.1f} m, less than {self.config.min_point_spacing_m:.0f} m"
                ),
            )

        self._append(fix, step_m)
        return IngestResult(FixDisposition.ACCEPTED, self._path.version)

    def discard(self) -> TrackedPath:
        """Abandon the current claim from any state and return to IDLE."""
        previous = self._path
        self._path = TrackedPath(claim_attempt_id=None, version=previous.version + 1)
        self._state = TrackerState.IDLE
        self._reset_session_stats()
        self._committed_territory = None

        if previous.claim_attempt_id is not None:
            logger.info(
                f"Claim {previous.claim_attempt_id}: discarded with {previous.point_count} points"
            )
        return self._path

    async def commit(self, validator: TerritoryValidator, owner_id: str) -> ClaimResult | None:
        """Validate the closed loop and store it as a territory.

        On success the tracker becomes COMMITTED and the path is cleared. On
        rejection it stays CLOSED with the path untouched; the caller should
        discard() and start over. A STORAGE_FAILURE result (or cancellation)
        also leaves it CLOSED, and calling commit() again is safe: the claim
        attempt ID prevents a duplicate territory.

        Args:
            validator: Validator bound to the territory store
            owner_id: Player claiming the land

        Returns:
            ClaimResult, or None if the tracker was not CLOSED (non-strict mode)
        """
        if self._state != TrackerState.CLOSED:
            self._violation(f"commit() called while {self._state.value}")
            return None

        snapshot = self._path
        result = await validator.validate(
            snapshot,
            owner_id,
            started_at=self._first_fix_at,
            completed_at=self._closed_at,
        )

        if self._path is not snapshot:
            logger.warning(
                f"Claim {snapshot.claim_attempt_id}: path changed during commit, "
                "leaving tracker state as is"
            )
            return result

        if result.accepted:
            self._committed_territory = result.territory
            self._path = TrackedPath(
                claim_attempt_id=snapshot.claim_attempt_id, version=snapshot.version + 1
            )
            self._state = TrackerState.COMMITTED
            self._live_area = 0.0
            self._last_rejection = None
            logger.info(
                f"Claim {snapshot.claim_attempt_id}: committed as territory {result.territory.id}"
            )
        else:
            self._last_rejection = result.reason.value
            logger.info(f"Claim {snapshot.claim_attempt_id}: commit rejected ({result.reason.value})")

        return result

    # =========================================================================
    # INTERNAL HELPER METHODS
    # =========================================================================

    def _violation(self, message: str) -> None:
        """Raise in strict mode, otherwise log and let the caller no-op."""
        if self.config.strict:
            raise InvariantViolation(message)
        logger.error(f"Invariant violation ignored: {message}")

    def _screen(self, fix: Fix) -> float:
        """Check a fix against the last accepted one.

        Returns:
            Distance in meters from the last accepted point (0 for the first fix)

        Raises:
            SensorError: If the fix must be dropped
        """
        if fix.horizontal_accuracy_m > self.config.max_horizontal_accuracy_m:
            raise InaccurateFixError(
                f"Accuracy {fix.horizontal_accuracy_m:.0f} m exceeds "
                f"{self.config.max_horizontal_accuracy_m:.0f} m"
            )

        last = self._last_fix
        if last is None:
            return 0.0

        elapsed = (fix.timestamp - last.timestamp).total_seconds()
        if elapsed <= 0:
            raise StaleFixError(f"Fix is {-elapsed:.1f} s older than the last accepted fix")

        step_m = distance_meters(last.point, fix.point)
        speed = step_m / elapsed
        if fix.speed_mps is not None:
            speed = max(speed, fix.speed_mps)
        if speed > self.config.max_speed_mps:
            raise ImplausibleSpeedError(
                f"Speed {speed:.1f} m/s ({speed * 3.6:.0f} km/h) exceeds "
                f"{self.config.max_speed_mps:.1f} m/s",
                speed_mps=speed,
            )

        return step_m

    def _reject(self, fix: Fix, error: SensorError) -> IngestResult:
        disposition = _SENSOR_DISPOSITIONS[type(error)]
        self._last_rejection = disposition.value

        if isinstance(error, ImplausibleSpeedError):
            self._consecutive_over_speed += 1
            self._speed_warning = (
                f"Moving too fast ({error.speed_mps * 3.6:.0f} km/h). Territory must be walked."
            )
            logger.warning(
                f"Claim {self._path.claim_attempt_id}: fix dropped, {error} "
                f"({self._consecutive_over_speed} in a row)"
            )
        elif isinstance(error, StationaryJitterError):
            logger.debug(f"Claim {self._path.claim_attempt_id}: fix dropped, {error}")
        else:
            logger.info(f"Claim {self._path.claim_attempt_id}: fix dropped, {error}")

        return IngestResult(disposition, self._path.version, str(error))

    def _closes_loop(self, point: RawPoint) -> bool:
        points = self._path.points
        if len(points) < self.config.min_closure_points:
            return False

        gap_m = distance_meters(points[0], point)
        if gap_m > self.config.closure_radius_m:
            logger.debug(
                f"Claim {self._path.claim_attempt_id}: {gap_m:.1f} m from start, "
                f"need <= {self.config.closure_radius_m:.0f} m"
            )
            return False

        if self._live_area <= self.config.degenerate_area_sqm:
            logger.debug(
                f"Claim {self._path.claim_attempt_id}: back at start but the loop "
                f"encloses only {self._live_area:.1f} m²"
            )
            return False

        return True

    def _accept_bookkeeping(self, fix: Fix, step_m: float) -> None:
        self._last_fix = fix
        self._last_accepted_at = self._clock()
        self._total_distance_m += step_m
        if self._first_fix_at is None:
            self._first_fix_at = fix.timestamp
        if self._speed_warning is not None:
            logger.info(f"Claim {self._path.claim_attempt_id}: speed back to normal")
        self._speed_warning = None
        self._consecutive_over_speed = 0

    def _append(self, fix: Fix, step_m: float) -> None:
        points = self._path.points + (fix.point,)
        area = polygon_area_square_meters(points)
        next_path = TrackedPath(
            claim_attempt_id=self._path.claim_attempt_id,
            points=points,
            version=self._path.version + 1,
        )

        self._path = next_path
        self._live_area = area
        self._accept_bookkeeping(fix, step_m)
        logger.info(
            f"Claim {next_path.claim_attempt_id}: point #{next_path.point_count} "
            f"({fix.point.latitude:.6f}, {fix.point.longitude:.6f})"
        )

    def _close(self, fix: Fix) -> None:
        gap_m = distance_meters(self._path.points[0], fix.point)
        next_path = TrackedPath(
            claim_attempt_id=self._path.claim_attempt_id,
            points=self._path.points,
            version=self._path.version + 1,
            closed=True,
        )

        self._path = next_path
        self._state = TrackerState.CLOSED
        self._accept_bookkeeping(fix, distance_meters(self._path.points[-1], fix.point))
        self._closed_at = fix.timestamp
        self._closed_at_clock = self._last_accepted_at
        logger.info(
            f"Claim {next_path.claim_attempt_id}: loop closed {gap_m:.1f} m from start, "
            f"{next_path.point_count} points, {self._live_area:.0f} m²"
        )
