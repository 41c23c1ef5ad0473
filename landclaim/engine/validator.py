"""Territory validation and commit.

Validation runs once, on the final closed path:
1. Enough points
2. Simple polygon (no self-crossing walk such as a figure-eight)
3. Area above the minimum
4. No overlap with existing territories beyond the configured tolerance
5. Build the immutable Territory and persist it

Steps 1-3 are pure geometry. Steps 4-5 talk to the territory store, which is
remote and fallible: transient StorageErrors are retried with exponential
backoff before the claim is reported as a storage failure.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Sequence

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import ClaimConfig
from ..errors import ClaimAttemptConflict, StorageError, ValidationRejection
from ..models.geo_point import RawPoint
from ..models.territory import Territory
from ..models.tracked_path import TrackedPath
from ..stores.territory_store import TerritoryStore
from ..utils.geo_math import bounding_box, is_simple_polygon, polygon_area_square_meters
from .overlap import Overlap, allowed_overlap_sqm, measure_overlaps

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    """Why a closed path was not turned into a territory."""

    TOO_FEW_POINTS = "tooFewPoints"
    SELF_INTERSECTING = "selfIntersecting"
    AREA_TOO_SMALL = "areaTooSmall"
    OVERLAPS_EXISTING = "overlapsExisting"
    STORAGE_FAILURE = "storageFailure"
    CLAIM_ATTEMPT_CONFLICT = "claimAttemptConflict"

    @property
    def message(self) -> str:
        return _REJECTION_MESSAGES[self]


_REJECTION_MESSAGES = {
    RejectionReason.TOO_FEW_POINTS: "Not enough points to form a territory. Walk a longer loop.",
    RejectionReason.SELF_INTERSECTING: "Your path crosses itself. Walk a loop that does not cross.",
    RejectionReason.AREA_TOO_SMALL: "The enclosed area is too small to claim.",
    RejectionReason.OVERLAPS_EXISTING: "This land overlaps an existing territory.",
    RejectionReason.STORAGE_FAILURE: "Could not save the territory. Please try again.",
    RejectionReason.CLAIM_ATTEMPT_CONFLICT: (
        "This claim was already saved with a different boundary. Start a new claim."
    ),
}


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of validating (and, on success, storing) a claim."""

    territory: Territory | None = None
    reason: RejectionReason | None = None
    message: str | None = None
    overlaps: tuple[Overlap, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.territory is not None

    @property
    def retryable(self) -> bool:
        """True when the same claim attempt may simply be committed again."""
        return self.reason is RejectionReason.STORAGE_FAILURE

    @classmethod
    def success(cls, territory: Territory) -> "ClaimResult":
        return cls(territory=territory)

    @classmethod
    def rejected(
        cls,
        reason: RejectionReason,
        message: str | None = None,
        overlaps: Sequence[Overlap] = (),
    ) -> "ClaimResult":
        return cls(reason=reason, message=message or reason.message, overlaps=tuple(overlaps))


def _is_retryable_storage_error(exception: BaseException) -> bool:
    return isinstance(exception, StorageError) and exception.retryable


def normalize_ring(points: Sequence[RawPoint]) -> tuple[RawPoint, ...]:
    """Drop consecutive duplicates and an explicit closing vertex."""
    ring: list[RawPoint] = []
    for point in points:
        if not ring or ring[-1] != point:
            ring.append(point)
    while len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    return tuple(ring)


class TerritoryValidator:
    """Decides whether a closed path becomes a territory, and stores it."""

    def __init__(
        self,
        store: TerritoryStore,
        config: ClaimConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        commit_lock: asyncio.Lock | None = None,
    ):
        """Initialize validator.

        Args:
            store: Territory store used for overlap queries and commits
            config: Thresholds (default: ClaimConfig())
            clock: Returns the current aware datetime (default: UTC now)
            id_factory: Generates territory IDs (default: uuid4 strings)
            commit_lock: Held from the overlap check until the store write
                returns. Validators sharing one lock cannot both accept
                overlapping claims (default: a lock of this validator only)
        """
        self.store = store
        self.config = config or ClaimConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._commit_lock = commit_lock or asyncio.Lock()

    # =========================================================================
    # GEOMETRY CHECKS (steps 1-3)
    # =========================================================================

    def check_geometry(self, points: Sequence[RawPoint]) -> float:
        """Run the pure geometric checks.

        Args:
            points: Closed path vertices (raw datum)

        Returns:
            Enclosed area in square meters

        Raises:
            ValidationRejection: With TOO_FEW_POINTS, SELF_INTERSECTING or
                AREA_TOO_SMALL
        """
        ring = normalize_ring(points)

        if len(ring) < self.config.min_territory_points:
            raise ValidationRejection(
                RejectionReason.TOO_FEW_POINTS,
                f"Only {len(ring)} points, at least {self.config.min_territory_points} required",
            )

        if not is_simple_polygon(ring):
            raise ValidationRejection(RejectionReason.SELF_INTERSECTING)

        area = polygon_area_square_meters(ring)
        if area < self.config.min_area_sqm:
            raise ValidationRejection(
                RejectionReason.AREA_TOO_SMALL,
                f"Area {area:.0f} m² is below the minimum of {self.config.min_area_sqm:.0f} m²",
            )

        return area

    # =========================================================================
    # FULL VALIDATION (steps 1-5)
    # =========================================================================

    async def validate(
        self,
        path: TrackedPath | Sequence[RawPoint],
        owner_id: str,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> ClaimResult:
        """Validate a closed path and persist the resulting territory.

        Safe to call again with the same TrackedPath after a storage failure
        or cancellation: a territory the same owner already stored under the
        path's claim attempt ID is returned instead of creating a second one.
        The same ID with a different boundary is a CLAIM_ATTEMPT_CONFLICT.

        Args:
            path: Closed tracker snapshot, or bare vertices for server-side
                re-validation (no claim attempt ID, so no deduplication)
            owner_id: Player claiming the land
            started_at: When the walk began
            completed_at: When the loop closed

        Returns:
            ClaimResult with the territory, or the rejection reason
        """
        if isinstance(path, TrackedPath):
            points, claim_attempt_id = path.points, path.claim_attempt_id
        else:
            points, claim_attempt_id = tuple(path), None

        try:
            area = self.check_geometry(points)
        except ValidationRejection as e:
            logger.info(f"Claim {claim_attempt_id} by {owner_id} rejected: {e.reason.value} ({e})")
            return ClaimResult.rejected(e.reason, str(e))

        ring = normalize_ring(points)
        try:
            async with self._commit_lock:
                territory = await self._store_claim(
                    ring, area, owner_id, claim_attempt_id, started_at, completed_at
                )
        except ValidationRejection as e:
            return ClaimResult.rejected(e.reason, str(e), e.overlaps)
        except ClaimAttemptConflict as e:
            logger.warning(f"Claim {claim_attempt_id} by {owner_id} rejected: {e}")
            return ClaimResult.rejected(RejectionReason.CLAIM_ATTEMPT_CONFLICT)
        except StorageError as e:
            logger.error(f"Claim {claim_attempt_id} by {owner_id} could not be stored: {e}")
            return ClaimResult.rejected(RejectionReason.STORAGE_FAILURE)

        logger.info(
            f"Territory {territory.id} claimed by {owner_id}: "
            f"{territory.area_square_meters:.0f} m², {territory.point_count} points"
        )
        return ClaimResult.success(territory)

    # =========================================================================
    # INTERNAL HELPER METHODS
    # =========================================================================

    async def _store_claim(
        self,
        ring: tuple[RawPoint, ...],
        area: float,
        owner_id: str,
        claim_attempt_id: str | None,
        started_at: datetime | None,
        completed_at: datetime | None,
    ) -> Territory:
        """Steps 4-5: overlap check and store write, under the commit lock.

        Raises:
            ValidationRejection: With OVERLAPS_EXISTING
            ClaimAttemptConflict: If the claim attempt ID already holds a
                different boundary of this owner
            StorageError: If the store failed after retries
        """
        if claim_attempt_id:
            existing = await self._call_store(
                self.store.get_by_claim_attempt, owner_id, claim_attempt_id
            )
            if existing is not None:
                if existing.boundary != ring:
                    raise ClaimAttemptConflict(
                        f"claim attempt already committed as {existing.id} "
                        "with a different boundary"
                    )
                logger.info(f"Claim {claim_attempt_id} was already committed as {existing.id}")
                return existing

        offending = await self._find_offending_overlaps(ring, area, owner_id, claim_attempt_id)
        if offending:
            logger.info(
                f"Claim {claim_attempt_id} by {owner_id} rejected: overlaps "
                + ", ".join(f"{o.territory_id} ({o.area_square_meters:.1f} m²)" for o in offending)
            )
            raise ValidationRejection(RejectionReason.OVERLAPS_EXISTING, overlaps=offending)

        territory = self._build_territory(
            ring, area, owner_id, claim_attempt_id, started_at, completed_at
        )
        stored_id = await self._call_store(self.store.commit, territory)
        if stored_id != territory.id:
            # Another submission of this claim attempt won the race
            stored = await self._call_store(self.store.get, stored_id)
            territory = stored or replace(territory, id=stored_id)
        return territory

    async def _find_offending_overlaps(
        self,
        ring: tuple[RawPoint, ...],
        area: float,
        owner_id: str,
        claim_attempt_id: str | None,
    ) -> list[Overlap]:
        """Overlaps with existing territories that exceed the tolerance.

        The owner's own earlier commit of this claim attempt is not an overlap.
        """
        candidates = await self._call_store(self.store.query_overlapping, ring)
        candidates = [
            t
            for t in candidates
            if t.is_active
            and not (
                claim_attempt_id is not None
                and t.owner_id == owner_id
                and t.claim_attempt_id == claim_attempt_id
            )
        ]
        if not candidates:
            return []

        allowed = allowed_overlap_sqm(
            area, self.config.overlap_tolerance_sqm, self.config.overlap_tolerance_ratio
        )
        return [o for o in measure_overlaps(ring, candidates) if o.area_square_meters > allowed]

    def _build_territory(
        self,
        ring: tuple[RawPoint, ...],
        area: float,
        owner_id: str,
        claim_attempt_id: str | None,
        started_at: datetime | None,
        completed_at: datetime | None,
    ) -> Territory:
        return Territory(
            id=self._id_factory(),
            owner_id=owner_id,
            boundary=ring,
            area_square_meters=area,
            bounding_box=bounding_box(ring),
            created_at=self._clock(),
            claim_attempt_id=claim_attempt_id,
            started_at=started_at,
            completed_at=completed_at,
        )

    async def _call_store(self, method, *args):
        """Call a store coroutine, retrying transient StorageErrors.

        Raises:
            StorageError: If the error is not retryable or retries are exhausted
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.storage_retry_attempts),
            wait=wait_exponential(
                multiplier=self.config.storage_retry_wait_min_s,
                min=self.config.storage_retry_wait_min_s,
                max=self.config.storage_retry_wait_max_s,
            ),
            retry=retry_if_exception(_is_retryable_storage_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await method(*args)
