"""One player's claim session.

ClaimSession is the single owner of a PathTracker. Fixes arrive from a location
source at irregular intervals while the player may tap "discard" or "claim" at
any moment; every mutating call goes through one asyncio.Lock so mutations run
one at a time, in arrival order. Readers (map overlay, HTTP state endpoint) use
the tracker's immutable snapshot and never wait on the lock.
"""

import asyncio
import logging
import math
from typing import AsyncIterable, Iterable

from ..config import ClaimConfig
from ..models.fix import Fix
from ..models.territory import Territory
from ..models.tracked_path import TrackedPath
from ..stores.territory_store import TerritoryStore
from ..utils.geo_math import METERS_PER_DEGREE, bounding_box
from .path_tracker import (
    FixDisposition,
    IngestResult,
    PathTracker,
    TrackerState,
    TrackerStatus,
)
from .proximity import CollisionResult, assess_path
from .validator import ClaimResult, TerritoryValidator

logger = logging.getLogger(__name__)


class ClaimSession:
    """Serialized access to one tracker and its validator."""

    def __init__(
        self,
        owner_id: str,
        store: TerritoryStore,
        config: ClaimConfig | None = None,
        tracker: PathTracker | None = None,
        validator: TerritoryValidator | None = None,
    ):
        """Initialize session.

        Args:
            owner_id: Player walking the claim
            store: Territory store for overlap queries and commits
            config: Thresholds shared by tracker and validator (default: ClaimConfig())
            tracker: Pre-built tracker (default: new PathTracker)
            validator: Pre-built validator (default: new TerritoryValidator on store)
        """
        if not owner_id:
            raise ValueError("owner_id must not be empty")
        self.owner_id = owner_id
        self.store = store
        self.config = config or ClaimConfig()
        self.tracker = tracker or PathTracker(self.config)
        self.validator = validator or TerritoryValidator(store, self.config)
        self._lock = asyncio.Lock()

    # =========================================================================
    # READ-ONLY VIEW
    # =========================================================================

    @property
    def snapshot(self) -> TrackedPath:
        return self.tracker.snapshot

    @property
    def version(self) -> int:
        return self.tracker.version

    @property
    def claim_attempt_id(self) -> str | None:
        return self.tracker.claim_attempt_id

    @property
    def tracking_state(self) -> TrackerState:
        return self.tracker.tracking_state

    @property
    def committed_territory(self) -> Territory | None:
        return self.tracker.committed_territory

    def status(self) -> TrackerStatus:
        return self.tracker.status()

    # =========================================================================
    # MUTATIONS (serialized)
    # =========================================================================

    async def start(self, claim_attempt_id: str | None = None) -> TrackedPath:
        async with self._lock:
            return self.tracker.start(claim_attempt_id)

    async def ingest(self, fix: Fix) -> IngestResult:
        async with self._lock:
            return self.tracker.ingest(fix)

    async def ingest_many(self, fixes: Iterable[Fix]) -> list[IngestResult]:
        """Ingest a batch of fixes without letting other mutations interleave.

        Fixes after the one that closes the loop are reported as IGNORED
        without reaching the tracker.
        """
        async with self._lock:
            results = []
            for fix in fixes:
                if results and self.tracker.tracking_state != TrackerState.TRACKING:
                    results.append(
                        IngestResult(
                            FixDisposition.IGNORED,
                            self.tracker.version,
                            f"Claim is {self.tracker.tracking_state.value}",
                        )
                    )
                    continue
                results.append(self.tracker.ingest(fix))
            return results

    async def consume(self, fixes: AsyncIterable[Fix]) -> list[IngestResult]:
        """Drain a location source until it ends or the loop closes.

        Each fix takes the lock separately, so a discard() or commit() from
        elsewhere is processed between fixes in arrival order.

        Returns:
            One IngestResult per fix consumed
        """
        results = []
        async for fix in fixes:
            results.append(await self.ingest(fix))
            if self.tracker.tracking_state != TrackerState.TRACKING:
                logger.info(
                    f"Owner {self.owner_id}: stopped consuming fixes, tracker is "
                    f"{self.tracker.tracking_state.value}"
                )
                break
        return results

    async def discard(self) -> TrackedPath:
        async with self._lock:
            return self.tracker.discard()

    async def commit(self) -> ClaimResult | None:
        """Validate and store the closed loop.

        Cancelling the caller while this is in flight leaves the tracker
        CLOSED; calling commit() again is safe. Calling it again after it
        succeeded returns the same territory, for callers that lost the first
        response.
        """
        async with self._lock:
            committed = self.tracker.committed_territory
            if self.tracker.tracking_state == TrackerState.COMMITTED and committed is not None:
                logger.info(
                    f"Claim {self.claim_attempt_id}: already committed as {committed.id}"
                )
                return ClaimResult.success(committed)
            return await self.tracker.commit(self.validator, self.owner_id)

    # =========================================================================
    # PROXIMITY
    # =========================================================================

    async def collision_status(self) -> CollisionResult:
        """Collision and proximity warnings for the current path.

        Fetches territories within the caution distance of the path from the
        store. A StorageError propagates to the caller.
        """
        points = self.tracker.snapshot.points
        if not points:
            return CollisionResult.safe()

        box = bounding_box(points)
        margin_lat = self.config.caution_distance_m / METERS_PER_DEGREE
        mid_lat = math.radians((box.min_lat + box.max_lat) / 2)
        margin_lon = margin_lat / max(math.cos(mid_lat), 0.01)
        nearby = await self.store.query_within_bounds(box.expanded(margin_lat, margin_lon))

        return assess_path(points, nearby, self.owner_id, self.config)
