"""In-process territory store.

Used by tests, by the development server and as the base of the JSON-file
store. Every method runs without awaiting in between its reads and writes, so
each one is atomic with respect to other coroutines on the same loop.
"""

import logging
from typing import Iterable, Sequence

from ..errors import ClaimAttemptConflict, StorageError, TerritoryNotFound
from ..models.geo_point import BoundingBox, RawPoint
from ..models.territory import Territory
from ..utils.geo_math import bounding_box, point_in_polygon
from .territory_store import TerritoryStore

logger = logging.getLogger(__name__)


class InMemoryTerritoryStore(TerritoryStore):
    """Territories held in a dict keyed by territory ID."""

    def __init__(self, territories: Iterable[Territory] = ()):
        self._territories: dict[str, Territory] = {}
        self._by_claim_attempt: dict[tuple[str, str], str] = {}
        for territory in territories:
            self._insert(territory)

    def _insert(self, territory: Territory) -> None:
        self._territories[territory.id] = territory
        if territory.claim_attempt_id:
            self._by_claim_attempt[(territory.owner_id, territory.claim_attempt_id)] = territory.id

    def _active(self) -> list[Territory]:
        return [t for t in self._territories.values() if t.is_active]

    async def _persist(self) -> None:
        """Hook for subclasses that write through to durable storage."""

    @property
    def all_records(self) -> list[Territory]:
        """Every stored record, removed ones included."""
        return list(self._territories.values())

    async def commit(self, territory: Territory) -> str:
        key = (territory.owner_id, territory.claim_attempt_id)
        if territory.claim_attempt_id and key in self._by_claim_attempt:
            existing = self._territories[self._by_claim_attempt[key]]
            if existing.boundary != territory.boundary:
                raise ClaimAttemptConflict(
                    f"Claim attempt {territory.claim_attempt_id} of owner {territory.owner_id} "
                    f"was already committed with a different boundary as {existing.id}"
                )
            logger.info(
                f"Claim attempt {territory.claim_attempt_id} already committed "
                f"as territory {existing.id}, ignoring duplicate"
            )
            return existing.id

        self._insert(territory)
        try:
            await self._persist()
        except StorageError:
            # Undo so a retry of the same claim attempt is not mistaken for a duplicate
            del self._territories[territory.id]
            self._by_claim_attempt.pop(key, None)
            raise

        logger.info(
            f"Stored territory {territory.id} for owner {territory.owner_id} "
            f"({territory.area_square_meters:.0f} m², {territory.point_count} points)"
        )
        return territory.id

    async def rename(self, territory_id: str, name: str | None) -> Territory:
        territory = self._require_active(territory_id)
        renamed = territory.with_name(name)
        await self._replace(territory, renamed)
        logger.info(f"Renamed territory {territory_id} to {name!r}")
        return renamed

    async def remove(self, territory_id: str) -> None:
        territory = self._require_active(territory_id)
        await self._replace(territory, territory.deactivated())
        logger.info(f"Removed territory {territory_id}")

    async def _replace(self, previous: Territory, updated: Territory) -> None:
        self._territories[previous.id] = updated
        try:
            await self._persist()
        except StorageError:
            self._territories[previous.id] = previous
            raise

    def _require_active(self, territory_id: str) -> Territory:
        territory = self._territories.get(territory_id)
        if territory is None or not territory.is_active:
            raise TerritoryNotFound(f"Territory {territory_id} not found")
        return territory

    async def get(self, territory_id: str) -> Territory | None:
        territory = self._territories.get(territory_id)
        if territory is None or not territory.is_active:
            return None
        return territory

    async def get_by_claim_attempt(
        self, owner_id: str, claim_attempt_id: str
    ) -> Territory | None:
        territory_id = self._by_claim_attempt.get((owner_id, claim_attempt_id))
        if territory_id is None:
            return None
        return self._territories.get(territory_id)

    async def list_territories(self, owner_id: str | None = None) -> list[Territory]:
        territories = [
            t for t in self._active() if owner_id is None or t.owner_id == owner_id
        ]
        return sorted(territories, key=lambda t: t.created_at, reverse=True)

    async def query_within_bounds(self, bounds: BoundingBox) -> list[Territory]:
        return [t for t in self._active() if t.bounding_box.intersects(bounds)]

    async def query_overlapping(self, boundary: Sequence[RawPoint]) -> list[Territory]:
        if not boundary:
            return []
        return await self.query_within_bounds(bounding_box(boundary))

    async def query_containing(
        self, point: RawPoint, owner_id: str | None = None
    ) -> Territory | None:
        for territory in self._active():
            if owner_id is not None and territory.owner_id != owner_id:
                continue
            if not territory.bounding_box.contains(point):
                continue
            if point_in_polygon(point, territory.boundary):
                return territory
        return None
