from abc import ABC, abstractmethod
from typing import Sequence

from ..models.geo_point import BoundingBox, RawPoint
from ..models.territory import Territory


# =========================
# TerritoryStore Interface
# =========================


class TerritoryStore(ABC):
    """
    The TerritoryStore is the durable home of committed territories.

    It is treated as a remote, fallible service: every method may raise
    StorageError, and callers retry or surface it, never swallow it.

    Invariants:
    - Territories are never mutated in place; rename and remove replace
      the stored record's metadata only
    - commit() is idempotent per (owner_id, claim_attempt_id): committing
      the same boundary again under a stored key returns the ID of the first
      territory and stores nothing; a different boundary under that key
      raises ClaimAttemptConflict. Claim attempt IDs of different owners never
      collide
    - The validator checks overlap before commit(). A store shared by several
      processes must repeat that check atomically inside commit(); within one
      process the validators serialize it with a shared lock
    - Query methods only return active territories
    """

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    @abstractmethod
    async def commit(self, territory: Territory) -> str:
        """Persist a validated territory.

        Returns:
            The stored territory's ID (the existing one on a duplicate claim
            attempt)

        Raises:
            ClaimAttemptConflict: If the owner already stored a different
                boundary under this claim attempt ID.
            StorageError: If the write fails.
        """

    @abstractmethod
    async def rename(self, territory_id: str, name: str | None) -> Territory:
        """Change a territory's display name.

        Raises:
            TerritoryNotFound: If no active territory has this ID.
        """

    @abstractmethod
    async def remove(self, territory_id: str) -> None:
        """Soft-delete a territory (is_active becomes False).

        Raises:
            TerritoryNotFound: If no active territory has this ID.
        """

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    @abstractmethod
    async def get(self, territory_id: str) -> Territory | None:
        """Fetch an active territory by ID."""

    @abstractmethod
    async def get_by_claim_attempt(
        self, owner_id: str, claim_attempt_id: str
    ) -> Territory | None:
        """Fetch the territory an owner committed under a claim attempt ID, if any."""

    @abstractmethod
    async def list_territories(self, owner_id: str | None = None) -> list[Territory]:
        """List active territories, newest first, optionally for one owner."""

    @abstractmethod
    async def query_within_bounds(self, bounds: BoundingBox) -> list[Territory]:
        """Active territories whose bounding box intersects bounds."""

    @abstractmethod
    async def query_overlapping(self, boundary: Sequence[RawPoint]) -> list[Territory]:
        """Candidate territories that may overlap boundary.

        Implementations may return false positives (e.g. a bounding-box
        prefilter); the validator measures the actual shared area.
        """

    @abstractmethod
    async def query_containing(
        self, point: RawPoint, owner_id: str | None = None
    ) -> Territory | None:
        """The active territory containing point (boundary inclusive).

        Args:
            point: Raw-datum point
            owner_id: If given, only consider this owner's territories
        """
