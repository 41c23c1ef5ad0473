"""Snapshot of an in-progress claim walk."""

from dataclasses import dataclass

from .geo_point import RawPoint


@dataclass(frozen=True)
class TrackedPath:
    """Immutable view of the path a tracker has accepted so far.

    The tracker builds a new TrackedPath for every successful mutation and
    swaps it in with a single assignment, so observers holding a reference
    always see a consistent value. Comparing version numbers is enough to
    tell whether anything changed since the last read.
    """

    claim_attempt_id: str | None  # None before the first start()
    points: tuple[RawPoint, ...] = ()
    version: int = 0  # Bumped on every append or state transition
    closed: bool = False

    def __post_init__(self):
        """Validate snapshot data after initialization."""
        if self.version < 0:
            raise ValueError(f"Invalid version: {self.version} (must be >= 0)")
        if self.closed and len(self.points) < 3:
            raise ValueError("A closed path needs at least 3 points")

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def first(self) -> RawPoint | None:
        return self.points[0] if self.points else None

    @property
    def last(self) -> RawPoint | None:
        return self.points[-1] if self.points else None
