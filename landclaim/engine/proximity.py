"""Collision and proximity warnings against other players' territories.

While a player walks, the UI shows how close the path is to land someone else
already owns. Starting inside, crossing into, or crossing the border of another
player's territory is a violation; getting close raises a graded warning.

Only territories owned by other players are considered. A player's own land
never triggers a warning; overlap with it is still caught by the validator.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Sequence

from ..config import ClaimConfig
from ..models.geo_point import RawPoint
from ..models.territory import Territory
from ..utils.geo_math import distance_to_segment_meters, point_in_polygon, segments_intersect

logger = logging.getLogger(__name__)


class WarningLevel(IntEnum):
    """Ordered severity; compare with < and >."""

    SAFE = 0
    CAUTION = 1
    WARNING = 2
    DANGER = 3
    VIOLATION = 4


class CollisionType(str, Enum):
    POINT_IN_TERRITORY = "pointInTerritory"
    PATH_CROSSES_TERRITORY = "pathCrossesTerritory"
    SELF_INTERSECTION = "selfIntersection"


@dataclass(frozen=True)
class CollisionResult:
    warning_level: WarningLevel = WarningLevel.SAFE
    collision_type: CollisionType | None = None
    message: str | None = None
    closest_distance_m: float | None = None
    territory_id: str | None = None

    @property
    def has_collision(self) -> bool:
        return self.collision_type is not None

    @classmethod
    def safe(cls, closest_distance_m: float | None = None) -> "CollisionResult":
        return cls(closest_distance_m=closest_distance_m)

    @classmethod
    def violation(
        cls, collision_type: CollisionType, message: str, territory_id: str | None = None
    ) -> "CollisionResult":
        return cls(
            warning_level=WarningLevel.VIOLATION,
            collision_type=collision_type,
            message=message,
            closest_distance_m=0.0,
            territory_id=territory_id,
        )

    @classmethod
    def warning(cls, level: WarningLevel, distance_m: float, message: str) -> "CollisionResult":
        return cls(warning_level=level, message=message, closest_distance_m=distance_m)


def _others(territories: Iterable[Territory], owner_id: str) -> list[Territory]:
    return [t for t in territories if t.is_active and t.owner_id != owner_id]


def _edges(boundary: Sequence[RawPoint]):
    for i in range(len(boundary)):
        yield boundary[i], boundary[(i + 1) % len(boundary)]


def check_start_point(
    point: RawPoint, territories: Iterable[Territory], owner_id: str
) -> CollisionResult:
    """Violation if point lies inside (or on the edge of) another player's territory."""
    for territory in _others(territories, owner_id):
        if territory.bounding_box.contains(point) and point_in_polygon(point, territory.boundary):
            logger.warning(f"Start point lies inside territory {territory.id}")
            return CollisionResult.violation(
                CollisionType.POINT_IN_TERRITORY,
                "You cannot start a claim inside another player's territory.",
                territory_id=territory.id,
            )
    return CollisionResult.safe()


def check_path_crossing(
    points: Sequence[RawPoint], territories: Iterable[Territory], owner_id: str
) -> CollisionResult:
    """Violation if any path segment touches another territory's border or ends inside it."""
    if len(points) < 2:
        return CollisionResult.safe()

    others = _others(territories, owner_id)
    for start, end in zip(points, points[1:]):
        for territory in others:
            for edge_start, edge_end in _edges(territory.boundary):
                if segments_intersect(start, end, edge_start, edge_end):
                    logger.warning(f"Path crosses the border of territory {territory.id}")
                    return CollisionResult.violation(
                        CollisionType.PATH_CROSSES_TERRITORY,
                        "Your path cannot cross another player's territory.",
                        territory_id=territory.id,
                    )
            if point_in_polygon(end, territory.boundary):
                logger.warning(f"Path enters territory {territory.id}")
                return CollisionResult.violation(
                    CollisionType.POINT_IN_TERRITORY,
                    "Your path cannot enter another player's territory.",
                    territory_id=territory.id,
                )
    return CollisionResult.safe()


def check_self_crossing(points: Sequence[RawPoint]) -> CollisionResult:
    """Violation if the open path so far crosses one of its own earlier segments."""
    segments = list(zip(points, points[1:]))
    for i in range(len(segments)):
        for j in range(i + 2, len(segments)):
            if segments_intersect(*segments[i], *segments[j]):
                return CollisionResult.violation(
                    CollisionType.SELF_INTERSECTION,
                    "Your path crosses itself. The claim will be rejected.",
                )
    return CollisionResult.safe()


def min_distance_to_territories(
    point: RawPoint, territories: Iterable[Territory], owner_id: str
) -> float:
    """Distance in meters to the nearest edge of another player's territory.

    Returns:
        math.inf when there are no other territories
    """
    nearest = math.inf
    for territory in _others(territories, owner_id):
        for edge_start, edge_end in _edges(territory.boundary):
            nearest = min(nearest, distance_to_segment_meters(point, edge_start, edge_end))
    return nearest


def warning_level_for_distance(distance_m: float, config: ClaimConfig) -> WarningLevel:
    if distance_m > config.caution_distance_m:
        return WarningLevel.SAFE
    if distance_m > config.warning_distance_m:
        return WarningLevel.CAUTION
    if distance_m > config.danger_distance_m:
        return WarningLevel.WARNING
    return WarningLevel.DANGER


_WARNING_MESSAGES = {
    WarningLevel.CAUTION: "Caution: another territory is {distance} m away.",
    WarningLevel.WARNING: "Warning: approaching another territory ({distance} m).",
    WarningLevel.DANGER: "Danger: about to enter another territory ({distance} m)!",
}


def assess_path(
    points: Sequence[RawPoint],
    territories: Iterable[Territory],
    owner_id: str,
    config: ClaimConfig | None = None,
) -> CollisionResult:
    """Combined collision check for a path in progress.

    Args:
        points: Accepted path points so far (raw datum)
        territories: Nearby territories, typically from query_within_bounds
        owner_id: The walking player
        config: Distance thresholds (default: ClaimConfig())

    Returns:
        A violation, a distance warning for the latest point, or SAFE
    """
    if not points:
        return CollisionResult.safe()

    config = config or ClaimConfig()
    territories = list(territories)

    if len(points) == 1:
        result = check_start_point(points[0], territories, owner_id)
    else:
        result = check_path_crossing(points, territories, owner_id)
        if not result.has_collision:
            result = check_self_crossing(points)
    if result.has_collision:
        return result

    distance = min_distance_to_territories(points[-1], territories, owner_id)
    level = warning_level_for_distance(distance, config)
    if level is WarningLevel.SAFE:
        return CollisionResult.safe(None if math.isinf(distance) else distance)

    logger.info(f"Proximity {level.name.lower()}: {distance:.0f} m from another territory")
    return CollisionResult.warning(
        level, distance, _WARNING_MESSAGES[level].format(distance=int(distance))
    )
