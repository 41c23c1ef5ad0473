"""Building placement checks.

A building site picked on the map arrives in the render datum. It is converted
back to the raw datum before testing it against the territory boundary, which
is always stored raw.
"""

import logging

from ..models.geo_point import GeoPoint, RawPoint, RenderPoint
from ..models.territory import Territory
from ..utils.coordinates import to_raw_datum
from ..utils.geo_math import point_in_polygon

logger = logging.getLogger(__name__)


def can_place_building(
    point: GeoPoint, territory: Territory, owner_id: str | None = None
) -> bool:
    """Check whether a building may be placed at point.

    Points on the boundary count as inside.

    Args:
        point: Proposed site, RawPoint or RenderPoint (tap on the map)
        territory: Committed territory the building would belong to
        owner_id: If given, the territory must belong to this player

    Returns:
        True if the site lies within the active territory
    """
    if isinstance(point, RenderPoint):
        point = to_raw_datum(point)
    elif not isinstance(point, RawPoint):
        raise TypeError(f"Expected RawPoint or RenderPoint, got {type(point).__name__}")

    if not territory.is_active:
        logger.debug(f"Territory {territory.id} has been removed")
        return False
    if owner_id is not None and territory.owner_id != owner_id:
        logger.debug(f"Territory {territory.id} is not owned by {owner_id}")
        return False
    if not territory.bounding_box.contains(point):
        return False
    return point_in_polygon(point, territory.boundary)
