"""Territory and fix serialization to/from JSON.

Territory dicts use the column names of the persisted territory record
(owner_id, area_sqm, bbox_min_lat, ...) so the same shape can be written to a
JSON file or sent to a remote table unchanged.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from ..models.fix import Fix
from ..models.geo_point import BoundingBox, RawPoint
from ..models.territory import Territory


def territory_to_dict(territory: Territory) -> dict[str, Any]:
    """Convert a Territory to a JSON-compatible dictionary.

    Args:
        territory: Territory to serialize

    Returns:
        Dictionary keyed by persisted column names
    """
    bbox = territory.bounding_box
    return {
        "id": territory.id,
        "owner_id": territory.owner_id,
        "name": territory.name,
        "path": [p.as_dict() for p in territory.boundary],
        "polygon": territory.to_wkt(),
        "area_sqm": territory.area_square_meters,
        "point_count": territory.point_count,
        "is_active": territory.is_active,
        "bbox_min_lat": bbox.min_lat,
        "bbox_max_lat": bbox.max_lat,
        "bbox_min_lon": bbox.min_lon,
        "bbox_max_lon": bbox.max_lon,
        "claim_attempt_id": territory.claim_attempt_id,
        "started_at": _format_datetime(territory.started_at),
        "completed_at": _format_datetime(territory.completed_at),
        "created_at": _format_datetime(territory.created_at),
    }


def territory_from_dict(data: dict[str, Any]) -> Territory:
    """Rebuild a Territory from territory_to_dict output.

    Raises:
        ValueError: If a required field is missing or malformed
    """
    try:
        boundary = tuple(RawPoint(latitude=p["lat"], longitude=p["lon"]) for p in data["path"])
        return Territory(
            id=data["id"],
            owner_id=data["owner_id"],
            boundary=boundary,
            area_square_meters=float(data["area_sqm"]),
            bounding_box=BoundingBox(
                min_lat=data["bbox_min_lat"],
                max_lat=data["bbox_max_lat"],
                min_lon=data["bbox_min_lon"],
                max_lon=data["bbox_max_lon"],
            ),
            created_at=_parse_datetime(data["created_at"]),
            claim_attempt_id=data.get("claim_attempt_id"),
            name=data.get("name"),
            is_active=data.get("is_active", True),
            started_at=_parse_datetime(data.get("started_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
        )
    except KeyError as e:
        raise ValueError(f"Territory record is missing field {e}") from e


def save_territories(territories: list[Territory], filepath: str | Path) -> None:
    """Write territories to a JSON file, replacing its previous content.

    The file is written to a sibling temp file first and then renamed, so a
    crash mid-write leaves the previous file intact.
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    with open(tmp_path, "w") as f:
        json.dump([territory_to_dict(t) for t in territories], f, indent=2)
    tmp_path.replace(path)


def load_territories(filepath: str | Path) -> list[Territory]:
    """Load territories from a JSON file.

    Returns:
        Territories in file order; empty list if the file does not exist

    Raises:
        ValueError: If the JSON is invalid or malformed
    """
    path = Path(filepath)
    if not path.exists():
        return []

    with open(path) as f:
        try:
            records = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid territory file {path}: {e}") from e

    if not isinstance(records, list):
        raise ValueError(f"Invalid territory file {path}: expected a JSON list")
    return [territory_from_dict(record) for record in records]


def fix_to_dict(fix: Fix) -> dict[str, Any]:
    return {
        "latitude": fix.point.latitude,
        "longitude": fix.point.longitude,
        "timestamp": _format_datetime(fix.timestamp),
        "accuracy": fix.horizontal_accuracy_m,
        "speed": fix.speed_mps,
    }


def fix_from_dict(data: dict[str, Any]) -> Fix:
    """Build a Fix from a recorded sample.

    Raises:
        ValueError: If a required field is missing or malformed
    """
    try:
        return Fix.at(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timestamp=_parse_datetime(data["timestamp"]),
            horizontal_accuracy_m=float(data.get("accuracy", 0.0)),
            speed_mps=data.get("speed"),
        )
    except KeyError as e:
        raise ValueError(f"Fix record is missing field {e}") from e


def load_fix_trace(filepath: str | Path) -> list[Fix]:
    """Load a recorded GPS trace (a JSON list of fix dicts).

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the JSON is invalid or malformed
    """
    with open(filepath) as f:
        try:
            records = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid trace file {filepath}: {e}") from e

    if not isinstance(records, list):
        raise ValueError(f"Invalid trace file {filepath}: expected a JSON list")
    return [fix_from_dict(record) for record in records]


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: str | None) -> datetime | None:
    if value is None:
        return None
    # fromisoformat() before 3.11 does not accept a trailing "Z"
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
