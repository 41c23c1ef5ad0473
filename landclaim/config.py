"""Runtime configuration for the claiming engine."""

import os
from dataclasses import dataclass, fields
from typing import Mapping

from .utils import constants

ENV_PREFIX = "LANDCLAIM_"


@dataclass(frozen=True)
class ClaimConfig:
    """Thresholds used by tracking, validation and proximity checks.

    Defaults come from utils.constants. Any field can be overridden from the
    environment with LANDCLAIM_<FIELD_NAME> (see from_env).
    """

    max_horizontal_accuracy_m: float = constants.MAX_HORIZONTAL_ACCURACY_M
    max_speed_mps: float = constants.MAX_SPEED_MPS
    min_point_spacing_m: float = constants.MIN_POINT_SPACING_M
    closure_radius_m: float = constants.CLOSURE_RADIUS_M
    min_closure_points: int = constants.MIN_CLOSURE_POINTS
    degenerate_area_sqm: float = constants.DEGENERATE_AREA_SQM
    min_territory_points: int = constants.MIN_TERRITORY_POINTS
    min_area_sqm: float = constants.MIN_AREA_SQM
    overlap_tolerance_sqm: float = constants.OVERLAP_TOLERANCE_SQM
    overlap_tolerance_ratio: float = constants.OVERLAP_TOLERANCE_RATIO
    caution_distance_m: float = constants.CAUTION_DISTANCE_M
    warning_distance_m: float = constants.WARNING_DISTANCE_M
    danger_distance_m: float = constants.DANGER_DISTANCE_M
    storage_retry_attempts: int = constants.STORAGE_RETRY_ATTEMPTS
    storage_retry_wait_min_s: float = constants.STORAGE_RETRY_WAIT_MIN_S
    storage_retry_wait_max_s: float = constants.STORAGE_RETRY_WAIT_MAX_S
    strict: bool = False  # Raise on invariant violations instead of ignoring them

    def __post_init__(self):
        """Validate configuration values after initialization."""
        for name in (
            "max_horizontal_accuracy_m",
            "max_speed_mps",
            "closure_radius_m",
            "caution_distance_m",
            "warning_distance_m",
            "danger_distance_m",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"Invalid {name}: {getattr(self, name)} (must be > 0)")
        for name in (
            "min_point_spacing_m",
            "degenerate_area_sqm",
            "min_area_sqm",
            "overlap_tolerance_sqm",
            "storage_retry_wait_min_s",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"Invalid {name}: {getattr(self, name)} (must be >= 0)")
        if self.min_closure_points < 3:
            raise ValueError(
                f"Invalid min_closure_points: {self.min_closure_points} (must be >= 3)"
            )
        if self.min_territory_points < 3:
            raise ValueError(
                f"Invalid min_territory_points: {self.min_territory_points} (must be >= 3)"
            )
        if not (0 <= self.overlap_tolerance_ratio < 1):
            raise ValueError(
                f"Invalid overlap_tolerance_ratio: {self.overlap_tolerance_ratio} "
                "(must be in [0, 1))"
            )
        if not (self.danger_distance_m <= self.warning_distance_m <= self.caution_distance_m):
            raise ValueError(
                "Proximity distances must satisfy danger <= warning <= caution "
                f"(got {self.danger_distance_m}, {self.warning_distance_m}, "
                f"{self.caution_distance_m})"
            )
        if self.storage_retry_attempts < 1:
            raise ValueError(
                f"Invalid storage_retry_attempts: {self.storage_retry_attempts} (must be >= 1)"
            )
        if self.storage_retry_wait_max_s < self.storage_retry_wait_min_s:
            raise ValueError("storage_retry_wait_max_s must be >= storage_retry_wait_min_s")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClaimConfig":
        """Build a config, overriding defaults from LANDCLAIM_* variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            ClaimConfig with overrides applied

        Raises:
            ValueError: If a variable cannot be parsed or a value is out of range

        Example:
            LANDCLAIM_CLOSURE_RADIUS_M=20 LANDCLAIM_STRICT=true python run_server.py
        """
        if environ is None:
            environ = os.environ

        overrides = {}
        for field in fields(cls):
            raw = environ.get(f"{ENV_PREFIX}{field.name.upper()}")
            if raw is None:
                continue
            overrides[field.name] = _parse_value(field.name, field.type, raw)

        return cls(**overrides)


def _parse_value(name: str, type_name, raw: str):
    """Parse one environment override according to the field's annotation."""
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            lowered = raw.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(raw)
        if type_name == "int":
            return int(raw)
        return float(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e
