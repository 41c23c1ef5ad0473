"""Location fix data model."""

from dataclasses import dataclass
from datetime import datetime

from .geo_point import RawPoint


@dataclass(frozen=True)
class Fix:
    """One timestamped sample from the device's positioning sensor.

    Fixes arrive at irregular intervals from the location source. The tracker
    is their only consumer.
    """

    point: RawPoint
    timestamp: datetime  # Timezone-aware sample time
    horizontal_accuracy_m: float  # Radius of the 68% confidence circle
    speed_mps: float | None = None  # Device-reported ground speed, if any

    def __post_init__(self):
        """Validate fix data after initialization."""
        if not isinstance(self.point, RawPoint):
            raise TypeError(f"Fix point must be a RawPoint, got {type(self.point).__name__}")
        if self.timestamp.tzinfo is None:
            raise ValueError("Fix timestamp must be timezone-aware")
        if self.horizontal_accuracy_m < 0:
            raise ValueError(
                f"Invalid horizontal_accuracy_m: {self.horizontal_accuracy_m} (must be >= 0)"
            )
        if self.speed_mps is not None and self.speed_mps < 0:
            # Devices report a negative speed when it is unknown
            object.__setattr__(self, "speed_mps", None)

    @classmethod
    def at(
        cls,
        latitude: float,
        longitude: float,
        timestamp: datetime,
        horizontal_accuracy_m: float = 5.0,
        speed_mps: float | None = None,
    ) -> "Fix":
        """Convenience constructor from bare coordinates."""
        return cls(
            point=RawPoint(latitude=latitude, longitude=longitude),
            timestamp=timestamp,
            horizontal_accuracy_m=horizontal_accuracy_m,
            speed_mps=speed_mps,
        )
