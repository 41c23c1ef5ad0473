"""Exception hierarchy for the claiming engine.

Hierarchy:
- ClaimError (base)
  - SensorError: a bad or stale fix; rejected locally, never fatal
    - InaccurateFixError
    - StaleFixError
    - ImplausibleSpeedError
    - StationaryJitterError
  - ValidationRejection: a closed path failed validation; carries the reason
  - StorageError: persistence failed; retryable unless stated otherwise
    - TerritoryNotFound
  - InvariantViolation: the engine was driven incorrectly (programming error)
"""


class ClaimError(Exception):
    """Base exception for all claiming errors."""


# =========================
# Sensor errors
# =========================


class SensorError(ClaimError):
    """A fix that cannot be used. The tracker drops it and keeps going."""


class InaccurateFixError(SensorError):
    pass


class StaleFixError(SensorError):
    pass


class ImplausibleSpeedError(SensorError):
    def __init__(self, message: str, speed_mps: float):
        super().__init__(message)
        self.speed_mps = speed_mps


class StationaryJitterError(SensorError):
    pass


# =========================
# Validation
# =========================


class ValidationRejection(ClaimError):
    """A closed path was rejected. The claim must be restarted."""

    def __init__(self, reason, message: str | None = None, overlaps=()):
        super().__init__(message or reason.message)
        self.reason = reason
        self.overlaps = tuple(overlaps)


# =========================
# Storage
# =========================


class StorageError(ClaimError):
    """Persistence or network failure talking to the territory store."""

    retryable: bool = True

    def __init__(self, message: str, retryable: bool | None = None):
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class TerritoryNotFound(StorageError):
    retryable = False


class ClaimAttemptConflict(StorageError):
    """An owner reused a claim attempt ID for a different boundary."""

    retryable = False


# =========================
# Programming errors
# =========================


class InvariantViolation(ClaimError):
    """An operation was called in a state that does not allow it."""
