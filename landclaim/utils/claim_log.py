"""In-memory log of recent claim events.

Field testing a claim walk happens on a phone, away from any log
aggregation. ClaimLogBuffer is a logging handler that keeps the most recent
claim events so a tester can export them from the device (or from the
/api/log endpoint) after a walk.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime

from .constants import CLAIM_LOG_CAPACITY

CLAIM_LOGGER_NAME = "landclaim"

_DISPLAY_FORMAT = "%H:%M:%S"
_EXPORT_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str


class ClaimLogBuffer(logging.Handler):
    """Logging handler that retains the last `capacity` records.

    Oldest entries are dropped first once the buffer is full.
    """

    def __init__(self, capacity: int = CLAIM_LOG_CAPACITY, level: int = logging.INFO):
        super().__init__(level=level)
        if capacity <= 0:
            raise ValueError(f"Invalid capacity: {capacity} (must be > 0)")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created),
                level=record.levelname,
                message=record.getMessage(),
            )
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    @property
    def entries(self) -> list[LogEntry]:
        with self._entries_lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def text(self) -> str:
        """Entries formatted for on-screen display, one per line."""
        return "".join(
            f"[{e.timestamp.strftime(_DISPLAY_FORMAT)}] [{e.level}] {e.message}\n"
            for e in self.entries
        )

    def export(self) -> str:
        """Full report with a header, suitable for sharing after a test walk."""
        entries = self.entries
        lines = [
            "=== Claim log ===",
            f"Exported: {datetime.now().strftime(_EXPORT_FORMAT)}",
            f"Entries: {len(entries)}",
            "",
        ]
        lines.extend(
            f"[{e.timestamp.strftime(_EXPORT_FORMAT)}] [{e.level}] {e.message}" for e in entries
        )
        return "\n".join(lines) + "\n"


def install_claim_log(capacity: int = CLAIM_LOG_CAPACITY) -> ClaimLogBuffer:
    """Attach a buffer to the package logger, reusing one already attached.

    Returns:
        The buffer receiving every landclaim.* record at INFO and above
    """
    logger = logging.getLogger(CLAIM_LOGGER_NAME)
    for handler in logger.handlers:
        if isinstance(handler, ClaimLogBuffer):
            return handler

    buffer = ClaimLogBuffer(capacity=capacity)
    logger.addHandler(buffer)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return buffer
