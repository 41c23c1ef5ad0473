"""Territory store backed by a JSON file."""

import asyncio
import logging
from pathlib import Path

from ..errors import StorageError
from ..utils.serialization import load_territories, save_territories
from .memory_store import InMemoryTerritoryStore

logger = logging.getLogger(__name__)


class JsonFileTerritoryStore(InMemoryTerritoryStore):
    """In-memory store that rewrites a JSON file after every change.

    Suitable for a single-process development server. The whole file is
    rewritten on each write, so it is not meant for large datasets.
    """

    def __init__(self, filepath: str | Path):
        self.path = Path(filepath)
        try:
            territories = load_territories(self.path)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to load territories from {self.path}: {e}", retryable=False) from e
        super().__init__(territories)
        logger.info(f"Loaded {len(territories)} territories from {self.path}")

    async def _persist(self) -> None:
        try:
            await asyncio.to_thread(save_territories, self.all_records, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write territories to {self.path}: {e}") from e
