"""Territory persistence."""

from .json_store import JsonFileTerritoryStore
from .memory_store import InMemoryTerritoryStore
from .territory_store import TerritoryStore

__all__ = [
    "TerritoryStore",
    "InMemoryTerritoryStore",
    "JsonFileTerritoryStore",
]
