"""Record persistence: storage backends and cache-backed entity stores."""

from sqlanalyzer.persistence.backend import (
    InMemoryBackend,
    JsonFileBackend,
    PersistenceBackend,
)
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.persistence.store import EntityStore

__all__ = [
    "EntityStore",
    "InMemoryBackend",
    "JsonFileBackend",
    "PersistenceBackend",
    "StoreRegistry",
]
