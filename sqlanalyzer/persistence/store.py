"""Cache-backed entity store, one instance per record type.

The store keeps an in-memory ``id -> record`` mapping in front of a
:class:`~sqlanalyzer.persistence.backend.PersistenceBackend`:

- The cache only ever holds records the backend returned at the last
  synchronization, or records the backend just accepted.
- A lookup miss triggers one full resynchronization before giving up.
- Writes and deletes go to the backend first; the cache follows only on
  success.
- Backend failures are logged and turned into "nothing found / nothing
  changed". They never reach the caller.

Every operation runs under one re-entrant lock per store.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Generic, TypeVar

from sqlanalyzer.core.errors import PersistenceAppError
from sqlanalyzer.persistence.backend import PersistenceBackend
from sqlanalyzer.schemas.records import NO_ID, PersistableRecord

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=PersistableRecord)

# Largest id handed out by get_free_id (signed 32-bit range)
MAX_ID = 2**31 - 1


class EntityStore(Generic[T]):
    """Thread-safe cache of one record type over a persistence backend.

    Attributes:
        record_type: Pydantic record class this store manages.
    """

    def __init__(
        self,
        record_type: type[T],
        backend: PersistenceBackend,
        *,
        rng: random.Random | None = None,
    ) -> None:
        """Create the store and load the current backend contents.

        Args:
            record_type: Record class whose namespace this store covers.
            backend: Storage the store reads from and writes to.
            rng: Random source for id allocation (seedable in tests).
        """
        self.record_type = record_type
        self._backend = backend
        self._rng = rng or random.Random()
        self._cache: dict[int, T] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._syncs = 0

        with self._lock:
            self._sync_locked()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"EntityStore(record_type={self.record_type.__name__}, "
            f"size={len(self._cache)}, hits={self._hits}, misses={self._misses})"
        )

    @property
    def _type_name(self) -> str:
        return self.record_type.__name__

    def get_all(self) -> set[T]:
        """Return a copy of the cached records."""

        with self._lock:
            return set(self._cache.values())

    def get_by_id(self, record_id: int) -> T | None:
        """Look a record up by id, resynchronizing once on a miss.

        Args:
            record_id: Identifier to look up. ``NO_ID`` always yields ``None``.

        Returns:
            The cached record, or ``None`` when it is unknown even after a
            resynchronization (or the resynchronization failed).
        """

        if record_id == NO_ID:
            return None

        with self._lock:
            record = self._cache.get(record_id)
            if record is not None:
                self._hits += 1
                return record

            self._misses += 1
            logger.debug(
                "store.miss",
                extra={"record_type": self._type_name, "record_id": record_id},
            )
            if not self._sync_locked():
                return None
            return self._cache.get(record_id)

    def save_or_update(self, record: T) -> None:
        """Persist ``record`` and cache it if the backend accepted it."""

        with self._lock:
            try:
                self._backend.persist(record)
            except PersistenceAppError as exc:
                logger.warning(
                    "store.save_failed",
                    extra={
                        "record_type": self._type_name,
                        "record_id": record.id,
                        "operation": "save_or_update",
                        "error_code": exc.code,
                        "error_message": exc.message,
                    },
                )
                return

            self._cache[record.id] = record
            logger.debug(
                "store.saved",
                extra={"record_type": self._type_name, "record_id": record.id},
            )

    def delete(self, record: T) -> None:
        """Remove ``record`` from the backend, then from the cache."""

        with self._lock:
            try:
                self._backend.delete(record)
            except PersistenceAppError as exc:
                logger.warning(
                    "store.delete_failed",
                    extra={
                        "record_type": self._type_name,
                        "record_id": record.id,
                        "operation": "delete",
                        "error_code": exc.code,
                        "error_message": exc.message,
                    },
                )
                return

            self._cache.pop(record.id, None)
            logger.debug(
                "store.deleted",
                extra={"record_type": self._type_name, "record_id": record.id},
            )

    def get_free_id(self) -> int:
        """Return a positive id not currently used by a cached record.

        The id is not reserved: two callers may receive the same value if
        neither has saved a record under it yet.
        """

        with self._lock:
            while True:
                candidate = self._rng.randint(1, MAX_ID)
                if candidate not in self._cache:
                    return candidate

    def refresh(self) -> bool:
        """Resynchronize the cache with the backend.

        Returns:
            True if the backend could be read.
        """

        with self._lock:
            return self._sync_locked()

    def stats(self) -> dict[str, int]:
        """Return lightweight cache metrics without exposing records."""

        with self._lock:
            return {
                "entries": len(self._cache),
                "hits": self._hits,
                "misses": self._misses,
                "syncs": self._syncs,
            }

    def _sync_locked(self) -> bool:
        try:
            records = self._backend.load_all(self.record_type)
        except PersistenceAppError as exc:
            logger.warning(
                "store.sync_failed",
                extra={
                    "record_type": self._type_name,
                    "operation": "load_all",
                    "error_code": exc.code,
                    "error_message": exc.message,
                },
            )
            return False

        self._cache = {record.id: record for record in records}
        self._syncs += 1
        logger.debug(
            "store.synced",
            extra={"record_type": self._type_name, "size": len(self._cache)},
        )
        return True
