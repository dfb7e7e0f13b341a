"""Durable record storage.

The entity stores depend on the :class:`PersistenceBackend` protocol only, so
the JSON file backend used in production can be swapped for the in-memory one
in tests (or for any other storage) without touching the stores.

All backend failures surface as :class:`PersistenceAppError`.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from pydantic import ValidationError

from sqlanalyzer.core.errors import PersistenceAppError
from sqlanalyzer.schemas.records import PersistableRecord

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=PersistableRecord)


@runtime_checkable
class PersistenceBackend(Protocol):
    """Protocol for record storage backends, one namespace per record type."""

    def load_all(self, record_type: type[R]) -> set[R]:
        """Load every stored record of ``record_type``."""
        ...

    def load(self, record_type: type[R], record_id: int) -> R:
        """Load a single record; raises if absent or unreadable."""
        ...

    def persist(self, record: PersistableRecord) -> None:
        """Insert or replace ``record`` keyed by its id."""
        ...

    def delete(self, record: PersistableRecord) -> None:
        """Remove ``record``; raises if it does not exist."""
        ...


class JsonFileBackend:
    """Stores each record as a pretty-printed JSON document.

    Layout: ``<base_path>/<RecordClassName>/<id>.json``.

    Attributes:
        base_path: Root directory of the store.
    """

    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"JsonFileBackend(base_path={str(self.base_path)!r})"

    def _dir_for(self, record_type: type[PersistableRecord]) -> Path:
        return self.base_path / record_type.__name__

    def _file_for(self, record_type: type[PersistableRecord], record_id: int) -> Path:
        return self._dir_for(record_type) / f"{record_id}.json"

    def _parse(self, record_type: type[R], raw: str) -> R:
        return record_type.model_validate_json(raw)

    def persist(self, record: PersistableRecord) -> None:
        """Write ``record`` unless the stored copy is newer.

        Raises:
            PersistenceAppError: On I/O errors, an unreadable stored copy, or
                when the stored copy carries a newer version than ``record``.
        """
        record_type = type(record)
        path = self._file_for(record_type, record.id)

        try:
            if path.is_file():
                previous = self._parse(record_type, path.read_text(encoding="utf-8"))
                if previous.version > record.version:
                    raise PersistenceAppError(
                        code="persistence_stale_write",
                        message=(
                            f"Found {record_type.__name__} {record.id} newer than "
                            "the one to be saved."
                        ),
                        details={
                            "record_type": record_type.__name__,
                            "record_id": record.id,
                            "operation": "persist",
                        },
                    )
                if previous == record:
                    return

            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            raise PersistenceAppError(
                code="persistence_io_error",
                message="Something went wrong while accessing the file system.",
                cause=exc,
            ) from exc
        except (UnicodeDecodeError, ValidationError) as exc:
            raise PersistenceAppError(
                code="persistence_corrupt_record",
                message=f"JSON file either broken or not of type {record_type.__name__}.",
                cause=exc,
            ) from exc

    def load(self, record_type: type[R], record_id: int) -> R:
        """Load one record.

        Raises:
            PersistenceAppError: If the file is missing, unreadable or invalid.
        """
        path = self._file_for(record_type, record_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise PersistenceAppError(
                code="persistence_not_found",
                message=f"{record_type.__name__} with id '{record_id}' not found.",
                details={
                    "record_type": record_type.__name__,
                    "record_id": record_id,
                    "operation": "load",
                },
                cause=exc,
            ) from exc
        except OSError as exc:
            raise PersistenceAppError(
                code="persistence_io_error",
                message="Something went wrong while accessing the file system.",
                cause=exc,
            ) from exc
        except UnicodeDecodeError as exc:
            raise PersistenceAppError(
                code="persistence_corrupt_record",
                message=f"File of {record_type.__name__} {record_id} is not valid UTF-8.",
                cause=exc,
            ) from exc

        try:
            return self._parse(record_type, raw)
        except ValidationError as exc:
            raise PersistenceAppError(
                code="persistence_corrupt_record",
                message=f"JSON file either broken or not of type {record_type.__name__}.",
                cause=exc,
            ) from exc

    def load_all(self, record_type: type[R]) -> set[R]:
        """Load every readable record of ``record_type``.

        Files that cannot be read or parsed are logged and skipped.

        Raises:
            PersistenceAppError: If the directory cannot be created or listed.
        """
        directory = self._dir_for(record_type)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            paths = sorted(directory.glob("*.json"))
        except OSError as exc:
            raise PersistenceAppError(
                code="persistence_io_error",
                message=f"Couldn't list files in directory {directory}.",
                cause=exc,
            ) from exc

        records: set[R] = set()
        for path in paths:
            try:
                records.add(self._parse(record_type, path.read_text(encoding="utf-8")))
            except OSError as exc:
                logger.warning(
                    "backend.file_unreadable",
                    extra={
                        "record_type": record_type.__name__,
                        "file": path.name,
                        "error_msg": str(exc),
                    },
                )
            except ValidationError as exc:
                logger.warning(
                    "backend.file_invalid",
                    extra={
                        "record_type": record_type.__name__,
                        "file": path.name,
                        "error_count": exc.error_count(),
                    },
                )
            except UnicodeDecodeError as exc:
                logger.warning(
                    "backend.file_invalid",
                    extra={
                        "record_type": record_type.__name__,
                        "file": path.name,
                        "error_msg": exc.reason,
                    },
                )
        return records

    def delete(self, record: PersistableRecord) -> None:
        """Remove the file of ``record``.

        Raises:
            PersistenceAppError: If the file does not exist or cannot be removed.
        """
        record_type = type(record)
        path = self._file_for(record_type, record.id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise PersistenceAppError(
                code="persistence_not_found",
                message=(
                    f"Deletion of {record_type.__name__} {record.id} failed, "
                    "file does not exist."
                ),
                details={
                    "record_type": record_type.__name__,
                    "record_id": record.id,
                    "operation": "delete",
                },
                cause=exc,
            ) from exc
        except OSError as exc:
            raise PersistenceAppError(
                code="persistence_io_error",
                message=f"Deletion of {record_type.__name__} {record.id} failed.",
                cause=exc,
            ) from exc


class InMemoryBackend:
    """Dict-backed backend with the same contract as :class:`JsonFileBackend`.

    Records round-trip through JSON so the stored copy never aliases the
    caller's object.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[type[PersistableRecord], dict[int, str]] = {}

    def _bucket(self, record_type: type[PersistableRecord]) -> dict[int, str]:
        return self._data.setdefault(record_type, {})

    def persist(self, record: PersistableRecord) -> None:
        with self._lock:
            bucket = self._bucket(type(record))
            raw = bucket.get(record.id)
            if raw is not None and json.loads(raw)["version"] > record.version:
                raise PersistenceAppError(
                    code="persistence_stale_write",
                    message=(
                        f"Found {type(record).__name__} {record.id} newer than "
                        "the one to be saved."
                    ),
                )
            bucket[record.id] = record.model_dump_json()

    def load(self, record_type: type[R], record_id: int) -> R:
        with self._lock:
            raw = self._bucket(record_type).get(record_id)
        if raw is None:
            raise PersistenceAppError(
                code="persistence_not_found",
                message=f"{record_type.__name__} with id '{record_id}' not found.",
            )
        return record_type.model_validate_json(raw)

    def load_all(self, record_type: type[R]) -> set[R]:
        with self._lock:
            raws = list(self._bucket(record_type).values())
        return {record_type.model_validate_json(raw) for raw in raws}

    def delete(self, record: PersistableRecord) -> None:
        with self._lock:
            bucket = self._bucket(type(record))
            if bucket.pop(record.id, None) is None:
                raise PersistenceAppError(
                    code="persistence_not_found",
                    message=(
                        f"Deletion of {type(record).__name__} {record.id} failed, "
                        "record does not exist."
                    ),
                )
