"""One entity store per record type, built once at start-up.

Consumers receive the registry (or a single store from it) by reference
instead of reaching for module-level singletons.
"""

from __future__ import annotations

import logging
import random
from typing import Any, TypeVar

from sqlanalyzer.persistence.backend import PersistenceBackend
from sqlanalyzer.persistence.store import EntityStore
from sqlanalyzer.schemas.records import (
    GeneratedQueryRecord,
    LLMRecord,
    PersistableRecord,
    PromptRecord,
    PromptTypeRecord,
    SampleQueryRecord,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=PersistableRecord)

RECORD_TYPES: tuple[type[PersistableRecord], ...] = (
    LLMRecord,
    PromptTypeRecord,
    SampleQueryRecord,
    PromptRecord,
    GeneratedQueryRecord,
)


class StoreRegistry:
    """Holds the entity store of every record type over a shared backend."""

    def __init__(
        self,
        backend: PersistenceBackend,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self._stores: dict[type[PersistableRecord], EntityStore[Any]] = {
            record_type: EntityStore(record_type, backend, rng=rng)
            for record_type in RECORD_TYPES
        }
        logger.info(
            "registry.ready",
            extra={"record_types": [t.__name__ for t in RECORD_TYPES]},
        )

    def store_for(self, record_type: type[R]) -> EntityStore[R]:
        """Return the store of ``record_type``.

        Raises:
            KeyError: If the type is not a registered record type.
        """
        return self._stores[record_type]

    @property
    def llms(self) -> EntityStore[LLMRecord]:
        return self.store_for(LLMRecord)

    @property
    def prompt_types(self) -> EntityStore[PromptTypeRecord]:
        return self.store_for(PromptTypeRecord)

    @property
    def sample_queries(self) -> EntityStore[SampleQueryRecord]:
        return self.store_for(SampleQueryRecord)

    @property
    def prompts(self) -> EntityStore[PromptRecord]:
        return self.store_for(PromptRecord)

    @property
    def generated_queries(self) -> EntityStore[GeneratedQueryRecord]:
        return self.store_for(GeneratedQueryRecord)

    def dependants_of(self, record: PersistableRecord) -> list[PersistableRecord]:
        """List the records that reference ``record`` by id.

        Used to warn before deleting a record others still point at.
        """
        if isinstance(record, LLMRecord):
            return [q for q in self.generated_queries.get_all() if q.generator_id == record.id]
        if isinstance(record, PromptRecord):
            return [q for q in self.generated_queries.get_all() if q.prompt_id == record.id]
        if isinstance(record, PromptTypeRecord):
            return [p for p in self.prompts.get_all() if p.type_id == record.id]
        if isinstance(record, SampleQueryRecord):
            return [p for p in self.prompts.get_all() if p.sample_query_id == record.id]
        return []
