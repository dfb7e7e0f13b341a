"""Pydantic schemas for persisted records.

Every record is immutable and identified by ``(record type, id)``. Edits are
made with :meth:`PersistableRecord.revised`, which returns a copy carrying a
fresh version stamp.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from sqlanalyzer.schemas.promptable_api import PromptableApi

# Reserved id meaning "no entity"
NO_ID = -1

# Placeholder in a sample query's prompt context that receives the prompt text
PROMPT_PLACEHOLDER = "§§§"


def _new_version() -> int:
    return time.time_ns()


class Complexity(str, Enum):
    """Difficulty classification of a sample query."""

    LOW = "LOW"
    MID = "MID"
    HIGH = "HIGH"


class PersistableRecord(BaseModel):
    """Base class for anything the entity stores keep.

    Attributes:
        id: Type-scoped identifier; ``NO_ID`` (-1) means "no entity".
        version: Monotonic stamp used by the backend to reject stale writes.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=NO_ID, description="Type-scoped record identifier.")
    version: int = Field(
        default_factory=_new_version,
        ge=0,
        description="Nanosecond timestamp of the last edit.",
    )

    def revised(self, **changes: Any) -> Self:
        """Return a copy with ``changes`` applied and a newer version."""
        version = max(_new_version(), self.version + 1)
        return self.model_validate({**self.model_dump(), **changes, "version": version})


class LLMRecord(PersistableRecord):
    """A configured text generator (real provider or dummy)."""

    name: str
    api: PromptableApi
    model: str = ""
    api_key: str = Field("", repr=False)
    min_temperature: float = 0.0
    max_temperature: float = 1.0

    @model_validator(mode="after")
    def _check_temperatures(self) -> "LLMRecord":
        if self.min_temperature > self.max_temperature:
            raise ValueError("min_temperature must be <= max_temperature")
        return self


class PromptTypeRecord(PersistableRecord):
    """A prompting strategy, e.g. zero-shot or few-shot."""

    name: str
    description: str = ""


class SampleQueryRecord(PersistableRecord):
    """A hand-written reference query."""

    name: str
    sql: str
    description: str = ""
    prompt_context: str = Field(
        PROMPT_PLACEHOLDER,
        description="Frame sent to the generator; the placeholder receives the prompt text.",
    )
    complexity: Complexity = Complexity.MID


class PromptRecord(PersistableRecord):
    """An informal description of a sample query, phrased per prompt type."""

    text: str
    sample_query_id: int = NO_ID
    type_id: int = NO_ID


class GeneratedQueryRecord(PersistableRecord):
    """A query produced by an LLM for a prompt."""

    sql: str
    generator_id: int = NO_ID
    prompt_id: int = NO_ID
