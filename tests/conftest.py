"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment before any settings-dependent module is imported.
"""

import os
import random

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Keep the dummies fast and deterministic in shape
os.environ.setdefault("DUMMY_MIN_LATENCY_SECONDS", "0")
os.environ.setdefault("DUMMY_MAX_LATENCY_SECONDS", "0")
os.environ.setdefault("WORKER_POOL_SIZE", "2")

import pytest  # noqa: E402

from sqlanalyzer.persistence.backend import InMemoryBackend, JsonFileBackend  # noqa: E402
from sqlanalyzer.persistence.registry import StoreRegistry  # noqa: E402
from sqlanalyzer.schemas.promptable_api import PromptableApi  # noqa: E402
from sqlanalyzer.schemas.records import (  # noqa: E402
    Complexity,
    LLMRecord,
    PromptRecord,
    PromptTypeRecord,
    SampleQueryRecord,
)


class FakeClock:
    """Deterministic UNIX clock used to test time-dependent logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def json_backend(tmp_path) -> JsonFileBackend:
    return JsonFileBackend(tmp_path / "saves")


@pytest.fixture
def registry(memory_backend: InMemoryBackend) -> StoreRegistry:
    return StoreRegistry(memory_backend, rng=random.Random(42))


@pytest.fixture
def seeded_registry(registry: StoreRegistry) -> StoreRegistry:
    """Registry holding one LLM, prompt type, sample query and prompt."""

    registry.llms.save_or_update(
        LLMRecord(id=1, name="sql-dummy", api=PromptableApi.DUMMY_SQL, model="none")
    )
    registry.prompt_types.save_or_update(PromptTypeRecord(id=2, name="zero-shot"))
    registry.sample_queries.save_or_update(
        SampleQueryRecord(
            id=3,
            name="all-customers",
            sql="SELECT * FROM customers",
            prompt_context="Schema: customers(id, name)\nTask: §§§",
            complexity=Complexity.LOW,
        )
    )
    registry.prompts.save_or_update(
        PromptRecord(id=4, text="List every customer", sample_query_id=3, type_id=2)
    )
    return registry
