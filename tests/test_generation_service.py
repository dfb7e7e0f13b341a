"""Tests for query generation."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, Mock

import pytest

from sqlanalyzer.adapters.llm.factory import PromptableCache
from sqlanalyzer.adapters.rate_limit.authorizer import PromptAuthorizer
from sqlanalyzer.core.errors import LLMAppError, RateLimitAppError
from sqlanalyzer.core.logging import get_run_id
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.schemas.promptable_api import PromptableApi
from sqlanalyzer.schemas.records import LLMRecord, PromptRecord
from sqlanalyzer.services.generation_service import (
    GenerationService,
    strip_markdown_fence,
    temperature_for,
)


class FakeTime:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def clock(self) -> datetime:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def _service_with(
    registry: StoreRegistry, promptable: Mock, authorizer: PromptAuthorizer | None = None, **kwargs
) -> GenerationService:
    promptables = MagicMock(spec=PromptableCache)
    promptables.get.return_value = promptable
    return GenerationService(
        registry, promptables, authorizer or PromptAuthorizer(sleep=Mock()), pool_size=1, **kwargs
    )


class TestTemperature:
    def test_single_repetition_uses_midpoint(self) -> None:
        llm = LLMRecord(id=1, name="x", api=PromptableApi.DUMMY_SQL, min_temperature=0.2, max_temperature=0.8)

        assert temperature_for(llm, 0, 1) == pytest.approx(0.5)

    def test_repetitions_span_the_range(self) -> None:
        llm = LLMRecord(id=1, name="x", api=PromptableApi.DUMMY_SQL, min_temperature=0.2, max_temperature=0.8)

        temperatures = [temperature_for(llm, i, 4) for i in range(4)]

        assert temperatures == pytest.approx([0.2, 0.4, 0.6, 0.8])


@pytest.mark.parametrize(
    ("answer", "expected"),
    [
        ("SELECT 1", "SELECT 1"),
        ("```sql\nSELECT 1\n```", "SELECT 1"),
        ("```\nSELECT 1\n```", "SELECT 1"),
        ("  SELECT 1;  ", "SELECT 1;"),
    ],
)
def test_strip_markdown_fence(answer: str, expected: str) -> None:
    assert strip_markdown_fence(answer) == expected


def test_build_prompt_fills_placeholder(seeded_registry: StoreRegistry) -> None:
    service = _service_with(seeded_registry, Mock())

    text = service.build_prompt(seeded_registry.prompts.get_by_id(4))

    assert text == "Schema: customers(id, name)\nTask: List every customer"


def test_build_prompt_without_sample_query_uses_text(registry: StoreRegistry) -> None:
    service = _service_with(registry, Mock())

    assert service.build_prompt(PromptRecord(id=1, text="bare")) == "bare"


def test_generates_with_dummy_promptable(seeded_registry: StoreRegistry) -> None:
    service = GenerationService(seeded_registry, PromptableCache(), PromptAuthorizer())
    llm = seeded_registry.llms.get_by_id(1)
    prompt = seeded_registry.prompts.get_by_id(4)

    generated = service.generate([llm], [prompt], repetitions=3)

    assert len(generated) == 3
    assert {q.sql for q in generated} == {"SELECT * FROM Test"}
    assert {q.generator_id for q in generated} == {1}
    assert {q.prompt_id for q in generated} == {4}
    assert len({q.id for q in generated}) == 3
    assert not seeded_registry.generated_queries.get_all()
    assert get_run_id() is None


def test_prompt_receives_full_text_and_llm_settings(seeded_registry: StoreRegistry) -> None:
    promptable = Mock()
    promptable.prompt.return_value = "```sql\nSELECT id FROM customers\n```"
    llm = LLMRecord(
        id=1, name="deepseek", api=PromptableApi.DEEP_SEEK, model="deepseek-chat", api_key="k"
    )
    service = _service_with(seeded_registry, promptable)

    generated = service.generate([llm], [seeded_registry.prompts.get_by_id(4)])

    assert [q.sql for q in generated] == ["SELECT id FROM customers"]
    promptable.prompt.assert_called_once_with(
        "Schema: customers(id, name)\nTask: List every customer", "deepseek-chat", "k", 0.5
    )


def test_rate_limit_waits_and_retries(seeded_registry: StoreRegistry) -> None:
    fake = FakeTime()
    authorizer = PromptAuthorizer(clock=fake.clock, sleep=fake.sleep)
    promptable = Mock()
    promptable.prompt.side_effect = [RateLimitAppError(4, now=fake.now), "SELECT 1"]
    reporter = Mock()
    service = _service_with(seeded_registry, promptable, authorizer, on_rate_limit=reporter)
    llm = seeded_registry.llms.get_by_id(1)

    generated = service.generate([llm], [seeded_registry.prompts.get_by_id(4)])

    assert [q.sql for q in generated] == ["SELECT 1"]
    assert fake.sleeps == [4.0]
    assert promptable.prompt.call_count == 2
    reporter.assert_called_once_with(llm, fake.now)
    assert authorizer.retry_at(1) == fake.now


def test_generation_failure_skips_combination(
    seeded_registry: StoreRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    promptable = Mock()
    promptable.prompt.side_effect = LLMAppError(code="llm_provider_error", message="down")
    service = _service_with(seeded_registry, promptable)

    with caplog.at_level("ERROR"):
        generated = service.generate(
            [seeded_registry.llms.get_by_id(1)], [seeded_registry.prompts.get_by_id(4)]
        )

    assert generated == set()
    assert "generation.failed" in [r.getMessage() for r in caplog.records]


def test_every_combination_is_requested(seeded_registry: StoreRegistry) -> None:
    second_llm = LLMRecord(id=9, name="other", api=PromptableApi.DUMMY_SQL)
    second_prompt = PromptRecord(id=8, text="Count customers", sample_query_id=3, type_id=2)
    service = GenerationService(seeded_registry, PromptableCache(), PromptAuthorizer(), pool_size=3)

    generated = service.generate(
        [seeded_registry.llms.get_by_id(1), second_llm],
        [seeded_registry.prompts.get_by_id(4), second_prompt],
        repetitions=2,
    )

    assert len(generated) == 8
    assert {(q.generator_id, q.prompt_id) for q in generated} == {(1, 4), (1, 8), (9, 4), (9, 8)}


def test_invalid_repetitions(seeded_registry: StoreRegistry) -> None:
    service = _service_with(seeded_registry, Mock())

    with pytest.raises(ValueError):
        service.generate([], [], repetitions=0)
