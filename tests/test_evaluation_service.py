"""Tests for scoring generated queries."""

import math
from unittest.mock import Mock

import pytest

from sqlanalyzer.adapters.rate_limit.authorizer import PromptAuthorizer
from sqlanalyzer.core.errors import LLMAppError, RateLimitAppError
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.schemas.promptable_api import PromptableApi
from sqlanalyzer.schemas.records import GeneratedQueryRecord, LLMRecord
from sqlanalyzer.services.evaluation_service import (
    COMPARISON_PROMPT,
    EvaluationService,
    LLMComparator,
    StatementComparator,
    build_comparison_prompt,
    parse_score,
)

JUDGE = LLMRecord(id=5, name="judge", api=PromptableApi.DEEP_SEEK, model="deepseek-chat", api_key="k")


@pytest.mark.parametrize(
    ("answer", "expected"),
    [("87", 0.87), (" 100\n", 1.0), ("0", 0.0)],
)
def test_parse_score(answer: str, expected: float) -> None:
    assert parse_score(answer) == pytest.approx(expected)


@pytest.mark.parametrize("answer", [None, "", "eighty", "87%", "101", "-1"])
def test_parse_score_undetermined(answer) -> None:
    assert math.isnan(parse_score(answer))


def test_comparison_prompt_embeds_both_statements() -> None:
    text = build_comparison_prompt("SELECT a FROM t", "SELECT b FROM t")

    assert text.startswith(COMPARISON_PROMPT)
    assert text.index("SELECT a FROM t") < text.index("SELECT b FROM t")


class TestLLMComparator:
    def test_scores_llm_answer(self) -> None:
        promptable = Mock()
        promptable.prompt.return_value = "73"
        comparator = LLMComparator(JUDGE, promptable, PromptAuthorizer(sleep=Mock()))

        assert comparator.compare("SELECT 1", "SELECT 2") == pytest.approx(0.73)
        args = promptable.prompt.call_args.args
        assert args[1:] == ("deepseek-chat", "k", 0.0)

    def test_satisfies_comparator_protocol(self) -> None:
        comparator = LLMComparator(JUDGE, Mock(), PromptAuthorizer())

        assert isinstance(comparator, StatementComparator)

    def test_rate_limit_is_retried(self) -> None:
        sleep = Mock()
        promptable = Mock()
        promptable.prompt.side_effect = [RateLimitAppError(0), "50"]
        reporter = Mock()
        comparator = LLMComparator(
            JUDGE, promptable, PromptAuthorizer(sleep=sleep), on_rate_limit=reporter
        )

        assert comparator.compare("SELECT 1", "SELECT 1") == pytest.approx(0.5)
        reporter.assert_called_once()

    def test_generation_failure_is_undetermined(self) -> None:
        promptable = Mock()
        promptable.prompt.side_effect = LLMAppError(code="llm_provider_error", message="down")
        comparator = LLMComparator(JUDGE, promptable, PromptAuthorizer())

        assert math.isnan(comparator.compare("SELECT 1", "SELECT 1"))


class TestEvaluationService:
    @staticmethod
    def _query() -> GeneratedQueryRecord:
        return GeneratedQueryRecord(id=20, sql="SELECT id FROM customers", generator_id=1, prompt_id=4)

    def test_scores_against_sample_query(self, seeded_registry: StoreRegistry) -> None:
        comparator = Mock()
        comparator.compare.return_value = 0.9
        service = EvaluationService(seeded_registry, comparator, pool_size=1)
        query = self._query()

        scores = service.evaluate([query])

        assert scores == {query: 0.9}
        comparator.compare.assert_called_once_with("SELECT * FROM customers", query.sql)

    def test_retries_while_undetermined(self, seeded_registry: StoreRegistry) -> None:
        comparator = Mock()
        comparator.compare.side_effect = [math.nan, math.nan, 0.4]
        service = EvaluationService(seeded_registry, comparator, pool_size=1)
        query = self._query()

        assert service.evaluate([query], attempts=5)[query] == pytest.approx(0.4)
        assert comparator.compare.call_count == 3

    def test_gives_up_after_attempts(self, seeded_registry: StoreRegistry) -> None:
        comparator = Mock()
        comparator.compare.return_value = math.nan
        service = EvaluationService(seeded_registry, comparator, pool_size=1)
        query = self._query()

        assert math.isnan(service.evaluate([query], attempts=2)[query])
        assert comparator.compare.call_count == 2

    def test_missing_reference_is_undetermined(self, registry: StoreRegistry) -> None:
        comparator = Mock()
        service = EvaluationService(registry, comparator, pool_size=1)
        query = self._query()

        assert math.isnan(service.evaluate([query])[query])
        comparator.compare.assert_not_called()

    def test_invalid_attempts(self, registry: StoreRegistry) -> None:
        with pytest.raises(ValueError):
            EvaluationService(registry, Mock()).evaluate([], attempts=0)
