"""Scoring generated queries against their reference queries.

The comparator is opaque to the evaluation service: anything that maps a
pair of SQL statements to a similarity in ``[0, 1]`` (or ``nan`` when it
cannot tell) fits. The shipped :class:`LLMComparator` asks an LLM.
"""

from __future__ import annotations

import contextvars
import logging
import math
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Protocol, runtime_checkable

from sqlanalyzer.adapters.llm.base import AbstractPromptable
from sqlanalyzer.adapters.rate_limit.authorizer import PromptAuthorizer
from sqlanalyzer.core.config import settings
from sqlanalyzer.core.errors import LLMAppError, RateLimitAppError
from sqlanalyzer.core.logging import clear_run_id, set_run_id
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.schemas.records import GeneratedQueryRecord, LLMRecord
from sqlanalyzer.services.generation_service import RateLimitReporter

logger = logging.getLogger(__name__)


@runtime_checkable
class StatementComparator(Protocol):
    """Scores how close a candidate statement is to a reference statement."""

    def compare(self, reference_sql: str, candidate_sql: str) -> float:
        """Return a similarity in ``[0, 1]``, or ``nan`` if undetermined."""
        ...


COMPARISON_PROMPT = """
You will receive two SQL select statements. The first is a sample solution. The second was modeled based on an informal description of the goal of the first statement.
Compare both statements in terms of their semantic similarity. Aliases are irrelevant. The only decisive factor is whether a semantically equivalent approach was chosen. The specific syntax plays only a minor role.
Important: Return only an integer between 0 and 100, no other characters as an explanation, even without additional characters or formatting.
Avoid rounding to multiples of 5 unless it is objectively justified. Use fine gradations in increments of one.
Do not hesitate to award the full 100 points if there is semantic equivalence.

Evaluate according to the following grid:
- 0-5: No or hardly any recognizable connection.
- 6-25: Extremely different semantically, only very weak similarity recognizable.
- 26-45: Semantically significantly different, but a rough thematic similarity is present.
- 46-60: Semantically not equivalent, but with a clearly recognizable common basis.
- 61-85: Semantically not exactly equivalent, but the difference is minor and easily correctable.
- 86-99: Semantically almost equivalent, differences only in minimal details.
- 100: Semantically completely equivalent; differences at most in column selection or order.

Remember: Simply a numerical answer, no additional text!
""".strip()


def build_comparison_prompt(reference_sql: str, candidate_sql: str) -> str:
    return (
        f"{COMPARISON_PROMPT}\n\n"
        f"Sample query:\n(\n{reference_sql}\n)\n\n"
        f"Recreated query:\n(\n{candidate_sql}\n)"
    )


def parse_score(answer: str | None) -> float:
    """Turn an integer answer in ``[0, 100]`` into a ``[0, 1]`` score."""
    if answer is None:
        return math.nan
    try:
        value = int(answer.strip())
    except ValueError:
        logger.warning("evaluation.unparsable_answer", extra={"answer_length": len(answer)})
        return math.nan
    if not 0 <= value <= 100:
        logger.warning("evaluation.score_out_of_range", extra={"value": value})
        return math.nan
    return value / 100.0


class LLMComparator:
    """Asks an LLM to rate the semantic similarity of two statements."""

    def __init__(
        self,
        llm: LLMRecord,
        promptable: AbstractPromptable,
        authorizer: PromptAuthorizer,
        *,
        temperature: float = 0.0,
        on_rate_limit: RateLimitReporter | None = None,
    ) -> None:
        self.llm = llm
        self.promptable = promptable
        self.authorizer = authorizer
        self.temperature = temperature
        self.on_rate_limit = on_rate_limit

    def _ask(self, text: str) -> str | None:
        while True:
            self.authorizer.wait_until_authorized(self.llm.id)
            try:
                return self.promptable.prompt(
                    text, self.llm.model, self.llm.api_key, self.temperature
                )
            except RateLimitAppError as exc:
                self.authorizer.register(self.llm.id, exc.retry_at)
                if self.on_rate_limit is not None:
                    self.on_rate_limit(self.llm, exc.retry_at)
            except LLMAppError as exc:
                logger.warning(
                    "evaluation.llm_failed",
                    extra={"llm_id": self.llm.id, "error_code": exc.code},
                )
                return None

    def compare(self, reference_sql: str, candidate_sql: str) -> float:
        return parse_score(self._ask(build_comparison_prompt(reference_sql, candidate_sql)))


class EvaluationService:
    """Scores generated queries with a comparator on a thread pool."""

    def __init__(
        self,
        registry: StoreRegistry,
        comparator: StatementComparator,
        *,
        pool_size: int | None = None,
    ) -> None:
        self.registry = registry
        self.comparator = comparator
        self.pool_size = pool_size or settings.worker.pool_size

    def _reference_sql(self, query: GeneratedQueryRecord) -> str | None:
        prompt = self.registry.prompts.get_by_id(query.prompt_id)
        if prompt is None:
            return None
        sample_query = self.registry.sample_queries.get_by_id(prompt.sample_query_id)
        return sample_query.sql if sample_query else None

    def _score_one(self, query: GeneratedQueryRecord, attempts: int) -> float:
        reference_sql = self._reference_sql(query)
        if reference_sql is None:
            logger.warning("evaluation.missing_reference", extra={"query_id": query.id})
            return math.nan

        score = math.nan
        for _ in range(attempts):
            score = self.comparator.compare(reference_sql, query.sql)
            if not math.isnan(score):
                break

        logger.info("evaluation.scored", extra={"query_id": query.id, "score": score})
        return score

    def evaluate(
        self,
        queries: Iterable[GeneratedQueryRecord],
        attempts: int = 1,
    ) -> dict[GeneratedQueryRecord, float]:
        """Score every query against its prompt's sample query.

        Args:
            queries: Generated queries to score.
            attempts: How often to re-ask the comparator while it returns ``nan``.

        Returns:
            Score per query; ``nan`` when no score could be obtained.

        Raises:
            ValueError: If ``attempts`` is below 1.
        """
        if attempts < 1:
            raise ValueError("attempts must be >= 1")

        queries = list(queries)
        set_run_id(f"eval-{uuid.uuid4().hex[:12]}")
        logger.info(
            "evaluation.started",
            extra={"queries": len(queries), "attempts": attempts, "pool_size": self.pool_size},
        )
        try:
            with ThreadPoolExecutor(max_workers=self.pool_size) as pool:
                futures = {
                    query: pool.submit(
                        contextvars.copy_context().run, self._score_one, query, attempts
                    )
                    for query in queries
                }
                return {query: future.result() for query, future in futures.items()}
        finally:
            clear_run_id()
