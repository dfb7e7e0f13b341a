"""Query generation across LLMs, prompts and repetitions.

For every (prompt, LLM, repetition) combination the service asks the LLM's
promptable for a SQL statement. Work runs on a thread pool because each call
blocks for the provider's latency.

- Temperature is spread evenly over ``[min_temperature, max_temperature]``
  across repetitions (the midpoint when there is only one).
- Rate limits are registered with the shared authorizer and the call is
  retried once the deadline has passed.
- Other generation failures are logged and the combination is skipped.
"""

from __future__ import annotations

import contextvars
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Iterable

from sqlanalyzer.adapters.llm.factory import PromptableCache
from sqlanalyzer.adapters.rate_limit.authorizer import PromptAuthorizer
from sqlanalyzer.core.config import settings
from sqlanalyzer.core.errors import LLMAppError, RateLimitAppError
from sqlanalyzer.core.logging import clear_run_id, set_run_id
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.schemas.records import (
    PROMPT_PLACEHOLDER,
    GeneratedQueryRecord,
    LLMRecord,
    PromptRecord,
)

logger = logging.getLogger(__name__)

RateLimitReporter = Callable[[LLMRecord, datetime], None]


def temperature_for(llm: LLMRecord, iteration: int, repetitions: int) -> float:
    """Temperature of the ``iteration``-th of ``repetitions`` calls to ``llm``."""
    if repetitions > 1:
        span = llm.max_temperature - llm.min_temperature
        return llm.min_temperature + span * (iteration / (repetitions - 1))
    return (llm.min_temperature + llm.max_temperature) / 2


def strip_markdown_fence(sql: str) -> str:
    """Remove a surrounding ```sql ... ``` fence from a model answer."""
    text = sql.strip()
    if text.startswith("```sql"):
        text = text[len("```sql"):]
    elif text.startswith("```"):
        text = text[len("```"):]
    if text.endswith("```"):
        text = text[: -len("```")]
    return text.strip()


class GenerationService:
    """Generates queries for prompts with a set of LLMs.

    Attributes:
        registry: Stores used to resolve sample queries and allocate ids.
        promptables: Per-LLM promptable instances.
        authorizer: Shared retry deadlines per LLM.
    """

    def __init__(
        self,
        registry: StoreRegistry,
        promptables: PromptableCache,
        authorizer: PromptAuthorizer,
        *,
        pool_size: int | None = None,
        on_rate_limit: RateLimitReporter | None = None,
    ) -> None:
        self.registry = registry
        self.promptables = promptables
        self.authorizer = authorizer
        self.pool_size = pool_size or settings.worker.pool_size
        self.on_rate_limit = on_rate_limit
        self._id_lock = threading.Lock()
        self._handed_out: set[int] = set()

    def build_prompt(self, prompt: PromptRecord) -> str:
        """Embed the prompt text in its sample query's prompt context."""
        sample_query = self.registry.sample_queries.get_by_id(prompt.sample_query_id)
        if sample_query is None or PROMPT_PLACEHOLDER not in sample_query.prompt_context:
            return prompt.text
        return sample_query.prompt_context.replace(PROMPT_PLACEHOLDER, prompt.text)

    def _next_id(self) -> int:
        # get_free_id does not reserve ids, so remember the ones handed out in this run
        with self._id_lock:
            while True:
                candidate = self.registry.generated_queries.get_free_id()
                if candidate not in self._handed_out:
                    self._handed_out.add(candidate)
                    return candidate

    def _generate_one(
        self,
        prompt: PromptRecord,
        llm: LLMRecord,
        iteration: int,
        repetitions: int,
    ) -> GeneratedQueryRecord | None:
        temperature = temperature_for(llm, iteration, repetitions)
        promptable = self.promptables.get(llm)
        full_prompt = self.build_prompt(prompt)

        while True:
            self.authorizer.wait_until_authorized(llm.id)
            try:
                answer = promptable.prompt(full_prompt, llm.model, llm.api_key, temperature)
            except RateLimitAppError as exc:
                self.authorizer.register(llm.id, exc.retry_at)
                if self.on_rate_limit is not None:
                    self.on_rate_limit(llm, exc.retry_at)
                continue
            except LLMAppError as exc:
                logger.error(
                    "generation.failed",
                    extra={
                        "llm_id": llm.id,
                        "prompt_id": prompt.id,
                        "iteration": iteration + 1,
                        "repetitions": repetitions,
                        "error_code": exc.code,
                        "error_message": exc.message,
                    },
                )
                return None
            break

        return GeneratedQueryRecord(
            id=self._next_id(),
            sql=strip_markdown_fence(answer),
            generator_id=llm.id,
            prompt_id=prompt.id,
        )

    def generate(
        self,
        llms: Iterable[LLMRecord],
        prompts: Iterable[PromptRecord],
        repetitions: int = 1,
    ) -> set[GeneratedQueryRecord]:
        """Run every combination and return the queries that were produced.

        The returned records are not saved; pass them to the generated query
        store to persist them.

        Raises:
            ValueError: If ``repetitions`` is below 1.
        """
        if repetitions < 1:
            raise ValueError("repetitions must be >= 1")

        llms = list(llms)
        prompts = list(prompts)
        set_run_id(f"gen-{uuid.uuid4().hex[:12]}")
        logger.info(
            "generation.started",
            extra={
                "llms": len(llms),
                "prompts": len(prompts),
                "repetitions": repetitions,
                "pool_size": self.pool_size,
            },
        )

        try:
            with ThreadPoolExecutor(max_workers=self.pool_size) as pool:
                futures = [
                    pool.submit(
                        contextvars.copy_context().run,
                        self._generate_one,
                        prompt,
                        llm,
                        iteration,
                        repetitions,
                    )
                    for prompt in prompts
                    for llm in llms
                    for iteration in range(repetitions)
                ]
                results = {future.result() for future in futures}
        finally:
            with self._id_lock:
                self._handed_out.clear()
            clear_run_id()

        generated = {record for record in results if record is not None}
        logger.info(
            "generation.finished",
            extra={"requested": len(futures), "generated": len(generated)},
        )
        return generated
