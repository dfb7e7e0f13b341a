"""Factory for creating promptables from their API identifier."""

import threading

from sqlanalyzer.adapters.llm.base import AbstractPromptable
from sqlanalyzer.adapters.llm.dummy import NumericalDummy, SQLDummy
from sqlanalyzer.adapters.llm.openai_client import OpenAICompatibleClient
from sqlanalyzer.adapters.llm.rate_limited import RateLimitedPromptable
from sqlanalyzer.adapters.rate_limit.simulated import SimulatedRateLimiter
from sqlanalyzer.core.config import DummySettings, RateLimitSettings, Settings, settings
from sqlanalyzer.core.errors import ValidationAppError
from sqlanalyzer.schemas.promptable_api import PromptableApi
from sqlanalyzer.schemas.records import LLMRecord


def _rate_limited(
    inner: AbstractPromptable, policy: RateLimitSettings
) -> RateLimitedPromptable:
    return RateLimitedPromptable(
        inner,
        SimulatedRateLimiter(
            probability=policy.probability,
            min_seconds=policy.min_seconds,
            max_seconds=policy.max_seconds,
        ),
    )


def _dummy_kwargs(dummy: DummySettings) -> dict[str, float]:
    return {
        "min_latency_seconds": dummy.min_latency_seconds,
        "max_latency_seconds": dummy.max_latency_seconds,
    }


def create_promptable(
    api: PromptableApi, app_settings: Settings | None = None
) -> AbstractPromptable:
    """Instantiate the promptable behind ``api``.

    Reads transport and simulation parameters from ``app_settings``, or from
    sqlanalyzer.core.config.settings when omitted. Every call returns a new
    instance, so each rate limited dummy gets its own limiter.

    Returns:
        AbstractPromptable: Ready-to-use promptable.

    Raises:
        ValidationAppError: If the API has no implementation.
    """
    cfg = app_settings or settings

    base_urls = {
        PromptableApi.DEEP_SEEK: cfg.llm.deepseek_base_url,
        PromptableApi.OPEN_AI: cfg.llm.openai_base_url,
        PromptableApi.GEMINI: cfg.llm.gemini_base_url,
    }
    if api in base_urls:
        return OpenAICompatibleClient(
            provider=api.display_name,
            base_url=base_urls[api],
            timeout_seconds=cfg.llm.timeout_seconds,
            default_retry_after_seconds=cfg.llm.default_retry_after_seconds,
        )

    if api is PromptableApi.DUMMY_SQL:
        return SQLDummy(answer=cfg.dummy.sql_answer, **_dummy_kwargs(cfg.dummy))
    if api is PromptableApi.DUMMY_NUMERICAL:
        return NumericalDummy(max_number=cfg.dummy.max_number, **_dummy_kwargs(cfg.dummy))
    if api is PromptableApi.DUMMY_SQL_RL:
        return _rate_limited(
            SQLDummy(answer=cfg.dummy.sql_answer, **_dummy_kwargs(cfg.dummy)),
            cfg.rate_limit,
        )
    if api is PromptableApi.DUMMY_NUMERICAL_RL:
        return _rate_limited(
            NumericalDummy(max_number=cfg.dummy.max_number, **_dummy_kwargs(cfg.dummy)),
            cfg.rate_limit,
        )

    raise ValidationAppError(
        code="llm_unsupported_api",
        message=f"No promptable implementation for '{api.display_name}'.",
    )


class PromptableCache:
    """Keeps one promptable per LLM record so limiter state survives calls.

    Keyed by ``(llm id, api)``: switching an LLM to another API yields a
    fresh promptable.
    """

    def __init__(self, app_settings: Settings | None = None) -> None:
        self._settings = app_settings
        self._lock = threading.Lock()
        self._promptables: dict[tuple[int, PromptableApi], AbstractPromptable] = {}

    def get(self, llm: LLMRecord) -> AbstractPromptable:
        key = (llm.id, llm.api)
        with self._lock:
            promptable = self._promptables.get(key)
            if promptable is None:
                promptable = create_promptable(llm.api, self._settings)
                self._promptables[key] = promptable
            return promptable
