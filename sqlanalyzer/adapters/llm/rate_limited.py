"""Rate limiting decorator for promptables."""

from __future__ import annotations

from sqlanalyzer.adapters.llm.base import AbstractPromptable
from sqlanalyzer.adapters.rate_limit.base import AbstractRateLimiter


class RateLimitedPromptable(AbstractPromptable):
    """Wraps any promptable behind a rate limiter.

    The limiter is consulted before every call; when it admits the call the
    wrapped promptable's answer is returned unchanged.
    """

    def __init__(self, inner: AbstractPromptable, limiter: AbstractRateLimiter) -> None:
        self.inner = inner
        self.limiter = limiter

    def prompt(self, input: str, model: str, credential: str, temperature: float) -> str:
        self.limiter.check()
        return self.inner.prompt(input, model, credential, temperature)
