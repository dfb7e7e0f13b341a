"""Simulated promptables for exercising the pipeline without a provider.

Both dummies ignore model, credential and temperature. They sleep for a
random latency and then answer, so the surrounding workers see realistic,
bounded timing.
"""

from __future__ import annotations

import random
import time
from typing import Callable

from sqlanalyzer.adapters.llm.base import AbstractPromptable
from sqlanalyzer.core.config import settings


class _LatencyDummy(AbstractPromptable):
    def __init__(
        self,
        *,
        min_latency_seconds: float | None = None,
        max_latency_seconds: float | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_latency = (
            settings.dummy.min_latency_seconds
            if min_latency_seconds is None
            else min_latency_seconds
        )
        self._max_latency = (
            settings.dummy.max_latency_seconds
            if max_latency_seconds is None
            else max_latency_seconds
        )
        if self._min_latency > self._max_latency:
            raise ValueError("min_latency_seconds must be <= max_latency_seconds")
        self._rng = rng or random.Random()
        self._sleep = sleep

    def _simulate_latency(self) -> None:
        self._sleep(self._rng.uniform(self._min_latency, self._max_latency))


class SQLDummy(_LatencyDummy):
    """Always answers with the same canned SQL statement."""

    def __init__(self, *, answer: str | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.answer = settings.dummy.sql_answer if answer is None else answer

    def prompt(self, input: str, model: str, credential: str, temperature: float) -> str:
        self._simulate_latency()
        return self.answer


class NumericalDummy(_LatencyDummy):
    """Answers with a random integer in ``[0, max_number]``."""

    def __init__(self, *, max_number: int | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.max_number = settings.dummy.max_number if max_number is None else max_number

    def prompt(self, input: str, model: str, credential: str, temperature: float) -> str:
        self._simulate_latency()
        return str(self._rng.randint(0, self.max_number))
