"""Simulated provider throttling.

Notes:
- Per-instance only: each rate limited promptable carries its own limiter.
- Thread-safe: the check-and-maybe-restrict step runs under one lock.
"""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from sqlanalyzer.adapters.rate_limit.base import AbstractRateLimiter
from sqlanalyzer.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)


class SimulatedRateLimiter(AbstractRateLimiter):
    """Randomly enters a restricted state, like a bursty external API.

    The limiter is either unrestricted or restricted until an instant. While
    restricted, every call fails with the whole seconds left. Each permitted
    call may start a new restriction, which applies from the next call on.
    The restriction ends lazily: the first call at or after the end instant
    is permitted again.
    """

    def __init__(
        self,
        *,
        probability: float = 0.05,
        min_seconds: int = 5,
        max_seconds: int = 20,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the simulated rate limiter.

        Args:
            probability: Chance that a permitted call starts a restriction.
            min_seconds: Shortest restriction in seconds (inclusive).
            max_seconds: Longest restriction in seconds (inclusive).
            clock: Time source function returning UNIX time in seconds.
            rng: Random source for the restriction draw and duration.

        Raises:
            ValueError: If the probability or the duration bounds are invalid.
        """
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be within [0, 1]")
        if min_seconds < 0:
            raise ValueError("min_seconds must be >= 0")
        if min_seconds > max_seconds:
            raise ValueError("min_seconds must be <= max_seconds")

        self._probability = probability
        self._min_seconds = min_seconds
        self._max_seconds = max_seconds
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._restricted_until: float | None = None

    @property
    def restricted_until(self) -> float | None:
        """UNIX time the current restriction ends, or None if unrestricted."""
        with self._lock:
            return self._restricted_until

    def check(self) -> None:
        """Reject the call while restricted; otherwise maybe start a restriction.

        Raises:
            RateLimitAppError: While a restriction is active.
        """
        with self._lock:
            now = self._clock()

            if self._restricted_until is not None:
                if now < self._restricted_until:
                    remaining = max(0, int(math.ceil(self._restricted_until - now)))
                    raise RateLimitAppError(
                        remaining,
                        now=datetime.fromtimestamp(now, tz=timezone.utc),
                    )
                self._restricted_until = None

            if self._rng.random() < self._probability:
                duration = self._rng.randint(self._min_seconds, self._max_seconds)
                self._restricted_until = now + duration
                logger.info(
                    "rate_limit.restricted",
                    extra={"duration_s": duration},
                )
