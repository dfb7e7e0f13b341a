"""Rate limiter interfaces.

Promptables depend on this abstraction (not the concrete implementation) so
the simulated limiter can be replaced without touching the decorators that
use it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractRateLimiter(ABC):
    """Interface for rate limiters guarding a promptable."""

    @abstractmethod
    def check(self) -> None:
        """Admit the current call or reject it.

        Raises:
            RateLimitAppError: If the caller must wait before prompting.
        """
        raise NotImplementedError
