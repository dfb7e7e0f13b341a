"""Per-LLM retry deadlines shared by all workers of a process.

When one worker hits a provider rate limit, the retry point is registered
here so every other worker prompting the same LLM waits too instead of
hammering the provider.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PromptAuthorizer:
    """Blocks callers until an LLM may be prompted again."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._deadlines: dict[int, datetime] = {}

    def retry_at(self, llm_id: int) -> datetime | None:
        """Return the registered deadline of ``llm_id``, if any."""
        with self._lock:
            return self._deadlines.get(llm_id)

    def register(self, llm_id: int, retry_at: datetime) -> None:
        """Record that ``llm_id`` may not be prompted before ``retry_at``.

        Deadlines only ever move later; an earlier instant is ignored.
        """
        with self._lock:
            existing = self._deadlines.get(llm_id)
            if existing is None or existing < retry_at:
                self._deadlines[llm_id] = retry_at
                logger.info(
                    "authorizer.deadline_registered",
                    extra={"llm_id": llm_id, "retry_at": retry_at.isoformat()},
                )

    def wait_until_authorized(self, llm_id: int) -> None:
        """Sleep until the newest deadline of ``llm_id`` has passed.

        Returns immediately when no deadline is registered. A deadline that
        is extended while waiting is honoured.
        """
        while True:
            deadline = self.retry_at(llm_id)
            if deadline is None:
                return
            remaining = (deadline - self._clock()).total_seconds()
            if remaining <= 0:
                return
            logger.debug(
                "authorizer.waiting",
                extra={"llm_id": llm_id, "wait_s": round(remaining, 3)},
            )
            self._sleep(remaining)
