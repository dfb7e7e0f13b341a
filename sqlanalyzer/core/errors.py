"""Application-level exception types.

Two disjoint families live here:

- Generation failures (``LLMAppError`` and its ``RateLimitAppError``
  specialization) are raised by promptables and always reach the caller.
- Persistence failures (``PersistenceAppError``) are raised by storage
  backends and are absorbed at the entity store boundary.

Neither family derives from the other.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability.

    Fields are optional to keep the shape flexible while encouraging
    consistent keys across the codebase.
    """

    code: str
    message: str
    hint: str
    retry_after: float
    model: str
    record_type: str
    record_id: int
    operation: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class LLMAppError(AppError):
    """Raised when a promptable could not produce a result."""


DEFAULT_RETRY_AFTER_SECONDS = 15


class RateLimitAppError(LLMAppError):
    """Raised when the caller must wait before prompting again.

    The retry point is fixed when the error is created: ``retry_at`` is the
    raise time plus ``retry_after_seconds``.
    """

    def __init__(
        self,
        retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
        *,
        now: datetime | None = None,
        message: str | None = None,
    ) -> None:
        self.retry_after_seconds = max(0, int(retry_after_seconds))
        raised_at = now or datetime.now(timezone.utc)
        self.retry_at = raised_at + timedelta(seconds=self.retry_after_seconds)
        super().__init__(
            code="llm_rate_limited",
            message=message
            or f"LLM hit a rate limit. Retry after: {self.retry_after_seconds}",
            details={"retry_after": float(self.retry_after_seconds)},
        )


@dataclass
class PersistenceAppError(AppError):
    """Raised when a durable-storage operation could not complete.

    Attributes:
        cause: Optional underlying exception (I/O, JSON decoding, ...).
    """

    cause: BaseException | None = field(default=None, compare=False)
