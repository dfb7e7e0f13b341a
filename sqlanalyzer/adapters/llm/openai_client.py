"""OpenAI-compatible chat completions adapter.

DeepSeek, OpenAI and Gemini all expose an OpenAI-compatible endpoint, so one
adapter built on the official SDK serves all three; only the base URL differs.
"""

import logging
import threading
from typing import Any

from openai import OpenAI, OpenAIError, RateLimitError

from sqlanalyzer.adapters.llm.base import AbstractPromptable
from sqlanalyzer.core.errors import LLMAppError, RateLimitAppError

logger = logging.getLogger(__name__)


def _retry_after_seconds(exc: RateLimitError, default: int) -> int:
    """Read the Retry-After header of a 429 response, falling back to ``default``."""
    response = getattr(exc, "response", None)
    header = response.headers.get("retry-after") if response is not None else None
    if header is None:
        return default
    try:
        return max(0, int(float(header)))
    except ValueError:
        return default


class OpenAICompatibleClient(AbstractPromptable):
    """Client for calling chat completions and returning the answer text.

    Uses the official OpenAI Python SDK. The API key arrives with each call,
    so one SDK client is kept per key.
    """

    def __init__(
        self,
        provider: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
        default_retry_after_seconds: int = 15,
    ) -> None:
        """Initialize the adapter.

        Args:
            provider: Human-readable provider name used in error messages.
            base_url: Custom endpoint; the SDK default (OpenAI) when None.
            timeout_seconds: Timeout for requests in seconds.
            default_retry_after_seconds: Wait assumed when a 429 has no header.
        """
        self.provider = provider
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.default_retry_after_seconds = default_retry_after_seconds
        self._clients: dict[str, OpenAI] = {}
        self._lock = threading.Lock()

    def _client_for(self, credential: str) -> OpenAI:
        with self._lock:
            client = self._clients.get(credential)
            if client is None:
                client = OpenAI(
                    api_key=credential,
                    base_url=self.base_url,
                    timeout=self.timeout_seconds,
                    max_retries=0,
                )
                self._clients[credential] = client
            return client

    def prompt(self, input: str, model: str, credential: str, temperature: float) -> str:
        """Send ``input`` as a single user message and return the reply.

        Raises:
            RateLimitAppError: If the provider answered HTTP 429.
            LLMAppError: If the call fails or the response carries no text.
        """
        request_params: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": input}],
            "temperature": temperature,
            "stream": False,
        }

        try:
            response = self._client_for(credential).chat.completions.create(**request_params)
        except RateLimitError as exc:
            retry_after = _retry_after_seconds(exc, self.default_retry_after_seconds)
            logger.warning(
                "llm.rate_limited",
                extra={"provider": self.provider, "model": model, "retry_after_s": retry_after},
            )
            raise RateLimitAppError(retry_after) from exc
        except OpenAIError as exc:
            raise LLMAppError(
                code="llm_provider_error",
                message=f"{self.provider} error: {exc}",
                details={"model": model},
            ) from exc

        if not response.choices:
            raise LLMAppError(
                code="llm_empty_response",
                message=f"No choices returned from {self.provider}.",
                details={"model": model},
            )

        content = response.choices[0].message.content
        if content is None:
            raise LLMAppError(
                code="llm_empty_response",
                message=f"{self.provider} returned empty response.",
                details={"model": model},
            )

        return content.strip()
