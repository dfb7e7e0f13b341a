"""Supported promptable backends."""

from __future__ import annotations

from enum import Enum


class PromptableApi(str, Enum):
    """Provider APIs and simulated implementations an LLM record can use.

    The value is what gets persisted; ``display_name`` is for humans.
    """

    DEEP_SEEK = "deep_seek"
    OPEN_AI = "open_ai"
    GEMINI = "gemini"
    ANTHROPIC_CLAUDE = "anthropic_claude"
    DUMMY_NUMERICAL = "dummy_numerical"
    DUMMY_SQL = "dummy_sql"
    DUMMY_NUMERICAL_RL = "dummy_numerical_rl"
    DUMMY_SQL_RL = "dummy_sql_rl"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_dummy(self) -> bool:
        return self.value.startswith("dummy_")

    @property
    def is_rate_limited(self) -> bool:
        return self.value.endswith("_rl")

    def __str__(self) -> str:
        return self.display_name


_DISPLAY_NAMES = {
    PromptableApi.DEEP_SEEK: "DeepSeek",
    PromptableApi.OPEN_AI: "OpenAI",
    PromptableApi.GEMINI: "Gemini",
    PromptableApi.ANTHROPIC_CLAUDE: "Claude",
    PromptableApi.DUMMY_NUMERICAL: "Numerical dummy",
    PromptableApi.DUMMY_SQL: "SQL dummy",
    PromptableApi.DUMMY_NUMERICAL_RL: "Rate limited numerical dummy",
    PromptableApi.DUMMY_SQL_RL: "Rate limited SQL dummy",
}
