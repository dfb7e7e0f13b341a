"""Promptable adapter layer - abstracts over LLM providers and dummies."""

from sqlanalyzer.adapters.llm.base import AbstractPromptable
from sqlanalyzer.adapters.llm.dummy import NumericalDummy, SQLDummy
from sqlanalyzer.adapters.llm.factory import PromptableCache, create_promptable
from sqlanalyzer.adapters.llm.openai_client import OpenAICompatibleClient
from sqlanalyzer.adapters.llm.rate_limited import RateLimitedPromptable

__all__ = [
    "AbstractPromptable",
    "NumericalDummy",
    "OpenAICompatibleClient",
    "PromptableCache",
    "RateLimitedPromptable",
    "SQLDummy",
    "create_promptable",
]
