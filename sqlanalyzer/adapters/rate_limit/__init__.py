"""Rate limiting adapters.

This package holds the limiter abstraction, the simulated limiter used by the
rate limited dummies, and the per-LLM authorizer that makes workers wait out
provider throttling.
"""

from sqlanalyzer.adapters.rate_limit.authorizer import PromptAuthorizer
from sqlanalyzer.adapters.rate_limit.base import AbstractRateLimiter
from sqlanalyzer.adapters.rate_limit.simulated import SimulatedRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "PromptAuthorizer",
    "SimulatedRateLimiter",
]
