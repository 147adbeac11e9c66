"""Inbound rate limiting adapters.

The HTTP layer depends on AbstractRateLimiter only, so the in-memory limiter
can be replaced by a shared store when the service runs multiple workers.
"""

from pos_vision.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from pos_vision.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitResult",
]
