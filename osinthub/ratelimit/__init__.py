"""OSINT Hub per-identity quota enforcement.

Public API:
  - RateLimiter        — fixed-window counter with background sweep
  - RateLimitResult    — outcome of check_limit()
  - LimiterRegistry    — the two quota tiers, selected by identity class
  - build_limiters()   — construct both tiers from RateLimitConfig
"""

from __future__ import annotations

from osinthub.ratelimit.limiter import RateLimitEntry, RateLimiter, RateLimitResult
from osinthub.ratelimit.registry import LimiterRegistry, build_limiters

__all__ = [
    "RateLimitEntry",
    "RateLimiter",
    "RateLimitResult",
    "LimiterRegistry",
    "build_limiters",
]
