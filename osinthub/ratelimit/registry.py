"""The two quota tiers and their lifecycle.

``build_limiters()`` is called once from the lifespan; the resulting
``LimiterRegistry`` lives on ``app.state.limiters`` for the process lifetime.
The registry owns the sweep tasks of both limiters: ``start()`` after the
event loop is running, ``stop()`` on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from osinthub.auth.tokens import IdentityClass
from osinthub.config import RateLimitConfig
from osinthub.ratelimit.limiter import RateLimiter, now_ms


@dataclass
class LimiterRegistry:
    nft_holder: RateLimiter
    regular: RateLimiter

    def for_class(self, identity_class: IdentityClass) -> RateLimiter:
        if identity_class is IdentityClass.NFT_HOLDER:
            return self.nft_holder
        return self.regular

    def start(self) -> None:
        self.nft_holder.start_sweeper()
        self.regular.start_sweeper()

    async def stop(self) -> None:
        await self.nft_holder.stop_sweeper()
        await self.regular.stop_sweeper()

    def describe(self) -> dict[str, Any]:
        """Quota settings plus live entry counts, for /health."""
        return {
            limiter.name: {
                "limit": limiter.max_requests,
                "window_ms": limiter.window_ms,
                **limiter.get_stats(),
            }
            for limiter in (self.nft_holder, self.regular)
        }


def build_limiters(
    config: RateLimitConfig,
    clock: Callable[[], int] = now_ms,
) -> LimiterRegistry:
    return LimiterRegistry(
        nft_holder=RateLimiter(
            max_requests=config.nft_holder_max_requests,
            window_ms=config.window_ms,
            sweep_interval_s=config.sweep_interval_s,
            name="nft_holder",
            clock=clock,
        ),
        regular=RateLimiter(
            max_requests=config.regular_max_requests,
            window_ms=config.window_ms,
            sweep_interval_s=config.sweep_interval_s,
            name="regular",
            clock=clock,
        ),
    )
