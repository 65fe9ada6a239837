"""Per-identity fixed-window rate limiter.

One ``RateLimiter`` instance per quota tier. The application builds two at
startup (NFT holders and regular users, see ``build_limiters()``) and stores
them on ``app.state``; tests build their own with short windows and a fake
clock.

Algorithm (fixed window, not sliding):
  - The first admitted request for a key opens a window that ends at
    ``now + window_ms``. All requests until then count against that window.
  - Once ``now > reset_time`` the next request opens a fresh window.
  - A burst straddling two windows can admit up to ``2 × max_requests``
    requests in a short span. That is the accepted trade-off of a fixed window.
  - Denied requests are not counted.

Memory is bounded by active identities: a background sweep task removes every
entry whose window has ended. Sweeping an entry is indistinguishable from the
key never having been seen; the next request simply recreates it.

All timestamps are epoch milliseconds, matching the ``X-RateLimit-Reset``
header.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from osinthub.constants import RATE_LIMIT_SWEEP_INTERVAL_S
from osinthub.utils.logger import get_logger

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


# ─── Data Types ───────────────────────────────────────────────────────────────


@dataclass
class RateLimitEntry:
    key: str
    count: int
    reset_time: int


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission check.

    Attributes:
        allowed:    True if the request may proceed.
        remaining:  Requests left in the current window (0 when denied).
        reset_time: Epoch ms at which the current window ends.
    """

    allowed: bool
    remaining: int
    reset_time: int


# ─── RateLimiter ──────────────────────────────────────────────────────────────


class RateLimiter:
    """Fixed-window request counter keyed by normalised identity.

    Thread-safety:
        ``check_limit`` holds a lock across its read-modify-write, so the
        limiter is safe from worker threads as well as the event loop. The
        sweep takes the same lock per pass.

    Args:
        max_requests:     Requests admitted per key per window.
        window_ms:        Window length in milliseconds.
        sweep_interval_s: Seconds between background sweeps.
        name:             Label used in logs and stats (e.g. ``"nft_holder"``).
        clock:            Returns the current time in epoch ms. Injectable for tests.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        sweep_interval_s: float = RATE_LIMIT_SWEEP_INTERVAL_S,
        name: str = "default",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        if window_ms < 1:
            raise ValueError(f"window_ms must be >= 1, got {window_ms}")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.sweep_interval_s = sweep_interval_s
        self.name = name
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task[None]] = None

    @staticmethod
    def normalize_key(key: str) -> str:
        """Case-fold so ``0xABC`` and ``0xabc`` share one entry."""
        return key.lower()

    # ── Admission ─────────────────────────────────────────────────────────────

    def check_limit(self, key: str) -> RateLimitResult:
        """Count one request against ``key`` and decide whether it is admitted."""
        now = self._clock()
        normalized = self.normalize_key(key)

        with self._lock:
            entry = self._entries.get(normalized)
            if entry is None or now > entry.reset_time:
                entry = RateLimitEntry(key=normalized, count=0, reset_time=now + self.window_ms)
                self._entries[normalized] = entry

            if entry.count >= self.max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_time=entry.reset_time)

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests - entry.count,
                reset_time=entry.reset_time,
            )

    def get_remaining_requests(self, key: str) -> int:
        """Requests left for ``key`` in its current window. Never mutates state."""
        entry = self._entries.get(self.normalize_key(key))
        if entry is None or self._clock() > entry.reset_time:
            return self.max_requests
        return max(0, self.max_requests - entry.count)

    # ── Sweep ─────────────────────────────────────────────────────────────────

    def sweep(self) -> int:
        """Remove every entry whose window has ended. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def get_stats(self) -> dict[str, int]:
        """Sweep, then report how many identities currently hold a window."""
        self.sweep()
        size = len(self._entries)
        return {"total_wallets": size, "active_entries": size}

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_s)
            removed = self.sweep()
            if removed:
                logger.debug(
                    "Rate limit entries swept",
                    limiter=self.name,
                    removed=removed,
                    remaining=len(self._entries),
                )

    def start_sweeper(self) -> asyncio.Task[None]:
        """Start the periodic sweep on the running event loop (idempotent)."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self._run_sweeper(), name=f"ratelimit-sweeper-{self.name}"
            )
            logger.debug(
                "Rate limit sweeper started",
                limiter=self.name,
                interval_s=self.sweep_interval_s,
            )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweeper = self._sweeper, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def __len__(self) -> int:
        return len(self._entries)
