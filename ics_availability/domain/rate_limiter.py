"""Fixed-window per-caller rate limiting.

Each caller identity gets a counter that lives for 60 seconds from its first
request. Requests are admitted while the counter is at most the configured
maximum. Rejected requests still increment the counter; the window end is
fixed at the first request, so this does not delay recovery.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from ics_availability.core.config_loader import DEFAULT_RATE_LIMIT_PER_MINUTE
from ics_availability.core.kv_store import CounterStore
from ics_availability.exceptions import RateLimitError

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "rate_limit:"
WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one rate-limit check."""

    allowed: bool
    count: int
    limit: int
    reset_seconds: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimiter:
    """Fixed-window counter keyed by a hash of the caller identity."""

    def __init__(
        self,
        store: CounterStore,
        max_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE,
        window_seconds: int = WINDOW_SECONDS,
    ):
        """Initialize rate limiter.

        Args:
            store: Counter store providing atomic increment-with-window
            max_per_minute: Admitted requests per caller per window
            window_seconds: Window length
        """
        self.store = store
        self.max_per_minute = max(1, int(max_per_minute))
        self.window_seconds = window_seconds
        self._stats = {"total_requests": 0, "rejected_requests": 0}

        logger.info(
            "RateLimiter initialized: %d requests per %ds per caller",
            self.max_per_minute,
            self.window_seconds,
        )

    @staticmethod
    def caller_key(caller: str) -> str:
        # MD5 keeps raw addresses out of the store, not a security boundary
        return RATE_LIMIT_PREFIX + hashlib.md5(caller.encode()).hexdigest()

    async def check(self, caller: str) -> RateLimitDecision:
        """Count one request from ``caller`` and decide whether to admit it."""
        state = await self.store.increment_with_window(self.caller_key(caller), self.window_seconds)
        allowed = state.count <= self.max_per_minute

        self._stats["total_requests"] += 1
        if not allowed:
            self._stats["rejected_requests"] += 1
            logger.warning(
                "Rate limit exceeded: caller=%s count=%d limit=%d reset_in=%ds",
                caller[:15] + "..." if len(caller) > 15 else caller,
                state.count,
                self.max_per_minute,
                state.reset_seconds,
            )

        return RateLimitDecision(
            allowed=allowed,
            count=state.count,
            limit=self.max_per_minute,
            reset_seconds=state.reset_seconds,
        )

    async def admit(self, caller: str) -> bool:
        """Return True when the request from ``caller`` is within budget."""
        decision = await self.check(caller)
        return decision.allowed

    async def enforce(self, caller: str) -> RateLimitDecision:
        """Like ``check`` but raise RateLimitError when the request is rejected."""
        decision = await self.check(caller)
        if not decision.allowed:
            raise RateLimitError(retry_after=decision.reset_seconds)
        return decision

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)
