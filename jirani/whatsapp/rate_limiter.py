"""Fixed-window per-sender rate limiter for the webhook."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from jirani.config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_in: float


class RateLimiter:
    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        # identifier → (count, window reset time)
        self._requests: dict[str, tuple[int, float]] = {}

    def check(self, identifier: str) -> RateLimitDecision:
        now = self._clock()
        self._cleanup(now)
        count, reset_at = self._requests.get(identifier, (0, now + self.window))

        if count >= self.max_requests:
            return RateLimitDecision(False, 0, reset_at - now)

        count += 1
        self._requests[identifier] = (count, reset_at)
        return RateLimitDecision(True, self.max_requests - count, reset_at - now)

    def clear(self) -> None:
        self._requests.clear()

    def _cleanup(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._requests.items() if now > reset_at]
        for key in expired:
            del self._requests[key]
