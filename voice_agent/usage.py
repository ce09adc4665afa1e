"""
API cost protection.

Every agent turn passes three checks before it may call the completion API:
a cooldown since the previous request, a rolling per-minute request cap,
and an estimated session cost ceiling. A request slot is reserved before
the call so that overlapping utterances count against the limits at once;
the cost is added once the call has finished.
"""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable, Dict, Optional

from logging_setup import get_logger, Component

logger = get_logger(Component.ENGINE)

COST_PER_1K_INPUT_TOKENS = 0.003
COST_PER_1K_OUTPUT_TOKENS = 0.015

# Conservative estimate; short tokens, CJK and emoji push the real ratio down.
CHARS_PER_TOKEN = 2

RATE_WINDOW_SECONDS = 60.0


def estimate_cost(input_tokens: int, output_tokens: int) -> float:
    return (input_tokens / 1000) * COST_PER_1K_INPUT_TOKENS + (output_tokens / 1000) * COST_PER_1K_OUTPUT_TOKENS


def estimate_tokens(chars: int) -> int:
    return math.ceil(chars / CHARS_PER_TOKEN)


class UsageGuard:
    """Cooldown, rate limit and session cost tracking for completion requests."""

    def __init__(
        self,
        *,
        rate_limit_per_minute: int = 10,
        cooldown_ms: int = 2000,
        session_cost_limit: float = 1.0,
        now: Optional[Callable[[], float]] = None,
    ):
        self.rate_limit_per_minute = rate_limit_per_minute
        self.cooldown_ms = cooldown_ms
        self.session_cost_limit = session_cost_limit
        self._now = now or time.monotonic
        self._request_times: deque[float] = deque()
        self._last_request: Optional[float] = None
        self.session_cost = 0.0
        self.request_count = 0

    def _prune(self, now: float) -> None:
        cutoff = now - RATE_WINDOW_SECONDS
        while self._request_times and self._request_times[0] <= cutoff:
            self._request_times.popleft()

    def check(self) -> Optional[str]:
        """Return a user-facing refusal message, or None if a request may go out."""
        now = self._now()

        if self._last_request is not None and (now - self._last_request) * 1000 < self.cooldown_ms:
            logger.warning("Cooldown active, request throttled", cooldown_ms=self.cooldown_ms)
            return "Please wait before speaking again..."

        self._prune(now)
        if len(self._request_times) >= self.rate_limit_per_minute:
            logger.warning("Rate limit exceeded, request blocked", limit=self.rate_limit_per_minute)
            return f"Rate limit reached ({self.rate_limit_per_minute}/min). Please wait."

        if self.session_cost >= self.session_cost_limit:
            logger.warning(
                "Session cost limit reached, request blocked",
                session_cost=round(self.session_cost, 4),
                limit=self.session_cost_limit,
            )
            return f"Session cost limit (${self.session_cost_limit:.2f}) reached. Adjust in Settings."

        return None

    def reserve(self) -> None:
        now = self._now()
        self._request_times.append(now)
        self._last_request = now
        self.request_count += 1
        logger.debug("Request slot reserved", session_requests=self.request_count)

    def record_cost(self, input_chars: int, output_chars: int) -> float:
        """Add the estimated cost of one request; returns the new session total."""
        self.session_cost += estimate_cost(estimate_tokens(input_chars), estimate_tokens(output_chars))
        logger.debug("Request cost recorded", session_cost=round(self.session_cost, 4))
        return self.session_cost

    def stats(self) -> Dict[str, float]:
        return {"cost": self.session_cost, "requests": self.request_count}

    def reset(self) -> None:
        self._request_times.clear()
        self._last_request = None
        self.session_cost = 0.0
        self.request_count = 0
        logger.info("Session usage reset")
