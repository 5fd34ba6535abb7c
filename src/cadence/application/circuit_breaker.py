"""
Circuit breaker guarding writes to the primary store.

After `failure_threshold` consecutive unavailable-backend failures the
breaker opens and writes skip the primary entirely. Once `reset_after`
seconds have passed it goes half-open: one write is let through, and its
result either closes the breaker again or re-opens it for another cooldown.
"""

import logging
import time
from collections.abc import Callable
from typing import Literal

from cadence.domain.constants import BREAKER_FAILURE_THRESHOLD, BREAKER_RESET_SECONDS

logger = logging.getLogger(__name__)

BreakerState = Literal["closed", "open", "half_open"]


class CircuitBreaker:
    def __init__(
        self,
        name: str = "primary",
        failure_threshold: int = BREAKER_FAILURE_THRESHOLD,
        reset_after: float = BREAKER_RESET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.reset_after = reset_after
        self._clock = clock
        self.failures = 0
        self.opened_at: float | None = None

    @property
    def state(self) -> BreakerState:
        if self.opened_at is None:
            return "closed"
        if self._clock() - self.opened_at >= self.reset_after:
            return "half_open"
        return "open"

    def allow(self) -> bool:
        """True unless the breaker is open and still cooling down."""
        return self.state != "open"

    def record_success(self) -> None:
        if self.opened_at is not None:
            logger.info(f"Circuit breaker '{self.name}' closed")
        self.failures = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failures += 1
        if self.opened_at is not None or self.failures >= self.failure_threshold:
            # A failed half-open trial restarts the cooldown
            self.opened_at = self._clock()
            logger.warning(
                f"Circuit breaker '{self.name}' open after {self.failures} failures; "
                f"skipping writes for {self.reset_after:.0f}s"
            )
