"""Reconnection backoff for the push channel.

This module provides:
- ReconnectPolicy: bounded exponential backoff with jitter
- compute_backoff: delay before a given reconnection attempt
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass

# Default reconnection configuration
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 5.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_JITTER = 0.5

# Network-related exceptions that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
)


def compute_backoff(
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    jitter: float = DEFAULT_JITTER,
    rand: Callable[[], float] = random.random,
) -> float:
    """Compute the delay before reconnection attempt number ``attempt``.

    The base delay grows geometrically from ``initial_delay`` and is capped
    at ``max_delay``. Jitter spreads it uniformly over
    ``[base * (1 - jitter), base * (1 + jitter)]``, still capped.

    Args:
        attempt: 1-based attempt number.
        initial_delay: Delay before the first attempt.
        max_delay: Upper bound for any delay.
        multiplier: Growth factor per attempt.
        jitter: Randomization factor in [0, 1].
        rand: Random source returning floats in [0, 1).

    Returns:
        Delay in seconds.
    """
    base = min(initial_delay * (multiplier ** max(attempt - 1, 0)), max_delay)
    if jitter <= 0:
        return base
    spread = base * jitter
    return min(max(base - spread + 2 * spread * rand(), 0.0), max_delay)


@dataclass
class ReconnectPolicy:
    """Configuration for push channel reconnection.

    Attributes:
        max_attempts: Consecutive failed attempts before giving up.
            None retries forever.
        initial_delay: Delay before the first reconnection.
        max_delay: Maximum delay between attempts.
        multiplier: Multiplier for backoff.
        jitter: Randomization factor applied to every delay.
    """

    max_attempts: int | None = DEFAULT_MAX_ATTEMPTS
    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    jitter: float = DEFAULT_JITTER

    def delay_for(self, attempt: int) -> float:
        """Delay before reconnection attempt number ``attempt``."""
        return compute_backoff(
            attempt,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
            jitter=self.jitter,
        )

    def exhausted(self, failures: int) -> bool:
        """Check whether ``failures`` consecutive failures end reconnection."""
        return self.max_attempts is not None and failures >= self.max_attempts
