# Ariwa - Reconnection Policy
"""
Jittered exponential backoff for stream reconnection.

delay(n) = min(initial * 1.5 ** (n - 1), max_delay) + uniform(0, 1s)

The growth factor and jitter bound are fixed so that many clients retrying at
once spread out instead of reconnecting in lockstep.
"""

import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

GROWTH_FACTOR = 1.5
MAX_JITTER = 1.0  # seconds

DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds


def calculate_reconnect_delay(
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    jitter: Callable[[float, float], float] = random.uniform,
) -> float:
    """Calculate the delay before reconnection attempt ``attempt``.

    Args:
        attempt: Attempt number (1-indexed); values below 1 count as 1
        initial_delay: Base delay in seconds
        max_delay: Ceiling for the exponential part in seconds
        jitter: Random source returning a value in [a, b]

    Returns:
        Delay in seconds, within [base, base + 1s] where
        base = min(initial_delay * 1.5 ** (attempt - 1), max_delay)
    """
    exponent = max(attempt, 1) - 1
    try:
        base = min(initial_delay * GROWTH_FACTOR ** exponent, max_delay)
    except OverflowError:
        base = max_delay
    return base + jitter(0.0, MAX_JITTER)


@dataclass
class ReconnectPolicy:
    """Attempt bookkeeping for one stream client.

    Attributes:
        initial_delay: Base delay in seconds
        max_delay: Ceiling for the exponential part in seconds
        max_attempts: Give up after this many attempts (None for unbounded)
        attempts: Attempts made since the last successful open
    """

    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    max_attempts: Optional[int] = None
    attempts: int = 0

    def can_retry(self) -> bool:
        limit = math.inf if self.max_attempts is None else self.max_attempts
        return self.attempts < limit

    def next_delay(self) -> float:
        """Count a new attempt and return its delay."""
        self.attempts += 1
        return calculate_reconnect_delay(self.attempts, self.initial_delay, self.max_delay)

    def reset(self) -> None:
        self.attempts = 0
