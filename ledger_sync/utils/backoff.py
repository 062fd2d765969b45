"""Exponential backoff with jitter for reconnects and read retries."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Bounded, jittered exponential backoff.

    delay(attempt) = min(initial * factor ** (attempt - 1), max_delay) ± jitter
    """

    initial: float = 1.0  # Base delay in seconds
    max_delay: float = 60.0  # Ceiling before jitter
    factor: float = 2.0
    jitter: float = 0.2  # ±20% randomness
    rng: Callable[[float, float], float] = field(default=random.uniform, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.initial < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays must be non-negative")
        if self.factor < 1:
            raise ValueError(f"Backoff factor must be >= 1, got {self.factor}")
        if not 0 <= self.jitter <= 1:
            raise ValueError(f"Backoff jitter must be within [0, 1], got {self.jitter}")

    def delay(self, attempt: int) -> float:
        """
        Delay before retry number `attempt` (1-indexed).

        Never negative and never above max_delay * (1 + jitter).
        """
        attempt = max(1, attempt)

        # Stop growing once the ceiling is reached so large attempts cannot overflow
        if self.factor > 1 and 0 < self.initial < self.max_delay:
            ceiling = math.ceil(math.log(self.max_delay / self.initial, self.factor))
            exponent = min(attempt - 1, ceiling)
        else:
            exponent = 0
        delay = min(self.initial * (self.factor ** exponent), self.max_delay)

        jitter_range = delay * self.jitter
        if jitter_range > 0:
            delay += self.rng(-jitter_range, jitter_range)

        return max(0.0, delay)
