from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

from .backoff import proportional_jitter

if TYPE_CHECKING:
    from recoverkit.core.config import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many attempts to make and how long to wait between them.

    - fixed: every retry waits `delay`.
    - linear: retry n waits `delay * n`.
    - exponential (`backoff_multiplier > 1`): retry n waits
      `delay * backoff_multiplier ** (n - 1)`.

    Every mode is capped by `max_delay`, then optionally jittered by a
    factor in [0.5, 1.5). Durations are seconds. Instances are immutable and
    safe to share between concurrent callers.
    """

    max_attempts: int = 1
    delay: Optional[float] = None
    backoff_multiplier: float = 1.0
    max_delay: Optional[float] = None
    jitter: bool = False
    linear: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")
        if self.delay is not None and self.delay < 0:
            raise ValueError("delay must be >= 0")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if self.linear and self.backoff_multiplier > 1.0:
            raise ValueError("linear backoff cannot use a backoff_multiplier")

    @classmethod
    def exponential_backoff(
        cls,
        max_attempts: int,
        initial_delay: float,
        backoff_multiplier: float = 2.0,
        max_delay: Optional[float] = None,
        jitter: bool = True,
    ) -> "RetryPolicy":
        if backoff_multiplier <= 1.0:
            raise ValueError("backoff_multiplier must be > 1.0 for exponential backoff")
        return cls(
            max_attempts=max_attempts,
            delay=initial_delay,
            backoff_multiplier=backoff_multiplier,
            max_delay=max_delay,
            jitter=jitter,
        )

    @classmethod
    def linear_backoff(
        cls,
        max_attempts: int,
        base_delay: float,
        max_delay: Optional[float] = None,
        jitter: bool = False,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            delay=base_delay,
            max_delay=max_delay,
            jitter=jitter,
            linear=True,
        )

    @classmethod
    def immediate(cls, max_attempts: int) -> "RetryPolicy":
        return cls(max_attempts=max_attempts)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            delay=settings.RETRY_BACKOFF_BASE_SECONDS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            max_delay=settings.RETRY_BACKOFF_MAX_SECONDS,
            jitter=settings.RETRY_USE_JITTER,
        )

    def get_delay(self, attempt_number: int) -> float:
        """
        Delay in seconds before the retry that follows `attempt_number` (1-based).
        """
        if self.delay is None:
            return 0.0

        if self.backoff_multiplier > 1.0:
            delay = self.delay * self.backoff_multiplier ** (attempt_number - 1)
        elif self.linear:
            delay = self.delay * attempt_number
        else:
            delay = self.delay

        if self.max_delay is not None and delay > self.max_delay:
            delay = self.max_delay

        if self.jitter:
            delay = proportional_jitter(delay)
        return delay

    def should_retry(self, current_attempt: int) -> bool:
        return current_attempt < self.max_attempts

    def retries_remaining(self, current_attempt: int) -> int:
        return max(0, self.max_attempts - current_attempt)

    def delays(self) -> Iterator[float]:
        """Yields the wait before each retry (`max_attempts - 1` values)."""
        for attempt in range(1, self.max_attempts):
            yield self.get_delay(attempt)


class RetryPolicies:
    """Predefined policies for common call sites."""

    NONE = RetryPolicy(max_attempts=1)
    ONCE = RetryPolicy.immediate(max_attempts=2)
    STANDARD = RetryPolicy(max_attempts=3, delay=1.0)
    AGGRESSIVE = RetryPolicy.exponential_backoff(
        max_attempts=5, initial_delay=0.1, max_delay=30.0
    )
    CONSERVATIVE = RetryPolicy.linear_backoff(
        max_attempts=3, base_delay=2.0, max_delay=10.0
    )
    NETWORK = RetryPolicy.exponential_backoff(
        max_attempts=4, initial_delay=0.5, backoff_multiplier=1.5, max_delay=15.0
    )
