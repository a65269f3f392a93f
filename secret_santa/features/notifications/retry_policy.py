"""
Retry/backoff policy for notification delivery.

Exponential: the n-th failed attempt waits initial * 2^(n-1) seconds before
the next one, optionally capped. No attempt is scheduled past max_attempts.
"""

from dataclasses import dataclass
from datetime import timedelta

DEFAULT_MAX_ATTEMPTS = 5


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay_seconds: int = 60
    max_delay_seconds: int | None = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must not be negative")

    def backoff(self, attempt_count: int) -> timedelta:
        """Delay after the given (1-based) failed attempt."""
        if attempt_count < 1:
            raise ValueError("attempt_count starts at 1")

        seconds = self.initial_delay_seconds * 2 ** (attempt_count - 1)
        if self.max_delay_seconds is not None:
            seconds = min(seconds, self.max_delay_seconds)
        return timedelta(seconds=seconds)

    def should_retry(self, attempt_count: int) -> bool:
        return attempt_count < self.max_attempts

    def is_exhausted(self, attempt_count: int) -> bool:
        return attempt_count >= self.max_attempts
