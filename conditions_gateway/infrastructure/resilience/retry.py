"""Retry policy as an explicit state machine over attempt outcomes"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


class RetryVerdict(str, Enum):
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"  # Non-retryable failure, stopped immediately
    EXHAUSTED = "exhausted"  # Retryable failures used up every attempt


@dataclass(frozen=True)
class RetryState:
    """Attempt index, delay before that attempt, and the verdict once terminal"""

    attempt: int = 0
    next_delay: float = 0.0
    verdict: Optional[RetryVerdict] = None

    @property
    def done(self) -> bool:
        return self.verdict is not None

    @property
    def attempts_made(self) -> int:
        return self.attempt + 1 if self.done else self.attempt


class RetryPolicy:
    """
    Decide whether and when to retry an upstream call.

    Retry strategy:
    - Delay before attempt n: 0ms, 200ms, 500ms (last delay repeats if
      max_attempts exceeds the table)
    - Retries network errors, timeouts, 429 and 5xx
    - Stops immediately on other 4xx and malformed responses
    """

    def __init__(self, delays_ms: Sequence[int] = (0, 200, 500), max_attempts: int = 3):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if not delays_ms:
            raise ValueError("delays_ms must not be empty")
        self.delays_ms = tuple(delays_ms)
        self.max_attempts = max_attempts

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before attempt `attempt` (0-based)"""
        index = min(attempt, len(self.delays_ms) - 1)
        return self.delays_ms[index] / 1000

    def start(self) -> RetryState:
        return RetryState(attempt=0, next_delay=self.delay_before(0))

    def advance(self, state: RetryState, outcome: AttemptOutcome) -> RetryState:
        if state.done:
            raise ValueError("Retry state is already terminal")

        if outcome is AttemptOutcome.SUCCESS:
            return RetryState(state.attempt, 0.0, RetryVerdict.SUCCEEDED)
        if outcome is AttemptOutcome.NON_RETRYABLE:
            return RetryState(state.attempt, 0.0, RetryVerdict.REJECTED)

        next_attempt = state.attempt + 1
        if next_attempt >= self.max_attempts:
            return RetryState(state.attempt, 0.0, RetryVerdict.EXHAUSTED)
        return RetryState(next_attempt, self.delay_before(next_attempt))

    @staticmethod
    def classify_status(status_code: int) -> AttemptOutcome:
        if status_code == 429 or 500 <= status_code <= 599:
            return AttemptOutcome.RETRYABLE
        if 200 <= status_code <= 299:
            return AttemptOutcome.SUCCESS
        return AttemptOutcome.NON_RETRYABLE
