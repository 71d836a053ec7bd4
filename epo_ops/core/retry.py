"""
Retry policy for OPS requests.

Decides which failures are worth another attempt and how long to wait
between attempts. Stateless: one policy instance is shared by every call
made through a client.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional

import httpx

from epo_ops.core.api_errors import APIError

logger = logging.getLogger(__name__)

# HTTP statuses that indicate a transient upstream condition
RETRYABLE_STATUS_CODES = frozenset({408, 500, 502, 503, 504})

# Cap on the exponent so long retry chains cannot overflow the delay
MAX_BACKOFF_EXPONENT = 10

# Low-level failures worth retrying: connect/read/write/close errors,
# timeouts, and connections closed mid-response (truncated body / EOF).
_RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
    EOFError,
)


def is_retryable_status(status_code: int) -> bool:
    """Return True for 408 and the 5xx codes OPS uses for transient failures."""
    return status_code in RETRYABLE_STATUS_CODES


def is_retryable_error(error: BaseException) -> bool:
    """
    Return True if the error is transient and the request may be repeated.

    APIError subclasses carry their own decision in ``retryable``
    (authentication, not-found and quota errors are never retried).
    Unknown exception types are not retried.
    """
    if error is None:
        return False
    if isinstance(error, APIError):
        return error.retryable
    return isinstance(error, _RETRYABLE_EXCEPTIONS)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry limits and exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Delay in seconds before the first retry
        backoff_factor: Multiplier applied per attempt
        max_backoff: Upper bound on a single delay in seconds
        jitter_factor: Random +/- fraction applied to each delay (0 disables)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_backoff: float = 60.0
    jitter_factor: float = 0.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay before the retry that follows ``attempt`` (0-indexed).

        1s, 2s, 4s, 8s... with the defaults. A zero base delay always
        yields zero so tests run without sleeping.
        """
        if self.base_delay <= 0:
            return 0.0

        exponent = min(max(attempt, 0), MAX_BACKOFF_EXPONENT)
        delay = min(self.base_delay * (self.backoff_factor ** exponent), self.max_backoff)

        if self.jitter_factor > 0:
            jitter = delay * self.jitter_factor * (2 * random.random() - 1)
            delay = max(0.0, delay + jitter)

        return delay

    def should_retry(
        self,
        attempt: int,
        error: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ) -> bool:
        """
        Decide whether another attempt follows ``attempt`` (0-indexed).

        Exactly one of ``error`` / ``status_code`` describes the outcome.
        """
        if error is not None:
            retryable = is_retryable_error(error)
        elif status_code is not None:
            retryable = is_retryable_status(status_code)
        else:
            return False

        if retryable and attempt >= self.max_retries:
            logger.debug(f"Retry limit reached after {attempt + 1} attempts")
            return False
        return retryable
