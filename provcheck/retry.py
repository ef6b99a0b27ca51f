"""
Backoff and circuit breaking for registry calls.

The registry adapter wraps its HTTP request with both: a lookup that times
out gets a bounded number of extra attempts, and once lookups keep failing
the breaker stops sending requests for a while so a batch run degrades to
"no registry data" instead of waiting on every provider.
"""

import functools
import time
from datetime import datetime
from typing import Callable, Iterator, Optional, Tuple, Type

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class RetryError(Exception):
    """All attempts failed. The last failure is chained as __cause__."""


class CircuitOpenError(Exception):
    """The breaker refused the call without trying it."""


def backoff_delays(
    retries: int, base_delay: float, max_delay: float, exponential_base: float
) -> Iterator[float]:
    """Yield the wait before each retry: base, base*k, base*k^2, ... capped."""
    delay = base_delay
    for _ in range(retries):
        yield min(delay, max_delay)
        delay *= exponential_base


def exponential_backoff(
    max_retries: int = 1,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry the decorated function when it raises one of `exceptions`.

    Args:
        max_retries: Extra attempts after the first one (0 = no retry)
        base_delay: Wait before the first retry, in seconds
        max_delay: Upper bound for any single wait
        exponential_base: Multiplier applied to the wait after each retry
        exceptions: Exception types worth another attempt; anything else
            propagates immediately
        on_retry: Called as on_retry(attempt, error, delay) before waiting
        sleep: Wait function, replaceable in tests

    Raises:
        RetryError: When the last attempt fails too
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delays = backoff_delays(max_retries, base_delay, max_delay, exponential_base)
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    delay = next(delays, None)
                    if delay is None:
                        raise RetryError(f"Gave up after {attempt + 1} attempt(s): {e}") from e
                    attempt += 1
                    if on_retry:
                        on_retry(attempt, e, delay)
                    sleep(delay)

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Counts consecutive failures of a dependency.

    closed: calls go through. After `failure_threshold` failures in a row
    the breaker opens and refuses calls until `recovery_timeout` seconds
    have passed since the last failure. The next call is then a half-open
    trial call: success closes the breaker, as does an exception other than
    `expected_exception`; an expected failure opens it again.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: Type[Exception] = Exception,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            failure_threshold: Consecutive failures that open the breaker
            recovery_timeout: Seconds to stay open before allowing a trial call
            expected_exception: Only this type counts as a failure
            clock: Source of the current time
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.clock = clock
        self.reset()

    def reset(self):
        """Close the breaker and forget past failures."""
        self.state = self.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None

    def seconds_until_trial(self) -> float:
        if self.last_failure_time is None:
            return 0.0
        elapsed = (self.clock() - self.last_failure_time).total_seconds()
        return max(0.0, self.recovery_timeout - elapsed)

    def allow_request(self) -> bool:
        if self.state != self.OPEN:
            return True
        if self.seconds_until_trial() > 0:
            return False
        self.state = self.HALF_OPEN
        return True

    def record_success(self):
        self.state = self.CLOSED
        self.failure_count = 0

    def record_failure(self):
        self.failure_count += 1
        self.last_failure_time = self.clock()
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = self.OPEN

    def call(self, func: Callable, *args, **kwargs):
        """
        Run func through the breaker.

        Raises:
            CircuitOpenError: The breaker is open and the call was not made
        """
        if not self.allow_request():
            raise CircuitOpenError(
                f"Circuit breaker is OPEN. Retry after {self.seconds_until_trial():.0f}s"
            )
        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self.record_failure()
            raise
        except Exception:
            # Not a dependency failure; settles a half-open trial call
            self.record_success()
            raise
        self.record_success()
        return result


def should_retry_http_status(status_code: int) -> bool:
    """True for timeouts, rate limiting and 5xx gateway/server errors."""
    return status_code in RETRYABLE_STATUS_CODES
