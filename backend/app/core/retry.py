"""Bounded retry combinator.

Used around the invoice numbering + insert step, where a uniqueness
violation means another request took the same number first.
"""
import logging
import time
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def linear_backoff(step: float = 0.05) -> Callable[[int], float]:
    """Delay after the n-th failed attempt is step * (n + 1): 100ms, 150ms, 200ms..."""
    def _delay(failed_attempts: int) -> float:
        return step * (failed_attempts + 1)
    return _delay


def attempt(
    fn: Callable[[], T],
    max_attempts: int,
    backoff: Callable[[int], float],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Callable[[int, BaseException], None] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it succeeds or max_attempts is reached.

    Only exceptions listed in retry_on are retried; anything else propagates
    immediately. After the last failed attempt RetryExhausted is raised with
    the final error attached.

    Args:
        fn: zero-argument callable performing one attempt
        max_attempts: total number of calls allowed (>= 1)
        backoff: maps the number of failed attempts so far to a delay in seconds
        on_retry: optional hook called before sleeping
        sleep: injectable for tests
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    failures = 0
    while True:
        try:
            return fn()
        except retry_on as exc:
            failures += 1
            if failures >= max_attempts:
                raise RetryExhausted(failures, exc) from exc
            delay = backoff(failures)
            if on_retry:
                on_retry(failures, exc)
            logger.warning(
                f"[Retry] Attempt {failures}/{max_attempts} failed ({type(exc).__name__}), "
                f"retrying in {delay * 1000:.0f}ms"
            )
            sleep(delay)
