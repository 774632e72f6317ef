"""Timeout and retry utilities for segmentation requests."""

from __future__ import annotations

import functools
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from exceptions import SegmentationUnavailableError
from log_config.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def run_with_timeout(
    func: Callable[..., T],
    timeout_seconds: float,
    error_message: str = "Segmentation request timed out",
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run function with timeout, raise SegmentationUnavailableError if exceeded.

    Args:
        func: Function to run
        timeout_seconds: Timeout in seconds
        error_message: Error message if timeout occurs
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        SegmentationUnavailableError: If operation times out
        Exception: Any exception raised by func

    Note:
        The worker is not interrupted on timeout; its eventual result is dropped.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="segmentation")
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError:
        logger.error(f"{error_message} after {timeout_seconds}s")
        raise SegmentationUnavailableError(f"{error_message} after {timeout_seconds}s")
    finally:
        # Do not block on a hung request
        executor.shutdown(wait=False)


def exponential_backoff(attempt: int, base_delay: float = 0.5, max_delay: float = 5.0) -> float:
    """Calculate exponential backoff delay.

    Args:
        attempt: Attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds
    """
    delay = base_delay * (2**attempt)
    return min(delay, max_delay)


class RetryPolicy:
    """Configurable retry policy for segmentation requests."""

    def __init__(
        self,
        max_attempts: int = 2,
        base_delay: float = 0.5,
        max_delay: float = 5.0,
        retry_on: tuple[type[Exception], ...] = (SegmentationUnavailableError,),
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Maximum number of attempts (including first)
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay between retries
            retry_on: Exception types worth another attempt
        """
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on

    def should_retry(self, attempt: int, exception: Exception) -> bool:
        if attempt + 1 >= self.max_attempts:
            return False
        return isinstance(exception, self.retry_on)

    def get_delay(self, attempt: int) -> float:
        return exponential_backoff(attempt, self.base_delay, self.max_delay)


def retry_on_failure(
    policy: Optional[RetryPolicy] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator to retry function on failure with exponential backoff.

    Only exceptions listed in ``policy.retry_on`` are retried; anything
    else propagates from the first attempt.
    """
    if policy is None:
        policy = RetryPolicy()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(policy.max_attempts):
                try:
                    if attempt > 0:
                        logger.info(f"Retrying {func.__name__} (attempt {attempt + 1}/{policy.max_attempts})")
                    return func(*args, **kwargs)
                except Exception as e:
                    logger.warning(f"{func.__name__} failed on attempt {attempt + 1}/{policy.max_attempts}: {e}")
                    if not policy.should_retry(attempt, e):
                        raise
                    delay = policy.get_delay(attempt)
                    logger.debug(f"Waiting {delay:.2f}s before retry")
                    time.sleep(delay)
            raise AssertionError("unreachable")  # loop always returns or raises

        return wrapper

    return decorator


__all__ = [
    "RetryPolicy",
    "exponential_backoff",
    "retry_on_failure",
    "run_with_timeout",
]
