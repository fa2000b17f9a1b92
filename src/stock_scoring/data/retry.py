"""Retry with exponential backoff for blocking provider calls."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError, Timeout

from stock_scoring.config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderRetryError(Exception):
    """Raised when a provider call fails after all retries."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


def is_retryable_error(error: Exception, policy: RetryPolicy) -> tuple[bool, int]:
    """
    Classify an error as transient or permanent.

    Returns:
        Tuple of (is_retryable, max_retries_for_this_error)
    """
    if isinstance(error, HTTPError) and error.response is not None:
        status_code = error.response.status_code
        if status_code == 429 or 500 <= status_code < 600:
            return (True, policy.max_retries)
        # Other 4xx (bad key, unknown symbol) will not recover
        return (False, 0)

    if isinstance(error, (RequestsConnectionError, Timeout)):
        return (True, policy.max_retries)

    error_str = str(error).lower()
    retryable_patterns = [
        "rate limit",
        "too many requests",
        "connection",
        "timeout",
        "timed out",
        "temporary",
    ]
    if any(pattern in error_str for pattern in retryable_patterns):
        return (True, policy.max_retries)

    return (False, 0)


def calculate_backoff(attempt: int, policy: RetryPolicy) -> float:
    """Exponential backoff with +/-25% jitter, capped at max_delay."""
    delay = policy.base_delay * (2**attempt)
    jitter = delay * 0.25 * (2 * random.random() - 1)
    return max(0.0, min(delay + jitter, policy.max_delay))


@dataclass
class RetryResult:
    """Result of a retried call with provenance info."""

    result: Any
    attempts: int
    total_backoff_seconds: float
    source: str

    def to_provenance(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "attempts": self.attempts,
            "total_backoff_seconds": self.total_backoff_seconds,
        }


async def retry_with_backoff(
    operation_name: str,
    sync_func: Callable[[], T],
    policy: RetryPolicy | None = None,
    source: str = "provider",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryResult:
    """
    Run a blocking function in the default executor, retrying transient errors.

    Args:
        operation_name: Name for logging (e.g., "finnhub:/stock/metric(AAPL)")
        sync_func: Blocking function to execute
        policy: Retry budget and backoff parameters
        source: Source label recorded in the result
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        RetryResult with the function's return value

    Raises:
        ProviderRetryError: If retries are exhausted
        Exception: Non-retryable errors propagate unchanged
    """
    policy = policy or RetryPolicy()
    loop = asyncio.get_running_loop()
    last_error: Exception | None = None
    total_backoff = 0.0

    for attempt in range(policy.max_retries + 1):
        try:
            result = await loop.run_in_executor(None, sync_func)
            return RetryResult(
                result=result,
                attempts=attempt + 1,
                total_backoff_seconds=round(total_backoff, 2),
                source=source,
            )
        except Exception as e:
            last_error = e
            is_retryable, error_max_retries = is_retryable_error(e, policy)
            if not is_retryable:
                raise

            if attempt >= min(policy.max_retries, error_max_retries):
                logger.warning(
                    f"{operation_name}: Failed after {attempt + 1} attempts. Last error: {e}"
                )
                raise ProviderRetryError(
                    f"Failed after {attempt + 1} attempts: {e}",
                    last_error=last_error,
                ) from e

            delay = calculate_backoff(attempt, policy)
            total_backoff += delay
            logger.info(
                f"{operation_name}: Attempt {attempt + 1} failed ({e}). "
                f"Retrying in {delay:.1f}s..."
            )
            await sleep(delay)

    raise ProviderRetryError(
        f"Failed after {policy.max_retries + 1} attempts",
        last_error=last_error,
    )
