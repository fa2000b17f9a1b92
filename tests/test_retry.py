"""Tests for provider retry logic."""

import asyncio

import pytest
import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError

from stock_scoring.config import RetryPolicy
from stock_scoring.data.retry import (
    ProviderRetryError,
    calculate_backoff,
    is_retryable_error,
    retry_with_backoff,
)


def _http_error(status_code: int) -> HTTPError:
    response = requests.Response()
    response.status_code = status_code
    return HTTPError(f"{status_code} error", response=response)


class _Recorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestIsRetryableError:
    """Tests for error classification."""

    policy = RetryPolicy(max_retries=3)

    @pytest.mark.parametrize("status", [429, 500, 502, 503])
    def test_transient_statuses(self, status: int) -> None:
        """Rate limits and server errors are retried."""
        assert is_retryable_error(_http_error(status), self.policy) == (True, 3)

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_fail_fast(self, status: int) -> None:
        """Other 4xx errors are permanent."""
        assert is_retryable_error(_http_error(status), self.policy) == (False, 0)

    def test_connection_errors(self) -> None:
        """Transport failures are retried."""
        assert is_retryable_error(RequestsConnectionError("reset"), self.policy)[0]
        assert is_retryable_error(requests.Timeout("slow"), self.policy)[0]

    def test_string_patterns(self) -> None:
        """Wrapped errors are classified by message."""
        assert is_retryable_error(RuntimeError("Too Many Requests"), self.policy)[0]
        assert not is_retryable_error(ValueError("bad symbol"), self.policy)[0]


class TestCalculateBackoff:
    """Tests for backoff delays."""

    def test_within_jitter_band(self) -> None:
        """Delay stays within +/-25% of the exponential base."""
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0)
        for attempt in range(4):
            delay = calculate_backoff(attempt, policy)
            assert 0.75 * 2**attempt <= delay <= 1.25 * 2**attempt

    def test_capped(self) -> None:
        """Delay never exceeds max_delay."""
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
        assert calculate_backoff(10, policy) <= 5.0


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    def test_succeeds_after_transient_failures(self) -> None:
        """Transient errors are retried until success."""
        calls = {"n": 0}

        def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise RequestsConnectionError("connection reset")
            return "ok"

        sleep = _Recorder()
        result = asyncio.run(
            retry_with_backoff("flaky", flaky, RetryPolicy(max_retries=3), sleep=sleep)
        )

        assert result.result == "ok"
        assert result.attempts == 3
        assert len(sleep.delays) == 2
        assert result.to_provenance()["attempts"] == 3

    def test_permanent_error_propagates(self) -> None:
        """Non-retryable errors are raised unchanged without sleeping."""

        def broken() -> None:
            raise ValueError("bad symbol")

        sleep = _Recorder()
        with pytest.raises(ValueError, match="bad symbol"):
            asyncio.run(retry_with_backoff("broken", broken, RetryPolicy(), sleep=sleep))
        assert sleep.delays == []

    def test_exhausted_retries(self) -> None:
        """Exhausting the budget raises ProviderRetryError with the last error."""

        def always_503() -> None:
            raise _http_error(503)

        sleep = _Recorder()
        with pytest.raises(ProviderRetryError) as exc_info:
            asyncio.run(
                retry_with_backoff("down", always_503, RetryPolicy(max_retries=2), sleep=sleep)
            )

        assert isinstance(exc_info.value.last_error, HTTPError)
        assert len(sleep.delays) == 2
