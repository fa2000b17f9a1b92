"""Async yfinance client for price history and quotes."""

import asyncio
import logging
import os
import weakref
from datetime import datetime, timezone
from typing import Any

import pandas as pd
import yfinance as yf

from stock_scoring.config import RetryPolicy
from stock_scoring.data.retry import retry_with_backoff
from stock_scoring.models import Quote
from stock_scoring.utils.ohlcv import standardize_ohlcv
from stock_scoring.utils.validators import FetchParams, normalize_symbol, safe_float

logger = logging.getLogger(__name__)

# Bounded concurrency for yfinance calls, one semaphore per event loop
DEFAULT_MAX_CONCURRENT = 4
_semaphores: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = (
    weakref.WeakKeyDictionary()
)


def _max_concurrent() -> int:
    try:
        return max(1, int(os.environ.get("YF_MAX_CONCURRENT", DEFAULT_MAX_CONCURRENT)))
    except ValueError:
        return DEFAULT_MAX_CONCURRENT


def _semaphore() -> asyncio.Semaphore:
    loop = asyncio.get_running_loop()
    semaphore = _semaphores.get(loop)
    if semaphore is None:
        semaphore = asyncio.Semaphore(_max_concurrent())
        _semaphores[loop] = semaphore
    return semaphore


async def fetch_history_with_provenance(
    params: FetchParams,
    policy: RetryPolicy | None = None,
) -> tuple[pd.DataFrame, dict[str, Any]]:
    """
    Fetch price history with retry provenance information.

    Returns:
        Tuple of (standardized DataFrame, provenance dict)

    Raises:
        ProviderRetryError: If all retries exhausted for retryable errors
        ValueError: If no data returned
    """

    def _fetch() -> pd.DataFrame:
        df = yf.download(**params.to_yf_kwargs())
        if df is None or df.empty:
            raise ValueError(f"No data returned for {params.symbol}")
        return standardize_ohlcv(df)

    async with _semaphore():
        retry_result = await retry_with_backoff(
            f"fetch_history({params.symbol})",
            _fetch,
            policy=policy,
            source="yfinance",
        )
    return retry_result.result, retry_result.to_provenance()


async def fetch_history(params: FetchParams, policy: RetryPolicy | None = None) -> pd.DataFrame:
    """
    Fetch price history with bounded concurrency and retry logic.

    Args:
        params: Fetch parameters
        policy: Retry budget

    Returns:
        DataFrame with the canonical bar columns
    """
    df, _ = await fetch_history_with_provenance(params, policy)
    return df


async def fetch_quote(symbol: str, policy: RetryPolicy | None = None) -> Quote:
    """
    Fetch the current quote from ``Ticker.fast_info``.

    Missing fields come back as None rather than raising.
    """
    normalized_symbol = normalize_symbol(symbol)

    def _fetch() -> Quote:
        info = yf.Ticker(normalized_symbol).fast_info

        def _get(key: str) -> float | None:
            try:
                return safe_float(info[key])
            except (KeyError, TypeError):
                return None

        return Quote(
            symbol=normalized_symbol,
            last_price=_get("last_price"),
            last_size=_get("last_volume"),
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    async with _semaphore():
        retry_result = await retry_with_backoff(
            f"fetch_quote({normalized_symbol})",
            _fetch,
            policy=policy,
            source="yfinance",
        )
    return retry_result.result
