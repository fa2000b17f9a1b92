"""Pytest configuration and fixtures."""

from collections.abc import Callable, Sequence

import pandas as pd
import pytest

from stock_scoring.models import FundamentalSnapshot

BarFactory = Callable[..., list[dict]]


@pytest.fixture
def sample_ohlcv_df() -> pd.DataFrame:
    """Sample OHLCV DataFrame shaped like a yfinance download."""
    return pd.DataFrame(
        {
            "Date": pd.date_range("2024-01-01", periods=10, freq="D"),
            "Open": [100.0, 101.0, 102.0, 101.5, 103.0, 104.0, 103.5, 105.0, 106.0, 105.5],
            "High": [101.0, 102.5, 103.0, 102.5, 104.5, 105.5, 105.0, 106.5, 107.0, 106.5],
            "Low": [99.5, 100.5, 101.0, 100.5, 102.0, 103.0, 102.5, 104.0, 105.0, 104.5],
            "Close": [100.5, 102.0, 101.5, 102.0, 104.0, 103.5, 104.5, 106.0, 105.5, 106.0],
            "Volume": [1000000] * 10,
        }
    ).set_index("Date")


@pytest.fixture
def sample_ohlcv_df_with_adj_close(sample_ohlcv_df: pd.DataFrame) -> pd.DataFrame:
    """Sample OHLCV DataFrame with Adj Close column."""
    df = sample_ohlcv_df.copy()
    df["Adj Close"] = df["Close"] - 0.5
    return df


@pytest.fixture
def make_bars() -> BarFactory:
    """
    Factory for daily bar dicts.

    Each bar gets open = close + open_offset, high/low half a point around
    the close, and a date one day after the previous bar.
    """

    def _make(
        closes: Sequence[float],
        volumes: Sequence[float] | None = None,
        open_offset: float = -0.5,
        start: str = "2024-01-01",
    ) -> list[dict]:
        dates = pd.date_range(start, periods=len(closes), freq="D")
        volumes = volumes if volumes is not None else [1_000_000.0] * len(closes)
        return [
            {
                "date": d.strftime("%Y-%m-%d"),
                "open": c + open_offset,
                "high": max(c, c + open_offset) + 0.5,
                "low": min(c, c + open_offset) - 0.5,
                "close": c,
                "volume": v,
            }
            for d, c, v in zip(dates, closes, volumes)
        ]

    return _make


@pytest.fixture
def rising_bars(make_bars: BarFactory) -> list[dict]:
    """40 steadily rising up-day bars (close 100 -> 139)."""
    return make_bars([100.0 + i for i in range(40)])


@pytest.fixture
def falling_bars(make_bars: BarFactory) -> list[dict]:
    """40 steadily falling down-day bars (close 200 -> 161)."""
    return make_bars([200.0 - i for i in range(40)], open_offset=0.5)


@pytest.fixture
def flat_bars(make_bars: BarFactory) -> list[dict]:
    """30 identical bars at 50 with open == close."""
    return make_bars([50.0] * 30, open_offset=0.0)


@pytest.fixture
def snapshot() -> FundamentalSnapshot:
    """A fully populated fundamentals snapshot."""
    return FundamentalSnapshot(
        symbol="ACME",
        source="finnhub",
        company_name="Acme Corp",
        quarterly_eps_growth=32.0,
        annual_eps_growth=18.0,
        eps_growth_3y=27.5,
        shares_outstanding=30_000_000,
        week_52_high=140.0,
        week_52_low=80.0,
        relative_strength={"52w": 14.0, "13w": 3.0},
        latest_quarter="2024-03-31",
    )
