"""Trend and dispersion calculations over normalized bar series."""

import math

import pandas as pd

from stock_scoring.models import TrendStrength, VolatilityLevel

# Canonical 30-week moving average in trading days
MA_WINDOW = 150
MA_MIN_BARS = 10
VOLATILITY_WINDOW = 20
VOLATILITY_MIN_BARS = 5
TREND_WINDOW = 30
TREND_MIN_BARS = 10


def calculate_sma(prices: pd.Series, period: int) -> pd.Series:
    """
    Calculate Simple Moving Average.

    Args:
        prices: Price series (typically close prices)
        period: Number of periods for the average

    Returns:
        SMA series
    """
    return prices.rolling(window=period, min_periods=period).mean()


def trailing(series: pd.Series | pd.DataFrame, window: int):
    """Last ``min(window, len)`` rows."""
    if window <= 0:
        return series.iloc[0:0]
    return series.iloc[-min(window, len(series)):]


def adaptive_moving_average(close: pd.Series) -> float:
    """
    Mean close over the trailing ``min(150, n)`` bars.

    Returns 0.0 (unavailable) with fewer than 10 bars.
    """
    if len(close) < MA_MIN_BARS:
        return 0.0
    sma = calculate_sma(close.reset_index(drop=True), min(MA_WINDOW, len(close)))
    value = sma.iloc[-1]
    return 0.0 if pd.isna(value) else float(value)


def percent_vs(value: float, reference: float) -> float:
    """Percent distance of value from reference; 0.0 when reference <= 0."""
    if not reference or reference <= 0:
        return 0.0
    return (value - reference) / reference * 100


def calculate_simple_returns(close: pd.Series) -> pd.Series:
    """Bar-over-bar simple returns with the first return defined as 0."""
    returns = close / close.shift(1) - 1
    if len(returns):
        returns.iloc[0] = 0.0
    return returns.fillna(0.0)


def calculate_returns(prices: pd.Series, periods: int) -> float | None:
    """
    Calculate return over a specific number of periods.

    Args:
        prices: Price series
        periods: Number of periods to look back

    Returns:
        Return as decimal (0.15 = 15%), or None if insufficient data
    """
    if len(prices) < periods + 1:
        return None

    current = prices.iloc[-1]
    past = prices.iloc[-periods - 1]

    if pd.isna(current) or pd.isna(past) or past == 0:
        return None

    return float((current - past) / past)


def window_change_pct(close: pd.Series) -> float | None:
    """Percent change from first to last value; None for fewer than 2 values."""
    if len(close) < 2:
        return None
    change = calculate_returns(close, len(close) - 1)
    return None if change is None else change * 100


def calculate_volatility_pct(close: pd.Series) -> float:
    """
    Standard deviation of simple returns over the trailing 20 bars, in percent.

    Uses the population standard deviation. Returns 0.0 with fewer than 5
    bars.
    """
    if len(close) < VOLATILITY_MIN_BARS:
        return 0.0
    returns = calculate_simple_returns(trailing(close, VOLATILITY_WINDOW).reset_index(drop=True))
    std = returns.std(ddof=0)
    if pd.isna(std) or math.isinf(std):
        return 0.0
    return float(std) * 100


def calculate_trend_pct(close: pd.Series) -> float:
    """
    First-to-last percent change over the trailing 30 bars.

    Returns 0.0 with fewer than 10 bars in the window.
    """
    window = trailing(close, TREND_WINDOW)
    if len(window) < TREND_MIN_BARS:
        return 0.0
    change = window_change_pct(window)
    return 0.0 if change is None else change


def trend_strength(trend_pct: float) -> TrendStrength:
    if abs(trend_pct) > 10:
        return "Strong"
    if abs(trend_pct) > 5:
        return "Moderate"
    return "Weak"


def volatility_level(volatility_pct: float) -> VolatilityLevel:
    if volatility_pct > 3:
        return "High"
    if volatility_pct > 1.5:
        return "Medium"
    return "Low"


def count_up_down_days(bars: pd.DataFrame) -> tuple[int, int]:
    """Count up-days (close > open) and down-days (close < open)."""
    if bars.empty:
        return 0, 0
    up = int((bars["close"] > bars["open"]).sum())
    down = int((bars["close"] < bars["open"]).sum())
    return up, down


def average_volume(bars: pd.DataFrame) -> float:
    """Mean volume of the given bars; 0.0 for an empty frame."""
    if bars.empty:
        return 0.0
    value = bars["volume"].mean()
    return 0.0 if pd.isna(value) else float(value)
