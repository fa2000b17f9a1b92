"""Weinstein-style stage analysis.

Stage 1: Accumulation (base building) - consolidation, the catch-all
Stage 2: Advancing - above the moving average and trending up
Stage 3: Distribution - volatile and flat near the highs
Stage 4: Declining - below the moving average and trending down

The stage is recomputed from the current snapshot on every call; there is no
memory of a previous stage.
"""

import logging

import pandas as pd

from stock_scoring.models import Stage, StageAnalysis, TrendStrength, VolatilityLevel
from stock_scoring.utils.indicators import (
    MA_MIN_BARS,
    MA_WINDOW,
    TREND_WINDOW,
    adaptive_moving_average,
    calculate_trend_pct,
    calculate_volatility_pct,
    count_up_down_days,
    percent_vs,
    trailing,
    trend_strength,
    volatility_level,
)
from stock_scoring.utils.ohlcv import BarInput, normalize_bars
from stock_scoring.utils.validators import safe_positive

logger = logging.getLogger(__name__)

STAGE_NAMES: dict[int, str] = {
    1: "Stage 1: Accumulation",
    2: "Stage 2: Advancing",
    3: "Stage 3: Distribution",
    4: "Stage 4: Declining",
}

# Rule thresholds (percent)
ADVANCE_TREND_MIN = 2.0
DECLINE_TREND_MAX = -2.0
DAY_COUNT_RATIO = 1.2
DISTRIBUTION_MA_FLOOR = -5.0
DISTRIBUTION_NEAR_HIGH = 0.95
DISTRIBUTION_FLAT_BAND = 3.0


def analyze_stage(current_price: float | None, bars: BarInput) -> StageAnalysis:
    """
    Classify the market-cycle stage of a bar series.

    Works with any amount of data. Zero usable bars gives an "Insufficient
    Data" result; fewer than 10 bars (no moving average available) gives a
    simplified above/below-average "(Limited Data)" result; longer series run
    the full rule set and are labelled "(Estimated)" until the 150-bar
    window can be filled.

    Args:
        current_price: Latest price; non-positive, non-finite or missing
            falls back to the last close
        bars: Raw or normalized bar series

    Returns:
        StageAnalysis
    """
    series = normalize_bars(bars)
    price = safe_positive(current_price)

    if series.empty:
        return _insufficient(price or 0.0)

    if price is None:
        price = float(series["close"].iloc[-1])

    if len(series) < MA_MIN_BARS:
        return _limited(price, series)

    return _full(price, series)


def _insufficient(price: float) -> StageAnalysis:
    return StageAnalysis(
        stage=1,
        stage_name="Insufficient Data",
        description="No historical data available for stage analysis",
        moving_average=0.0,
        current_price=price,
        price_vs_ma=0.0,
        trend_strength="Weak",
        volatility_level="Low",
        bars_used=0,
    )


def _limited(price: float, series: pd.DataFrame) -> StageAnalysis:
    """Average-versus-current comparison for very short series."""
    average = float(series["close"].mean())
    price_vs_avg = percent_vs(price, average)
    above = price_vs_avg > 0
    count = len(series)

    logger.debug(f"Limited-data stage analysis with {count} bar(s)")

    direction = "above" if above else "below"
    return StageAnalysis(
        stage=2 if above else 4,
        stage_name=f"{STAGE_NAMES[2 if above else 4]} (Limited Data)",
        description=(
            f"Limited data analysis ({count} bar(s) available). Price is {direction} "
            f"average by {abs(price_vs_avg):.1f}%. More data needed for accurate "
            f"stage determination."
        ),
        moving_average=average,
        current_price=price,
        price_vs_ma=price_vs_avg,
        trend_strength="Moderate" if abs(price_vs_avg) > 5 else "Weak",
        volatility_level="Low",
        bars_used=count,
    )


def _full(price: float, series: pd.DataFrame) -> StageAnalysis:
    close = series["close"]
    moving_average = adaptive_moving_average(close)
    price_vs_ma = percent_vs(price, moving_average)

    window = trailing(series, TREND_WINDOW)
    trend = calculate_trend_pct(close)
    strength = trend_strength(trend)
    level = volatility_level(calculate_volatility_pct(close))

    stage = determine_stage(price, price_vs_ma, trend, level, window)
    count = len(series)
    suffix = "" if count >= MA_WINDOW else " (Estimated)"

    return StageAnalysis(
        stage=stage,
        stage_name=STAGE_NAMES[stage] + suffix,
        description=_describe(stage, price_vs_ma, strength, count),
        moving_average=moving_average,
        current_price=price,
        price_vs_ma=price_vs_ma,
        trend_strength=strength,
        volatility_level=level,
        bars_used=count,
    )


def determine_stage(
    price: float,
    price_vs_ma: float,
    trend: float,
    level: VolatilityLevel,
    window: pd.DataFrame,
) -> Stage:
    """
    Apply the ordered stage rules; first match wins.

    Args:
        price: Current price
        price_vs_ma: Percent distance from the moving average
        trend: Trend percent over the window
        level: Volatility bucket
        window: Trailing bars used for day counts and the recent high

    Returns:
        Stage number
    """
    up_days, down_days = count_up_down_days(window)

    if price_vs_ma > 0 and trend > ADVANCE_TREND_MIN and up_days > down_days * DAY_COUNT_RATIO:
        return 2

    if price_vs_ma < 0 and trend < DECLINE_TREND_MAX and down_days > up_days * DAY_COUNT_RATIO:
        return 4

    if level == "High" and price_vs_ma > DISTRIBUTION_MA_FLOOR and not window.empty:
        recent_high = float(window["high"].max())
        near_high = price >= recent_high * DISTRIBUTION_NEAR_HIGH
        if near_high and -DISTRIBUTION_FLAT_BAND < trend < DISTRIBUTION_FLAT_BAND:
            return 3

    return 1


def _describe(stage: Stage, price_vs_ma: float, strength: TrendStrength, count: int) -> str:
    ma_label = "30-week MA" if count >= MA_WINDOW else f"{min(count, MA_WINDOW)}-bar MA"
    data_note = "" if count >= MA_WINDOW else f" (Based on {count} bars of data)"
    momentum = strength.lower()

    if stage == 2:
        return (
            f"Uptrend phase. Price is {price_vs_ma:.1f}% above {ma_label} with {momentum} "
            f"momentum. This is typically the best time to buy.{data_note}"
        )
    if stage == 3:
        return (
            "Distribution phase. High volatility and topping pattern detected. Price may be "
            "near highs but showing weakening momentum. Consider taking profits."
            f"{data_note}"
        )
    if stage == 4:
        return (
            f"Downtrend phase. Price is {abs(price_vs_ma):.1f}% below {ma_label} with "
            f"{momentum} downward momentum. Avoid buying, consider waiting.{data_note}"
        )
    return (
        f"Base building phase. Price is consolidating with {momentum} trend. Look for "
        f"accumulation patterns before potential breakout.{data_note}"
    )
