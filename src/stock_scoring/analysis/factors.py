"""The seven CANSLIM factor scorers.

Each scorer is a pure function of the normalized bar series, the current
price/volume and an optional FundamentalSnapshot. Fundamentals are preferred
when the snapshot carries the relevant metric; otherwise a price/volume proxy
is used. No scorer raises: empty series score 0 with a "No data" description,
and a single bar still produces a minimal proxy score.
"""

import math
from collections.abc import Mapping

import pandas as pd

from stock_scoring.models import FactorScore, FundamentalSnapshot
from stock_scoring.utils.indicators import (
    average_volume,
    count_up_down_days,
    percent_vs,
    trailing,
    window_change_pct,
)

# Max points per factor (sum is 85)
MAX_C = 15
MAX_A = 15
MAX_N = 15
MAX_S = 10
MAX_L = 10
MAX_I = 10
MAX_M = 10

# Bar windows (daily-bar equivalents), shrunk to the available data
QUARTER_BARS = 60
YEAR_BARS = 252
NEW_HIGH_BARS = 60
VOLUME_BARS = 20
MARKET_BARS = 20

# Growth tiers on the 15-point scale: (minimum growth %, points). Below the
# last tier scores GROWTH_FLOOR_POINTS.
GROWTH_TIERS: tuple[tuple[float, int], ...] = ((25.0, 15), (15.0, 12), (5.0, 8), (0.0, 5))
GROWTH_FLOOR_POINTS = 2
GROWTH_TIER_SCALE = 15

# Float tiers: (upper bound in millions of shares, points)
FLOAT_TIERS: tuple[tuple[float, int, str], ...] = (
    (50.0, 10, "Excellent"),
    (200.0, 8, "Good"),
    (500.0, 6, "Moderate"),
)
HIGH_FLOAT_POINTS = 3

HIGH_VOLUME_MULTIPLE = 1.5
# High-volume-day counts expected per 20 bars for each institutional tier
INSTITUTIONAL_TIERS: tuple[tuple[int, int, str], ...] = (
    (8, 10, "Strong institutional interest"),
    (5, 8, "Moderate institutional activity"),
    (3, 6, "Some institutional interest"),
)


def no_data(max_score: int, reason: str = "No data available") -> FactorScore:
    return FactorScore(score=0, max_score=max_score, description=reason)


def scale_points(points: int, max_score: int, base: int = GROWTH_TIER_SCALE) -> int:
    """Rescale tier points defined on ``base`` to another maximum."""
    if max_score == base:
        return points
    return int(round(points * max_score / base))


def growth_tier_points(growth_pct: float, max_score: int = GROWTH_TIER_SCALE) -> int:
    """Points for a growth rate; boundaries are inclusive (25.0 is top tier)."""
    for minimum, points in GROWTH_TIERS:
        if growth_pct >= minimum:
            return scale_points(points, max_score)
    return scale_points(GROWTH_FLOOR_POINTS, max_score)


def growth_label(growth_pct: float) -> str:
    if growth_pct >= 25:
        return "Strong"
    if growth_pct >= 15:
        return "Good"
    if growth_pct >= 5:
        return "Moderate"
    if growth_pct >= 0:
        return "Weak"
    return "Negative"


def scaled_threshold(base_count: int, available: int, window: int = VOLUME_BARS) -> int:
    """
    Scale a per-window count threshold down to a shorter series.

    Policy: ``ceil(base_count * available / window)``, never below 1.
    """
    if available >= window:
        return base_count
    return max(1, math.ceil(base_count * available / window))


def _period_label(count: int, full: int, full_label: str) -> str:
    if count >= full:
        return full_label
    if count >= 20:
        return f"{count // 5}-week"
    return f"{count}-bar"


def _single_bar_change(bars: pd.DataFrame) -> float:
    bar = bars.iloc[-1]
    return percent_vs(float(bar["close"]), float(bar["open"]))


# ---------------------------------------------------------------------------
# C - current quarterly earnings
# ---------------------------------------------------------------------------


def score_current_earnings(
    bars: pd.DataFrame,
    snapshot: FundamentalSnapshot | None = None,
) -> FactorScore:
    """C: quarterly EPS growth, or one-quarter price momentum as a proxy."""
    if bars.empty:
        return no_data(MAX_C)

    growth = snapshot.quarterly_eps_growth if snapshot is not None else None
    if growth is not None:
        label = growth_label(growth)
        quarter = f" ({snapshot.latest_quarter})" if snapshot.latest_quarter else ""
        return FactorScore(
            score=growth_tier_points(growth, MAX_C),
            max_score=MAX_C,
            description=f"{label} quarterly EPS growth: {growth:.1f}%{quarter}",
        )

    window = trailing(bars, QUARTER_BARS)
    if len(window) == 1:
        change = _single_bar_change(window)
        direction = "positive" if change > 0 else "negative"
        return FactorScore(
            score=scale_points(5 if change > 0 else 2, MAX_C),
            max_score=MAX_C,
            description=f"Single bar data: {direction} price movement (price proxy)",
        )

    change = window_change_pct(window["close"])
    if change is None:
        return no_data(MAX_C, "Invalid price data")

    period = _period_label(len(window), QUARTER_BARS, "quarterly")
    return FactorScore(
        score=growth_tier_points(change, MAX_C),
        max_score=MAX_C,
        description=f"{growth_label(change)} {period} momentum: {change:+.1f}% (price proxy)",
    )


# ---------------------------------------------------------------------------
# A - annual earnings growth
# ---------------------------------------------------------------------------


def score_annual_earnings(
    bars: pd.DataFrame,
    snapshot: FundamentalSnapshot | None = None,
) -> FactorScore:
    """A: 3Y, 5Y or annual EPS growth, or one-year price appreciation."""
    if bars.empty:
        return no_data(MAX_A)

    if snapshot is not None:
        for growth, label in (
            (snapshot.eps_growth_3y, "3-year"),
            (snapshot.eps_growth_5y, "5-year"),
            (snapshot.annual_eps_growth, "annual"),
        ):
            if growth is None:
                continue
            year = (
                f" ({snapshot.latest_fiscal_year})"
                if label == "annual" and snapshot.latest_fiscal_year
                else ""
            )
            return FactorScore(
                score=growth_tier_points(growth, MAX_A),
                max_score=MAX_A,
                description=f"{growth_label(growth)} {label} EPS growth: {growth:.1f}%{year}",
            )

    window = trailing(bars, YEAR_BARS)
    if len(window) == 1:
        return FactorScore(
            score=scale_points(5, MAX_A),
            max_score=MAX_A,
            description="Insufficient data for annual analysis (single bar)",
        )

    change = window_change_pct(window["close"])
    if change is None:
        return no_data(MAX_A, "Invalid price data")

    period = "annual" if len(window) >= 200 else f"{len(window)}-bar"
    return FactorScore(
        score=growth_tier_points(change, MAX_A),
        max_score=MAX_A,
        description=f"{growth_label(change)} {period} growth: {change:+.1f}% (price proxy)",
    )


# ---------------------------------------------------------------------------
# N - new highs
# ---------------------------------------------------------------------------


def score_new_highs(
    current_price: float,
    bars: pd.DataFrame,
    snapshot: FundamentalSnapshot | None = None,
) -> FactorScore:
    """N: proximity of the current price to the series (or 52-week) high."""
    if bars.empty:
        return no_data(MAX_N)

    highs = bars["high"][bars["high"] > 0]
    if highs.empty:
        return no_data(MAX_N, "Invalid high price data")

    if len(highs) == 1:
        pct_from_high = percent_vs(current_price, float(highs.iloc[0]))
        if pct_from_high >= -5:
            return FactorScore(12, MAX_N, "Trading near high (limited data)")
        return FactorScore(6, MAX_N, f"Currently {abs(pct_from_high):.1f}% below high")

    reference_high = float(highs.max())
    source = "period high"
    if snapshot is not None and snapshot.week_52_high and snapshot.week_52_high > reference_high:
        reference_high = snapshot.week_52_high
        source = "52-week high"
    recent_high = float(trailing(highs, NEW_HIGH_BARS).max())

    pct_from_high = percent_vs(current_price, reference_high)
    near_high = pct_from_high >= -5

    if near_high and current_price >= recent_high * 0.95:
        return FactorScore(15, MAX_N, f"Trading near new highs ({source})")
    if near_high:
        return FactorScore(12, MAX_N, f"Approaching new highs ({source})")
    if pct_from_high >= -15:
        return FactorScore(
            8, MAX_N, f"Moderate distance from highs: {abs(pct_from_high):.1f}% below {source}"
        )
    return FactorScore(4, MAX_N, f"Well below highs: {abs(pct_from_high):.1f}% below {source}")


# ---------------------------------------------------------------------------
# S - supply and demand
# ---------------------------------------------------------------------------


def score_supply_demand(
    current_volume: float,
    bars: pd.DataFrame,
    snapshot: FundamentalSnapshot | None = None,
) -> FactorScore:
    """S: float size when shares outstanding is known, else volume demand."""
    if bars.empty:
        return no_data(MAX_S)

    shares = snapshot.shares_outstanding if snapshot is not None else None
    if shares is not None and shares > 0:
        return _score_float(current_volume, bars, shares)
    return _score_volume_demand(current_volume, bars)


def _score_float(current_volume: float, bars: pd.DataFrame, shares: float) -> FactorScore:
    millions = shares / 1_000_000
    for bound, points, label in FLOAT_TIERS:
        if millions < bound:
            score = points
            description = f"{label}: {millions:.1f}M shares outstanding"
            if label == "Excellent":
                description += " (low float)"
            break
    else:
        score = HIGH_FLOAT_POINTS
        description = f"High float: {millions:.1f}M shares outstanding"

    if len(bars) >= 2:
        avg = average_volume(trailing(bars, VOLUME_BARS))
        if avg > 0 and current_volume / avg >= HIGH_VOLUME_MULTIPLE:
            score = min(MAX_S, score + 1)
            description += ", strong volume activity"

    return FactorScore(score=score, max_score=MAX_S, description=description)


def _score_volume_demand(current_volume: float, bars: pd.DataFrame) -> FactorScore:
    window = trailing(bars, VOLUME_BARS)
    avg = average_volume(window)
    if avg <= 0:
        return FactorScore(0, MAX_S, "Zero average volume (volume proxy)")

    ratio = max(current_volume, 0.0) / avg
    up_days = window[window["close"] > window["open"]]
    avg_up_volume = average_volume(up_days)

    if ratio >= 1.5 and avg_up_volume > avg * 1.2:
        return FactorScore(10, MAX_S, "Strong demand, high volume on advances (volume proxy)")
    if ratio >= 1.2:
        return FactorScore(8, MAX_S, "Good volume activity (volume proxy)")
    if ratio >= 0.8:
        return FactorScore(6, MAX_S, "Average volume (volume proxy)")
    return FactorScore(3, MAX_S, "Low volume, weak demand (volume proxy)")


# ---------------------------------------------------------------------------
# L - leader or laggard
# ---------------------------------------------------------------------------

# Benchmark-relative periods, longest first
_RS_LONG = ("52w", "26w", "ytd")
_RS_SHORT = ("13w", "4w")


def score_leadership(
    bars: pd.DataFrame,
    snapshot: FundamentalSnapshot | None = None,
) -> FactorScore:
    """L: relative strength vs benchmark, or recent-half vs earlier-half returns."""
    if bars.empty:
        return no_data(MAX_L)

    if snapshot is not None and snapshot.relative_strength:
        scored = _score_relative_strength(snapshot.relative_strength)
        if scored is not None:
            return scored

    if len(bars) == 1:
        return FactorScore(5, MAX_L, "Insufficient data for relative performance (single bar)")

    half = max(2, len(bars) // 2)
    recent = bars["close"].iloc[-half:]
    earlier = bars["close"].iloc[:-half]

    recent_return = window_change_pct(recent)
    if recent_return is None:
        return no_data(MAX_L, "Invalid recent price data")
    earlier_return = window_change_pct(earlier) or 0.0

    if recent_return > 10 and recent_return > earlier_return:
        return FactorScore(10, MAX_L, f"Market leader - strong outperformance ({recent_return:+.1f}%)")
    if recent_return > 5:
        return FactorScore(8, MAX_L, f"Good relative performance ({recent_return:+.1f}%)")
    if recent_return > 0:
        return FactorScore(6, MAX_L, f"Moderate performance ({recent_return:+.1f}%)")
    return FactorScore(3, MAX_L, f"Laggard - underperforming ({recent_return:+.1f}%)")


def _score_relative_strength(rs: Mapping[str, float]) -> FactorScore | None:
    long_key = next((k for k in _RS_LONG if rs.get(k) is not None), None)
    if long_key is None:
        return None
    long_rs = float(rs[long_key])
    short_key = next((k for k in _RS_SHORT if rs.get(k) is not None), None)
    short_rs = float(rs[short_key]) if short_key else long_rs

    detail = f"{long_rs:+.1f}% vs S&P 500 ({long_key})"
    if long_rs > 10 and short_rs > 0:
        return FactorScore(10, MAX_L, f"Market leader: {detail}")
    if long_rs > 5:
        return FactorScore(8, MAX_L, f"Outperforming: {detail}")
    if long_rs > 0:
        return FactorScore(6, MAX_L, f"Slight outperformance: {detail}")
    return FactorScore(3, MAX_L, f"Laggard: {detail}")


# ---------------------------------------------------------------------------
# I - institutional sponsorship (volume proxy only)
# ---------------------------------------------------------------------------


def score_institutional(current_volume: float, bars: pd.DataFrame) -> FactorScore:
    """
    I: count of high-volume bars in the trailing window.

    No ownership data source exists, so the result is always a volume-based
    approximation and says so.
    """
    if bars.empty:
        return no_data(MAX_I)

    window = trailing(bars, VOLUME_BARS)
    avg = average_volume(window)
    if avg <= 0:
        return FactorScore(0, MAX_I, "Zero average volume (volume proxy)")

    high_volume_days = int((window["volume"] > avg * HIGH_VOLUME_MULTIPLE).sum())
    available = len(window)

    for base, points, label in INSTITUTIONAL_TIERS:
        if high_volume_days < scaled_threshold(base, available):
            continue
        if points == MAX_I and current_volume <= avg:
            continue
        return FactorScore(
            points, MAX_I, f"{label} ({high_volume_days} high-volume bars, volume proxy)"
        )
    return FactorScore(
        3,
        MAX_I,
        f"Limited institutional sponsorship ({high_volume_days} high-volume bars, volume proxy)",
    )


# ---------------------------------------------------------------------------
# M - market direction
# ---------------------------------------------------------------------------


def score_market_direction(bars: pd.DataFrame) -> FactorScore:
    """M: trailing trend combined with the up/down-day balance."""
    if bars.empty:
        return no_data(MAX_M)

    if len(bars) == 1:
        up = _single_bar_change(bars) > 0
        return FactorScore(
            6 if up else 4, MAX_M, f"Single bar: {'up' if up else 'down'} bar (limited data)"
        )

    window = trailing(bars, MARKET_BARS)
    trend = window_change_pct(window["close"])
    if trend is None:
        return no_data(MAX_M, "Invalid price data")
    up_days, down_days = count_up_down_days(window)

    if trend > 5 and up_days > down_days * 1.5:
        return FactorScore(10, MAX_M, f"Strong uptrend ({trend:+.1f}%)")
    if trend > 2 and up_days > down_days:
        return FactorScore(8, MAX_M, f"Moderate uptrend ({trend:+.1f}%)")
    if trend > 0:
        return FactorScore(6, MAX_M, f"Slight uptrend ({trend:+.1f}%)")
    if trend > -5:
        return FactorScore(4, MAX_M, f"Sideways/weak trend ({trend:+.1f}%)")
    return FactorScore(2, MAX_M, f"Downtrend ({trend:+.1f}%)")
