"""CANSLIM grade aggregation."""

import logging

from stock_scoring.analysis.factors import (
    MAX_A,
    MAX_C,
    MAX_I,
    MAX_L,
    MAX_M,
    MAX_N,
    MAX_S,
    score_annual_earnings,
    score_current_earnings,
    score_institutional,
    score_leadership,
    score_market_direction,
    score_new_highs,
    score_supply_demand,
)
from stock_scoring.models import FACTOR_KEYS, CANSLIMScore, FactorScore, FundamentalSnapshot, Grade
from stock_scoring.utils.ohlcv import BarInput, normalize_bars
from stock_scoring.utils.validators import safe_positive

logger = logging.getLogger(__name__)

MAX_TOTAL_SCORE = 85

# (minimum percentage, grade), checked in order
GRADE_THRESHOLDS: tuple[tuple[float, Grade], ...] = (
    (85.0, "A"),
    (70.0, "B"),
    (55.0, "C"),
    (40.0, "D"),
)

_MAX_SCORES = {"c": MAX_C, "a": MAX_A, "n": MAX_N, "s": MAX_S, "l": MAX_L, "i": MAX_I, "m": MAX_M}


def grade_for_percentage(percentage: float) -> Grade:
    """Map a score percentage to a letter grade (anything below 40 is F)."""
    for minimum, grade in GRADE_THRESHOLDS:
        if percentage >= minimum:
            return grade
    return "F"


def aggregate(scores: dict[str, FactorScore]) -> CANSLIMScore:
    """
    Sum the seven sub-scores and grade the result against the fixed 85 max.

    Args:
        scores: Mapping of factor key (c, a, n, s, l, i, m) to FactorScore

    Returns:
        CANSLIMScore
    """
    missing = [key for key in FACTOR_KEYS if key not in scores]
    if missing:
        raise ValueError(f"Missing factor scores: {missing}")

    ordered = {key: scores[key] for key in FACTOR_KEYS}
    total = sum(score.score for score in ordered.values())
    percentage = total / MAX_TOTAL_SCORE * 100

    return CANSLIMScore(
        overall_grade=grade_for_percentage(percentage),
        scores=ordered,
        total_score=total,
        max_total_score=MAX_TOTAL_SCORE,
    )


def default_score(reason: str) -> CANSLIMScore:
    """All-zero F result used when there is nothing to score."""
    return aggregate(
        {key: FactorScore(0, max_score, reason) for key, max_score in _MAX_SCORES.items()}
    )


def score_canslim(
    current_price: float | None,
    bars: BarInput,
    current_volume: float | None = 0.0,
    snapshot: FundamentalSnapshot | None = None,
) -> CANSLIMScore:
    """
    Score a bar series on the seven CANSLIM factors.

    Fundamental metrics from the snapshot are used where present; every other
    factor falls back to a price/volume proxy. Never raises for sparse input.

    Args:
        current_price: Latest price; non-positive, non-finite or missing
            falls back to the last close
        bars: Raw or normalized bar series
        current_volume: Latest volume (missing, negative or non-finite counts as 0)
        snapshot: Resolved fundamentals, or None

    Returns:
        CANSLIMScore
    """
    series = normalize_bars(bars)
    if series.empty:
        return default_score("No data: no usable price bars available")

    price = safe_positive(current_price)
    if price is None:
        price = float(series["close"].iloc[-1])
    volume = safe_positive(current_volume) or 0.0

    logger.debug(
        f"Scoring {len(series)} bar(s), fundamentals="
        f"{snapshot.source if snapshot is not None else 'none'}"
    )

    return aggregate(
        {
            "c": score_current_earnings(series, snapshot),
            "a": score_annual_earnings(series, snapshot),
            "n": score_new_highs(price, series, snapshot),
            "s": score_supply_demand(volume, series, snapshot),
            "l": score_leadership(series, snapshot),
            "i": score_institutional(volume, series),
            "m": score_market_direction(series),
        }
    )
