"""Utility modules."""

from stock_scoring.utils.indicators import (
    adaptive_moving_average,
    calculate_returns,
    calculate_sma,
    calculate_trend_pct,
    calculate_volatility_pct,
    count_up_down_days,
    percent_vs,
    trend_strength,
    volatility_level,
)
from stock_scoring.utils.ohlcv import (
    assemble_bars,
    current_price_and_volume,
    normalize_bars,
    standardize_ohlcv,
)
from stock_scoring.utils.provenance import build_error_response, build_meta, build_provenance
from stock_scoring.utils.sanitize import sanitize_text
from stock_scoring.utils.validators import FetchParams, safe_float

__all__ = [
    "adaptive_moving_average",
    "calculate_returns",
    "calculate_sma",
    "calculate_trend_pct",
    "calculate_volatility_pct",
    "count_up_down_days",
    "percent_vs",
    "trend_strength",
    "volatility_level",
    "assemble_bars",
    "current_price_and_volume",
    "normalize_bars",
    "standardize_ohlcv",
    "build_error_response",
    "build_meta",
    "build_provenance",
    "sanitize_text",
    "FetchParams",
    "safe_float",
]
