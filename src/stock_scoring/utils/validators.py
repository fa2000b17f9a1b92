"""Input coercion helpers and fetch parameters."""

import math
from dataclasses import dataclass
from typing import Any

# yfinance accepts only these period/interval strings
VALID_PERIODS = {"1mo", "3mo", "6mo", "1y", "2y", "5y", "10y", "ytd", "max"}
VALID_INTERVALS = {"1d", "5d", "1wk", "1mo"}


@dataclass(frozen=True)
class FetchParams:
    """Immutable parameters for a bar history fetch."""

    symbol: str
    period: str = "1y"
    interval: str = "1wk"
    adjusted: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", normalize_symbol(self.symbol))

        period = self.period.lower().strip()
        interval = self.interval.lower().strip()

        if not self.symbol:
            raise ValueError("Symbol must not be empty")
        if period not in VALID_PERIODS:
            raise ValueError(f"Invalid period '{self.period}'. Must be one of: {VALID_PERIODS}")
        if interval not in VALID_INTERVALS:
            raise ValueError(
                f"Invalid interval '{self.interval}'. Must be one of: {VALID_INTERVALS}"
            )

        object.__setattr__(self, "period", period)
        object.__setattr__(self, "interval", interval)

    def to_yf_kwargs(self) -> dict[str, Any]:
        """Kwargs for yf.download()."""
        return {
            "tickers": self.symbol,
            "period": self.period,
            "interval": self.interval,
            "auto_adjust": self.adjusted,
            "progress": False,
        }


def normalize_symbol(symbol: str) -> str:
    """Uppercase and strip a ticker symbol."""
    return symbol.upper().strip()


def safe_float(value: Any) -> float | None:
    """
    Coerce a provider value to float.

    Providers mix numbers, numeric strings, "None", "-" and NaN for missing
    values. Everything that is not a finite number becomes None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if value == "" or value.lower() in ("none", "null", "nan", "-"):
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_positive(value: Any) -> float | None:
    """Like safe_float, but only strictly positive values survive."""
    result = safe_float(value)
    if result is None or result <= 0:
        return None
    return result


def growth_pct(current: Any, previous: Any) -> float | None:
    """
    Percent change from previous to current, relative to |previous|.

    Returns None when either side is missing or previous is zero.
    """
    cur = safe_float(current)
    prev = safe_float(previous)
    if cur is None or prev is None or prev == 0:
        return None
    return (cur - prev) / abs(prev) * 100
