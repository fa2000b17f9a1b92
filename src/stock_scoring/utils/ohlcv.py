"""Bar series normalization.

Every series the engine analyzes goes through ``normalize_bars`` first. The
result is a new DataFrame with the canonical columns
``date, open, high, low, close, volume``; the caller's records are never
modified.
"""

from collections.abc import Iterable, Mapping
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import numpy as np
import pandas as pd

from stock_scoring.models import Bar, Quote
from stock_scoring.utils.validators import safe_float, safe_positive

CANONICAL_COLUMNS = ["date", "open", "high", "low", "close", "volume"]
PRICE_COLUMNS = ["open", "high", "low", "close"]

# Alternate field names accepted from providers, applied only when the
# canonical name is absent
_COLUMN_ALIASES = {
    "o": "open",
    "h": "high",
    "l": "low",
    "c": "close",
    "v": "volume",
    "t": "date",
    "timestamp": "date",
    "datetime": "date",
    "time": "date",
}

BarInput = pd.DataFrame | Iterable[Bar | Mapping[str, Any]] | None


def empty_series() -> pd.DataFrame:
    """An empty bar series with the canonical schema."""
    return pd.DataFrame({col: pd.Series(dtype="object" if col == "date" else "float64")
                         for col in CANONICAL_COLUMNS})


def standardize_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """
    Flatten a yfinance download into the canonical bar schema.

    Handles the MultiIndex columns yf.download returns, drops 'Adj Close',
    lowercases names and moves the DatetimeIndex into an ISO ``date`` column.

    Args:
        df: Raw DataFrame from yfinance

    Returns:
        DataFrame with exactly the canonical columns (missing ones are NaN)
    """
    df = df.copy()

    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    if "Adj Close" in df.columns:
        df = df.drop(columns=["Adj Close"])

    df.columns = [str(c).lower() for c in df.columns]
    df = df.reset_index()
    df.columns = [str(c).lower() for c in df.columns]

    date_cols = [c for c in df.columns if c in ("date", "datetime", "index")]
    if date_cols:
        df = df.rename(columns={date_cols[0]: "date"})

    if "date" in df.columns and pd.api.types.is_datetime64_any_dtype(df["date"]):
        has_time = (df["date"].dt.normalize() != df["date"]).any()
        if has_time:
            df["date"] = df["date"].map(lambda ts: ts.isoformat())
        else:
            df["date"] = df["date"].dt.strftime("%Y-%m-%d")

    for col in CANONICAL_COLUMNS:
        if col not in df.columns:
            df[col] = np.nan

    return df[CANONICAL_COLUMNS]


def _record_from(item: Any) -> dict[str, Any] | None:
    if isinstance(item, Bar):
        record = asdict(item)
        record["date"] = record.pop("timestamp")
        return record
    if isinstance(item, Mapping):
        return {str(k).lower(): v for k, v in item.items()}
    return None


def _to_frame(raw: BarInput) -> pd.DataFrame:
    if raw is None:
        return empty_series()
    if isinstance(raw, pd.DataFrame):
        df = raw.copy()
        df.columns = [str(c).lower() for c in df.columns]
    else:
        records = [r for r in (_record_from(item) for item in raw) if r is not None]
        if not records:
            return empty_series()
        df = pd.DataFrame.from_records(records)

    for alias, canonical in _COLUMN_ALIASES.items():
        if alias in df.columns and canonical not in df.columns:
            df = df.rename(columns={alias: canonical})

    for col in CANONICAL_COLUMNS:
        if col not in df.columns:
            df[col] = None if col == "date" else np.nan
    return df[CANONICAL_COLUMNS].reset_index(drop=True)


# Epoch values at or above this are milliseconds, below it seconds
EPOCH_MS_THRESHOLD = 1e11


def _epoch_text(value: float) -> str:
    """ISO form of a numeric epoch timestamp (seconds or milliseconds)."""
    unit = "ms" if abs(value) >= EPOCH_MS_THRESHOLD else "s"
    try:
        return pd.to_datetime(value, unit=unit, utc=True).isoformat()
    except (ValueError, OverflowError):
        return str(value)


def _timestamp_text(value: Any) -> str | None:
    """String form of a timestamp field, or None when absent."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.isoformat()
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        return _epoch_text(float(value))
    text = str(value).strip()
    return text or None


def _parse_timestamp(text: str) -> pd.Timestamp | None:
    """Parse to a UTC timestamp; None when unparseable."""
    try:
        ts = pd.Timestamp(text)
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def normalize_bars(raw: BarInput) -> pd.DataFrame:
    """
    Validate and repair a raw bar sequence into a canonical series.

    Rules:
        - bars with a missing, NaN, infinite or non-positive close are dropped
        - missing open/high/low are set to the bar's close
        - missing or negative volume is set to 0
        - numeric timestamps are read as epoch seconds, or milliseconds
          from 1e11 up
        - when every kept bar has a timestamp and all of them parse, the
          series is stably sorted oldest-first; otherwise input order is kept

    Never raises for malformed input; zero surviving bars gives an empty
    series.

    Args:
        raw: DataFrame, sequence of Bar objects or mappings (full
             ``open/high/low/close/volume/timestamp`` or short ``o/h/l/c/v/t``
             keys), or None

    Returns:
        New DataFrame with the canonical columns
    """
    df = _to_frame(raw)
    if df.empty:
        return empty_series()

    numeric = PRICE_COLUMNS + ["volume"]
    for col in numeric:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("float64")
    df[numeric] = df[numeric].replace([np.inf, -np.inf], np.nan)

    df = df.loc[df["close"].notna() & (df["close"] > 0)].reset_index(drop=True)
    if df.empty:
        return empty_series()

    for col in ("open", "high", "low"):
        df[col] = df[col].fillna(df["close"])
    df["volume"] = df["volume"].where(df["volume"] >= 0, 0.0)

    df["date"] = df["date"].map(_timestamp_text).astype("object")

    if df["date"].notna().all():
        parsed = [_parse_timestamp(text) for text in df["date"]]
        if all(ts is not None for ts in parsed):
            order = sorted(range(len(parsed)), key=lambda i: parsed[i])
            df = df.iloc[order].reset_index(drop=True)

    return df[CANONICAL_COLUMNS]


def assemble_bars(
    historical: BarInput,
    latest_bar: Bar | Mapping[str, Any] | None = None,
    quote: Quote | None = None,
) -> pd.DataFrame:
    """
    Combine a history with the latest bar and, as a last resort, a quote.

    The latest bar is appended unless a bar with the same timestamp is
    already in the history. When no usable bar exists at all, a single flat
    bar is synthesized from the quote's last price so that every analysis
    still has one observation to work with.
    """
    bars = normalize_bars(historical)

    if latest_bar is not None:
        latest = normalize_bars([latest_bar])
        if not latest.empty:
            stamp = latest["date"].iloc[0]
            duplicate = stamp is not None and bool((bars["date"] == stamp).any())
            if bars.empty:
                bars = latest
            elif not duplicate:
                bars = normalize_bars(pd.concat([bars, latest], ignore_index=True))

    if bars.empty and quote is not None:
        price = safe_positive(quote.last_price)
        if price is not None:
            stamp = quote.updated_at or datetime.now(timezone.utc).isoformat()
            bars = normalize_bars(
                [{"open": price, "high": price, "low": price, "close": price,
                  "volume": 0.0, "date": stamp}]
            )

    return bars


def current_price_and_volume(
    bars: pd.DataFrame,
    latest_bar: Bar | Mapping[str, Any] | None = None,
    quote: Quote | None = None,
) -> tuple[float, float]:
    """
    Pick the price and volume to score against.

    Price preference: latest bar close, quote last price, last series close.
    Volume preference: latest bar volume, last series volume. Both default to 0.
    """
    latest = normalize_bars([latest_bar]) if latest_bar is not None else empty_series()

    price: float | None = None
    if not latest.empty:
        price = float(latest["close"].iloc[-1])
    if price is None and quote is not None:
        price = safe_positive(quote.last_price)
    if price is None and not bars.empty:
        price = float(bars["close"].iloc[-1])

    volume: float | None = None
    if not latest.empty:
        volume = float(latest["volume"].iloc[-1])
    if volume is None and not bars.empty:
        volume = safe_float(bars["volume"].iloc[-1])

    return price or 0.0, volume or 0.0
