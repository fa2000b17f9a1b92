"""Data layer: price history, quotes and fundamentals providers."""

from stock_scoring.data.providers import (
    AlphaVantageProvider,
    FinnhubProvider,
    FundamentalsProvider,
    snapshot_from_alpha_vantage,
    snapshot_from_finnhub,
)
from stock_scoring.data.resolver import FundamentalDataResolver, build_resolver

__all__ = [
    "AlphaVantageProvider",
    "FinnhubProvider",
    "FundamentalsProvider",
    "snapshot_from_alpha_vantage",
    "snapshot_from_finnhub",
    "FundamentalDataResolver",
    "build_resolver",
]
