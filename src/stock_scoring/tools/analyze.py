"""Symbol analysis: stage classification plus CANSLIM grade."""

import asyncio
import logging
from time import perf_counter
from typing import Any

import requests

from stock_scoring.analysis.grade import score_canslim
from stock_scoring.analysis.stage import analyze_stage
from stock_scoring.config import Settings
from stock_scoring.data.resolver import FundamentalDataResolver, build_resolver
from stock_scoring.data.yfinance_client import fetch_history_with_provenance, fetch_quote
from stock_scoring.models import CANSLIMScore, FundamentalSnapshot, Quote, StageAnalysis
from stock_scoring.utils.ohlcv import (
    BarInput,
    assemble_bars,
    current_price_and_volume,
    normalize_bars,
)
from stock_scoring.utils.provenance import build_error_response, build_meta, build_provenance
from stock_scoring.utils.validators import FetchParams

logger = logging.getLogger(__name__)


def evaluate(
    current_price: float | None,
    bars: BarInput,
    current_volume: float | None = 0.0,
    snapshot: FundamentalSnapshot | None = None,
) -> tuple[StageAnalysis, CANSLIMScore]:
    """Run stage analysis and CANSLIM scoring on already-fetched data."""
    series = normalize_bars(bars)
    return (
        analyze_stage(current_price, series),
        score_canslim(current_price, series, current_volume, snapshot),
    )


async def analyze_symbol(
    symbol: str,
    *,
    settings: Settings | None = None,
    resolver: FundamentalDataResolver | None = None,
    period: str = "1y",
    interval: str = "1wk",
) -> dict[str, Any]:
    """
    Fetch prices and fundamentals for a symbol and score it.

    Price history and the quote are fetched together; either may fail as long
    as the other yields a price. Fundamentals are optional: when no provider
    answers, every factor uses its price/volume proxy.

    Args:
        symbol: Stock ticker symbol
        settings: Runtime configuration (read from the environment if omitted)
        resolver: Fundamentals resolver (built from settings if omitted)
        period: History period for the bar series
        interval: Bar interval

    Returns:
        Dict with stage_analysis, canslim, data_provenance and meta, or a
        structured error dict
    """
    start_time = perf_counter()
    settings = settings or Settings.from_env()

    try:
        params = FetchParams(symbol=symbol, period=period, interval=interval)
    except ValueError as e:
        return build_error_response(error_type="invalid_symbol", message=str(e), symbol=symbol)

    history_result, quote_result = await asyncio.gather(
        fetch_history_with_provenance(params, settings.retry),
        fetch_quote(params.symbol, settings.retry),
        return_exceptions=True,
    )
    for result in (history_result, quote_result):
        if isinstance(result, asyncio.CancelledError):
            raise result

    warnings: list[str] = []
    if isinstance(history_result, BaseException):
        logger.warning(f"analyze_symbol({params.symbol}): history unavailable: {history_result}")
        warnings.append(f"Price history unavailable: {history_result}")
        history, history_prov = None, {"source": "yfinance", "attempts": 0}
    else:
        history, history_prov = history_result

    quote: Quote | None = None
    if isinstance(quote_result, BaseException):
        logger.warning(f"analyze_symbol({params.symbol}): quote unavailable: {quote_result}")
        warnings.append(f"Quote unavailable: {quote_result}")
    else:
        quote = quote_result

    bars = assemble_bars(history, quote=quote)
    current_price, current_volume = current_price_and_volume(bars, quote=quote)
    if bars.empty or current_price <= 0:
        return build_error_response(
            error_type="data_unavailable",
            message=f"No price data available for {params.symbol}",
            symbol=params.symbol,
        )

    owned_session: requests.Session | None = None
    if resolver is None:
        owned_session = requests.Session()
        resolver = build_resolver(settings, session=owned_session)
    try:
        snapshot, fundamentals_prov = await resolver.resolve_with_provenance(params.symbol)
    finally:
        if owned_session is not None:
            owned_session.close()

    stage, canslim = evaluate(current_price, bars, current_volume, snapshot)

    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "symbol": params.symbol,
        "company_name": snapshot.company_name if snapshot is not None else None,
        "stage_analysis": stage.to_dict(),
        "canslim": canslim.to_dict(),
        "fundamentals": snapshot.to_dict() if snapshot is not None else None,
        "data_provenance": {
            "prices": build_provenance(
                "yfinance",
                as_of=bars["date"].iloc[-1],
                bars=len(bars),
                period=params.period,
                interval=params.interval,
                attempts=history_prov.get("attempts"),
                warnings=warnings,
            ),
            "fundamentals": fundamentals_prov,
        },
        "meta": build_meta("analyze_symbol", duration_ms),
    }
