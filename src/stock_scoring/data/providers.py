"""Fundamentals providers.

Each provider implements one capability, ``resolve(symbol)``, returning a
FundamentalSnapshot or None. The two providers surface very different payload
shapes; the ``snapshot_from_*`` functions normalize them into the common
snapshot and are pure so they can be tested without the network.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from requests.exceptions import RequestException

from stock_scoring.config import RetryPolicy
from stock_scoring.data.http import JsonHttpClient, ProviderRequestError
from stock_scoring.data.retry import ProviderRetryError, retry_with_backoff
from stock_scoring.models import FundamentalSnapshot
from stock_scoring.utils.sanitize import sanitize_text
from stock_scoring.utils.validators import growth_pct, normalize_symbol, safe_float, safe_positive

logger = logging.getLogger(__name__)

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"
ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"

# Finnhub metric name -> relative strength period label
_FINNHUB_RS_FIELDS = {
    "priceRelativeToSP5004Week": "4w",
    "priceRelativeToSP50013Week": "13w",
    "priceRelativeToSP50026Week": "26w",
    "priceRelativeToSP50052Week": "52w",
    "priceRelativeToSP500Ytd": "ytd",
}

# Alpha Vantage answers rate-limited calls with 200 and one of these keys
_ALPHA_VANTAGE_NOTICE_KEYS = ("Note", "Information", "Error Message")


@runtime_checkable
class FundamentalsProvider(Protocol):
    """Capability: resolve a symbol to a snapshot, or None when unavailable."""

    name: str

    async def resolve(self, symbol: str) -> FundamentalSnapshot | None: ...


class MinIntervalLimiter:
    """
    Serializes calls and keeps at least ``min_interval`` seconds between them.

    Owned by a single provider instance; other providers are never blocked.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def __aenter__(self) -> "MinIntervalLimiter":
        await self._lock.acquire()
        try:
            if self._last_call is not None:
                wait = self.min_interval - (self._clock() - self._last_call)
                if wait > 0:
                    logger.debug(f"Rate limit: waiting {wait:.1f}s")
                    await self._sleep(wait)
        except BaseException:
            self._lock.release()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._last_call = self._clock()
        self._lock.release()


def _first_record(records: Any) -> Mapping[str, Any] | None:
    if isinstance(records, Sequence) and not isinstance(records, str) and records:
        first = records[0]
        if isinstance(first, Mapping):
            return first
    return None


def _second_record(records: Any) -> Mapping[str, Any] | None:
    if isinstance(records, Sequence) and not isinstance(records, str) and len(records) > 1:
        second = records[1]
        if isinstance(second, Mapping):
            return second
    return None


# ---------------------------------------------------------------------------
# Finnhub (primary)
# ---------------------------------------------------------------------------


def snapshot_from_finnhub(
    symbol: str,
    profile: Mapping[str, Any] | None,
    metrics: Mapping[str, Any] | None,
    earnings: Sequence[Mapping[str, Any]] | None = None,
) -> FundamentalSnapshot | None:
    """
    Normalize Finnhub profile, basic-financials and earnings payloads.

    Finnhub reports growth as percentages and ``shareOutstanding`` in
    millions. Returns None unless the profile or the metrics are present.

    Args:
        symbol: Ticker symbol
        profile: /stock/profile2 body
        metrics: The ``metric`` object of /stock/metric
        earnings: /stock/earnings body, most recent quarter first

    Returns:
        FundamentalSnapshot or None
    """
    if not profile and not metrics:
        return None
    profile = profile or {}
    metric = metrics or {}

    shares_millions = safe_positive(profile.get("shareOutstanding"))

    latest = _first_record(earnings)
    quarterly = safe_float(metric.get("epsGrowthQuarterlyYoy"))
    if quarterly is None and latest is not None:
        previous = _second_record(earnings)
        if previous is not None:
            quarterly = growth_pct(latest.get("actual"), previous.get("actual"))

    relative_strength = {
        label: value
        for field, label in _FINNHUB_RS_FIELDS.items()
        if (value := safe_float(metric.get(field))) is not None
    }

    pe_ratio = safe_float(metric.get("peTTM"))
    if pe_ratio is None:
        pe_ratio = safe_float(metric.get("peBasicExclExtraTTM"))

    return FundamentalSnapshot(
        symbol=normalize_symbol(symbol),
        source="finnhub",
        company_name=sanitize_text(profile.get("name")),
        quarterly_eps_growth=quarterly,
        annual_eps_growth=safe_float(metric.get("epsGrowthTTMYoy")),
        eps_growth_3y=safe_float(metric.get("epsGrowth3Y")),
        eps_growth_5y=safe_float(metric.get("epsGrowth5Y")),
        revenue_growth=safe_float(metric.get("revenueGrowthTTMYoy")),
        shares_outstanding=shares_millions * 1_000_000 if shares_millions else None,
        week_52_high=safe_positive(metric.get("52WeekHigh")),
        week_52_low=safe_positive(metric.get("52WeekLow")),
        pe_ratio=pe_ratio,
        relative_strength=relative_strength,
        latest_quarter=str(latest["period"]) if latest and latest.get("period") else None,
        earnings_surprise_pct=safe_float(latest.get("surprisePercent")) if latest else None,
    )


class _HttpProvider:
    """Shared plumbing: retried JSON GETs that degrade to None on failure."""

    name = "provider"

    def __init__(self, client: JsonHttpClient, api_key: str, retry: RetryPolicy | None = None):
        self._client = client
        self._api_key = api_key
        self._retry = retry or RetryPolicy()

    async def _get(self, path: str, params: dict[str, Any], label: str) -> Any:
        try:
            retry_result = await retry_with_backoff(
                f"{self.name}:{label}",
                lambda: self._client.get_json(path, params),
                policy=self._retry,
                source=self.name,
            )
        except (ProviderRetryError, ProviderRequestError, RequestException) as e:
            logger.warning(f"{self.name}:{label} unavailable: {e}")
            return None
        return retry_result.result


class FinnhubProvider(_HttpProvider):
    """Primary provider: company profile, basic financials, earnings surprises."""

    name = "finnhub"

    async def resolve(self, symbol: str) -> FundamentalSnapshot | None:
        symbol = normalize_symbol(symbol)
        profile, metric_body, earnings = await asyncio.gather(
            self._get("/stock/profile2", {"symbol": symbol, "token": self._api_key},
                      f"profile2({symbol})"),
            self._get("/stock/metric", {"symbol": symbol, "metric": "all",
                                        "token": self._api_key}, f"metric({symbol})"),
            self._get("/stock/earnings", {"symbol": symbol, "token": self._api_key},
                      f"earnings({symbol})"),
        )

        # An unknown symbol yields an empty profile object
        if not isinstance(profile, Mapping) or not profile.get("name"):
            profile = None
        metrics = metric_body.get("metric") if isinstance(metric_body, Mapping) else None
        if not isinstance(metrics, Mapping) or not metrics:
            metrics = None
        if not isinstance(earnings, list) or not earnings:
            earnings = None

        return snapshot_from_finnhub(symbol, profile, metrics, earnings)


# ---------------------------------------------------------------------------
# Alpha Vantage (secondary)
# ---------------------------------------------------------------------------


def snapshot_from_alpha_vantage(
    symbol: str,
    earnings: Mapping[str, Any] | None,
    overview: Mapping[str, Any] | None,
    income_statement: Mapping[str, Any] | None = None,
) -> FundamentalSnapshot | None:
    """
    Normalize Alpha Vantage EARNINGS, OVERVIEW and INCOME_STATEMENT payloads.

    Quarterly growth compares the two most recent reported quarterly EPS
    values, falling back to the overview's QuarterlyEarningsGrowthYOY (a
    fraction). Annual growth compares the two most recent fiscal years.
    Returns None when all three payloads are missing.
    """
    if not earnings and not overview and not income_statement:
        return None
    earnings = earnings or {}
    overview = overview or {}
    income_statement = income_statement or {}

    quarters = earnings.get("quarterlyEarnings") or []
    years = earnings.get("annualEarnings") or []
    latest_q = _first_record(quarters)
    previous_q = _second_record(quarters)
    latest_y = _first_record(years)
    previous_y = _second_record(years)

    quarterly = None
    if latest_q is not None and previous_q is not None:
        quarterly = growth_pct(latest_q.get("reportedEPS"), previous_q.get("reportedEPS"))
    if quarterly is None:
        yoy = safe_float(overview.get("QuarterlyEarningsGrowthYOY"))
        quarterly = yoy * 100 if yoy is not None else None

    annual = None
    if latest_y is not None and previous_y is not None:
        annual = growth_pct(latest_y.get("reportedEPS"), previous_y.get("reportedEPS"))

    reports = income_statement.get("annualReports") or []
    revenue_growth = None
    latest_report = _first_record(reports)
    previous_report = _second_record(reports)
    if latest_report is not None and previous_report is not None:
        revenue_growth = growth_pct(
            latest_report.get("totalRevenue"), previous_report.get("totalRevenue")
        )

    return FundamentalSnapshot(
        symbol=normalize_symbol(symbol),
        source="alpha_vantage",
        company_name=sanitize_text(overview.get("Name")),
        quarterly_eps_growth=quarterly,
        annual_eps_growth=annual,
        revenue_growth=revenue_growth,
        shares_outstanding=safe_positive(overview.get("SharesOutstanding")),
        week_52_high=safe_positive(overview.get("52WeekHigh")),
        week_52_low=safe_positive(overview.get("52WeekLow")),
        pe_ratio=safe_float(overview.get("PERatio")),
        latest_quarter=latest_q.get("fiscalDateEnding") if latest_q else None,
        latest_fiscal_year=latest_y.get("fiscalDateEnding") if latest_y else None,
        earnings_surprise_pct=safe_float(latest_q.get("surprisePercentage")) if latest_q else None,
    )


class AlphaVantageProvider(_HttpProvider):
    """
    Secondary provider: earnings history, company overview, income statement.

    The free tier allows 5 calls/minute, so calls are serialized through a
    per-instance limiter (12 seconds apart by default).
    """

    name = "alpha_vantage"

    def __init__(
        self,
        client: JsonHttpClient,
        api_key: str,
        retry: RetryPolicy | None = None,
        min_interval: float = 12.0,
        limiter: MinIntervalLimiter | None = None,
    ):
        super().__init__(client, api_key, retry)
        self._limiter = limiter or MinIntervalLimiter(min_interval)

    async def _query(self, function: str, symbol: str) -> Mapping[str, Any] | None:
        async with self._limiter:
            body = await self._get(
                "", {"function": function, "symbol": symbol, "apikey": self._api_key},
                f"{function}({symbol})",
            )
        if not isinstance(body, Mapping) or not body:
            return None
        notice = next((k for k in _ALPHA_VANTAGE_NOTICE_KEYS if k in body), None)
        if notice is not None:
            logger.info(f"alpha_vantage:{function}({symbol}) returned {notice}: {body[notice]}")
            return None
        return body

    async def resolve(self, symbol: str) -> FundamentalSnapshot | None:
        symbol = normalize_symbol(symbol)

        earnings = await self._query("EARNINGS", symbol)
        if earnings is not None and not (
            earnings.get("quarterlyEarnings") or earnings.get("annualEarnings")
        ):
            earnings = None

        overview = await self._query("OVERVIEW", symbol)
        if overview is not None and not overview.get("Symbol"):
            overview = None

        income = await self._query("INCOME_STATEMENT", symbol)
        if income is not None and not income.get("symbol"):
            income = None

        return snapshot_from_alpha_vantage(symbol, earnings, overview, income)
