"""Tests for Finnhub and Alpha Vantage providers."""

import asyncio
from typing import Any

import pytest
import requests
from requests.exceptions import HTTPError

from stock_scoring.config import RetryPolicy
from stock_scoring.data.http import ProviderRequestError
from stock_scoring.data.providers import (
    AlphaVantageProvider,
    FinnhubProvider,
    FundamentalsProvider,
    MinIntervalLimiter,
    snapshot_from_alpha_vantage,
    snapshot_from_finnhub,
)

NO_RETRY = RetryPolicy(max_retries=0)

FINNHUB_PROFILE = {"name": "Acme\x00 Corp", "ticker": "ACME", "shareOutstanding": 30.5}
FINNHUB_METRIC = {
    "metric": {
        "epsGrowthQuarterlyYoy": 28.4,
        "epsGrowthTTMYoy": 19.0,
        "epsGrowth3Y": 22.1,
        "epsGrowth5Y": None,
        "52WeekHigh": 150.25,
        "52WeekLow": 88.0,
        "peTTM": 31.2,
        "priceRelativeToSP50013Week": 4.5,
        "priceRelativeToSP50052Week": 12.0,
    }
}
FINNHUB_EARNINGS = [
    {"period": "2024-03-31", "actual": 1.25, "estimate": 1.2, "surprisePercent": 4.1667},
    {"period": "2023-12-31", "actual": 1.0, "estimate": 1.05, "surprisePercent": -4.76},
]

AV_EARNINGS = {
    "symbol": "ACME",
    "annualEarnings": [
        {"fiscalDateEnding": "2023-12-31", "reportedEPS": "4.40"},
        {"fiscalDateEnding": "2022-12-31", "reportedEPS": "4.00"},
    ],
    "quarterlyEarnings": [
        {"fiscalDateEnding": "2024-03-31", "reportedEPS": "1.25", "surprisePercentage": "4.2"},
        {"fiscalDateEnding": "2023-12-31", "reportedEPS": "1.00", "surprisePercentage": "None"},
    ],
}
AV_OVERVIEW = {
    "Symbol": "ACME",
    "Name": "Acme Corp",
    "SharesOutstanding": "30000000",
    "52WeekHigh": "150.5",
    "52WeekLow": "90",
    "PERatio": "22.1",
    "QuarterlyEarningsGrowthYOY": "0.5",
}
AV_INCOME = {
    "symbol": "ACME",
    "annualReports": [{"totalRevenue": "1200"}, {"totalRevenue": "1000"}],
}


class FakeClient:
    """Stands in for JsonHttpClient; answers from a route table."""

    def __init__(self, routes: dict[str, Any]):
        self.routes = routes
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get_json(self, path: str = "", params: dict[str, Any] | None = None) -> Any:
        params = params or {}
        self.calls.append((path, params))
        key = path or params.get("function", "")
        value = self.routes.get(key)
        if isinstance(value, Exception):
            raise value
        return value


def _http_error(status_code: int) -> HTTPError:
    response = requests.Response()
    response.status_code = status_code
    return HTTPError(f"{status_code} error", response=response)


class TestSnapshotFromFinnhub:
    """Tests for Finnhub payload normalization."""

    def test_full_payload(self) -> None:
        """Metrics, shares and earnings map onto the snapshot."""
        snap = snapshot_from_finnhub(
            "acme", FINNHUB_PROFILE, FINNHUB_METRIC["metric"], FINNHUB_EARNINGS
        )

        assert snap is not None
        assert snap.symbol == "ACME"
        assert snap.source == "finnhub"
        assert snap.company_name == "Acme Corp"
        assert snap.quarterly_eps_growth == 28.4
        assert snap.annual_eps_growth == 19.0
        assert snap.eps_growth_3y == 22.1
        assert snap.eps_growth_5y is None
        assert snap.shares_outstanding == 30_500_000
        assert snap.week_52_high == 150.25
        assert snap.pe_ratio == 31.2
        assert dict(snap.relative_strength) == {"13w": 4.5, "52w": 12.0}
        assert snap.latest_quarter == "2024-03-31"
        assert snap.earnings_surprise_pct == pytest.approx(4.1667)

    def test_quarterly_growth_from_earnings(self) -> None:
        """Missing quarterly growth is derived from reported actuals."""
        snap = snapshot_from_finnhub("ACME", FINNHUB_PROFILE, {}, FINNHUB_EARNINGS)
        assert snap.quarterly_eps_growth == pytest.approx(25.0)

    def test_nothing_usable(self) -> None:
        """No profile and no metrics gives None."""
        assert snapshot_from_finnhub("ACME", None, None, FINNHUB_EARNINGS) is None


class TestSnapshotFromAlphaVantage:
    """Tests for Alpha Vantage payload normalization."""

    def test_full_payload(self) -> None:
        """Growth is computed from consecutive reports."""
        snap = snapshot_from_alpha_vantage("ACME", AV_EARNINGS, AV_OVERVIEW, AV_INCOME)

        assert snap is not None
        assert snap.source == "alpha_vantage"
        assert snap.company_name == "Acme Corp"
        assert snap.quarterly_eps_growth == pytest.approx(25.0)
        assert snap.annual_eps_growth == pytest.approx(10.0)
        assert snap.revenue_growth == pytest.approx(20.0)
        assert snap.shares_outstanding == 30_000_000
        assert snap.week_52_high == 150.5
        assert snap.pe_ratio == 22.1
        assert snap.latest_quarter == "2024-03-31"
        assert snap.latest_fiscal_year == "2023-12-31"
        assert snap.earnings_surprise_pct == 4.2

    def test_overview_growth_fallback(self) -> None:
        """Without two quarters, the overview fraction is used as percent."""
        snap = snapshot_from_alpha_vantage("ACME", None, AV_OVERVIEW)
        assert snap.quarterly_eps_growth == pytest.approx(50.0)
        assert snap.annual_eps_growth is None

    def test_nothing_usable(self) -> None:
        """All payloads missing gives None."""
        assert snapshot_from_alpha_vantage("ACME", None, None, None) is None


class TestFinnhubProvider:
    """Tests for FinnhubProvider.resolve."""

    def test_satisfies_capability(self) -> None:
        """Providers implement the FundamentalsProvider protocol."""
        provider = FinnhubProvider(FakeClient({}), "k" * 20, NO_RETRY)
        assert isinstance(provider, FundamentalsProvider)

    def test_resolve(self) -> None:
        """All three endpoints are queried and combined."""
        client = FakeClient(
            {
                "/stock/profile2": FINNHUB_PROFILE,
                "/stock/metric": FINNHUB_METRIC,
                "/stock/earnings": FINNHUB_EARNINGS,
            }
        )
        snap = asyncio.run(FinnhubProvider(client, "k" * 20, NO_RETRY).resolve("acme"))

        assert snap is not None
        assert snap.quarterly_eps_growth == 28.4
        assert sorted(path for path, _ in client.calls) == [
            "/stock/earnings",
            "/stock/metric",
            "/stock/profile2",
        ]
        assert all(params["symbol"] == "ACME" for _, params in client.calls)

    def test_partial_failure_still_usable(self) -> None:
        """A failing endpoint degrades to missing data."""
        client = FakeClient(
            {
                "/stock/profile2": _http_error(403),
                "/stock/metric": FINNHUB_METRIC,
                "/stock/earnings": ProviderRequestError("Non-JSON response"),
            }
        )
        snap = asyncio.run(FinnhubProvider(client, "k" * 20, NO_RETRY).resolve("ACME"))

        assert snap is not None
        assert snap.company_name is None
        assert snap.shares_outstanding is None
        assert snap.week_52_high == 150.25

    def test_unknown_symbol(self) -> None:
        """Empty profile and metrics give None."""
        client = FakeClient(
            {"/stock/profile2": {}, "/stock/metric": {"metric": {}}, "/stock/earnings": []}
        )
        assert asyncio.run(FinnhubProvider(client, "k" * 20, NO_RETRY).resolve("ZZZZ")) is None


class TestAlphaVantageProvider:
    """Tests for AlphaVantageProvider.resolve."""

    def _provider(self, routes: dict[str, Any]) -> tuple[AlphaVantageProvider, FakeClient]:
        client = FakeClient(routes)
        provider = AlphaVantageProvider(
            client, "k" * 20, NO_RETRY, limiter=MinIntervalLimiter(0.0)
        )
        return provider, client

    def test_resolve(self) -> None:
        """EARNINGS, OVERVIEW and INCOME_STATEMENT are called in order."""
        provider, client = self._provider(
            {"EARNINGS": AV_EARNINGS, "OVERVIEW": AV_OVERVIEW, "INCOME_STATEMENT": AV_INCOME}
        )
        snap = asyncio.run(provider.resolve("ACME"))

        assert snap is not None
        assert snap.shares_outstanding == 30_000_000
        assert [params["function"] for _, params in client.calls] == [
            "EARNINGS",
            "OVERVIEW",
            "INCOME_STATEMENT",
        ]

    def test_rate_limit_note_counts_as_missing(self) -> None:
        """A Note/Information body is treated as no data."""
        note = {"Note": "Thank you for using Alpha Vantage! Our standard API rate limit is..."}
        provider, _ = self._provider(
            {"EARNINGS": AV_EARNINGS, "OVERVIEW": note, "INCOME_STATEMENT": {"Information": "x"}}
        )
        snap = asyncio.run(provider.resolve("ACME"))

        assert snap is not None
        assert snap.company_name is None
        assert snap.shares_outstanding is None
        assert snap.quarterly_eps_growth == pytest.approx(25.0)

    def test_all_missing(self) -> None:
        """Every call rate-limited gives None."""
        note = {"Note": "limit"}
        provider, _ = self._provider(
            {"EARNINGS": note, "OVERVIEW": note, "INCOME_STATEMENT": note}
        )
        assert asyncio.run(provider.resolve("ACME")) is None


class TestMinIntervalLimiter:
    """Tests for the per-provider rate limiter."""

    def test_spaces_calls(self) -> None:
        """Second entry waits out the remainder of the interval."""
        now = {"t": 0.0}
        slept: list[float] = []

        async def fake_sleep(delay: float) -> None:
            slept.append(delay)
            now["t"] += delay

        limiter = MinIntervalLimiter(12.0, clock=lambda: now["t"], sleep=fake_sleep)

        async def run() -> None:
            async with limiter:
                now["t"] += 1.0
            async with limiter:
                pass

        asyncio.run(run())
        assert slept == [pytest.approx(12.0)]

    def test_no_wait_after_interval(self) -> None:
        """Calls far enough apart do not sleep."""
        now = {"t": 0.0}
        slept: list[float] = []

        async def fake_sleep(delay: float) -> None:
            slept.append(delay)

        limiter = MinIntervalLimiter(12.0, clock=lambda: now["t"], sleep=fake_sleep)

        async def run() -> None:
            async with limiter:
                pass
            now["t"] = 30.0
            async with limiter:
                pass

        asyncio.run(run())
        assert slept == []
