"""Tests for validators and FetchParams."""

import dataclasses

import pytest

from stock_scoring.utils.validators import (
    VALID_INTERVALS,
    VALID_PERIODS,
    FetchParams,
    growth_pct,
    safe_float,
    safe_positive,
)


class TestFetchParams:
    """Tests for FetchParams dataclass."""

    def test_symbol_normalization(self) -> None:
        """Test symbol is uppercased and stripped."""
        assert FetchParams(symbol="  nvda  ").symbol == "NVDA"

    def test_defaults_are_weekly_one_year(self) -> None:
        """Default fetch is one year of weekly bars."""
        params = FetchParams(symbol="AAPL")
        assert (params.period, params.interval) == ("1y", "1wk")

    def test_period_interval_normalization(self) -> None:
        """Period and interval are lowercased."""
        params = FetchParams(symbol="AAPL", period="1Y", interval="1WK")
        assert (params.period, params.interval) == ("1y", "1wk")

    def test_empty_symbol_raises(self) -> None:
        """Blank symbols are rejected."""
        with pytest.raises(ValueError, match="Symbol"):
            FetchParams(symbol="   ")

    def test_invalid_period_raises(self) -> None:
        """Test invalid period raises ValueError."""
        with pytest.raises(ValueError, match="Invalid period"):
            FetchParams(symbol="AAPL", period="invalid")

    def test_invalid_interval_raises(self) -> None:
        """Test invalid interval raises ValueError."""
        with pytest.raises(ValueError, match="Invalid interval"):
            FetchParams(symbol="AAPL", interval="invalid")

    def test_all_valid_values(self) -> None:
        """Every listed period and interval is accepted."""
        for period in VALID_PERIODS:
            assert FetchParams(symbol="AAPL", period=period).period == period
        for interval in VALID_INTERVALS:
            assert FetchParams(symbol="AAPL", interval=interval).interval == interval

    def test_to_yf_kwargs(self) -> None:
        """Test yfinance kwargs generation."""
        kwargs = FetchParams(symbol="AAPL", period="1y", interval="1d").to_yf_kwargs()

        assert kwargs == {
            "tickers": "AAPL",
            "period": "1y",
            "interval": "1d",
            "auto_adjust": True,
            "progress": False,
        }

    def test_immutable(self) -> None:
        """Test FetchParams is immutable."""
        params = FetchParams(symbol="AAPL")
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.symbol = "NVDA"


class TestSafeFloat:
    """Tests for provider value coercion."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (1.5, 1.5),
            (3, 3.0),
            ("30000000", 30_000_000.0),
            (" 1,234.5 ", 1234.5),
            ("-2.5", -2.5),
        ],
    )
    def test_numbers(self, value, expected: float) -> None:
        """Numbers and numeric strings are converted."""
        assert safe_float(value) == expected

    @pytest.mark.parametrize(
        "value", [None, "", "None", "none", "-", "NaN", float("nan"), float("inf"), "abc", True, [1]]
    )
    def test_missing(self, value) -> None:
        """Placeholders and non-finite values become None."""
        assert safe_float(value) is None

    def test_safe_positive(self) -> None:
        """Zero and negatives are rejected."""
        assert safe_positive("12") == 12.0
        assert safe_positive(0) is None
        assert safe_positive(-1) is None


class TestGrowthPct:
    """Tests for growth_pct."""

    def test_basic(self) -> None:
        """Growth relative to the previous value."""
        assert growth_pct("1.25", "1.00") == pytest.approx(25.0)

    def test_negative_base(self) -> None:
        """A negative base uses its magnitude so recovery reads as growth."""
        assert growth_pct(0.5, -1.0) == pytest.approx(150.0)

    def test_undefined(self) -> None:
        """Zero or missing base gives None."""
        assert growth_pct(1.0, 0) is None
        assert growth_pct(None, 1.0) is None
