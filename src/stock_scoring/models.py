"""Records produced and consumed by the scoring engine."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

Stage = Literal[1, 2, 3, 4]
TrendStrength = Literal["Strong", "Moderate", "Weak"]
VolatilityLevel = Literal["High", "Medium", "Low"]
Grade = Literal["A", "B", "C", "D", "F"]

# Factor keys in CANSLIM order
FACTOR_KEYS: tuple[str, ...] = ("c", "a", "n", "s", "l", "i", "m")


@dataclass(frozen=True)
class Bar:
    """One validated OHLCV bar."""

    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: str | None = None


@dataclass(frozen=True)
class Quote:
    """Current quote for a symbol. Every price field may be missing."""

    symbol: str
    last_price: float | None = None
    last_size: float | None = None
    bid_price: float | None = None
    bid_size: float | None = None
    ask_price: float | None = None
    ask_size: float | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class StageAnalysis:
    """Weinstein-style market-cycle classification."""

    stage: Stage
    stage_name: str
    description: str
    moving_average: float
    current_price: float
    price_vs_ma: float  # percent above (+) / below (-) the moving average
    trend_strength: TrendStrength
    volatility_level: VolatilityLevel
    bars_used: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "stage_name": self.stage_name,
            "description": self.description,
            "moving_average": round(self.moving_average, 4),
            "current_price": self.current_price,
            "price_vs_ma": round(self.price_vs_ma, 2),
            "trend_strength": self.trend_strength,
            "volatility_level": self.volatility_level,
            "bars_used": self.bars_used,
        }


@dataclass(frozen=True)
class FundamentalSnapshot:
    """
    Provider-independent view of fundamental data.

    Growth figures are percentages (25.0 means +25%). Shares outstanding is an
    absolute share count. Any metric may be None; ``relative_strength`` maps a
    period label ("4w", "13w", "26w", "52w", "ytd") to performance versus the
    benchmark in percent.
    """

    symbol: str
    source: str
    company_name: str | None = None
    quarterly_eps_growth: float | None = None
    annual_eps_growth: float | None = None
    eps_growth_3y: float | None = None
    eps_growth_5y: float | None = None
    revenue_growth: float | None = None
    shares_outstanding: float | None = None
    week_52_high: float | None = None
    week_52_low: float | None = None
    pe_ratio: float | None = None
    relative_strength: Mapping[str, float] = field(default_factory=dict)
    latest_quarter: str | None = None
    latest_fiscal_year: str | None = None
    earnings_surprise_pct: float | None = None

    @property
    def has_metrics(self) -> bool:
        """True when at least one scoring-relevant metric is present."""
        return any(
            v is not None
            for v in (
                self.quarterly_eps_growth,
                self.annual_eps_growth,
                self.eps_growth_3y,
                self.eps_growth_5y,
                self.shares_outstanding,
                self.week_52_high,
            )
        ) or bool(self.relative_strength)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "source": self.source,
            "company_name": self.company_name,
            "quarterly_eps_growth": self.quarterly_eps_growth,
            "annual_eps_growth": self.annual_eps_growth,
            "eps_growth_3y": self.eps_growth_3y,
            "eps_growth_5y": self.eps_growth_5y,
            "revenue_growth": self.revenue_growth,
            "shares_outstanding": self.shares_outstanding,
            "week_52_high": self.week_52_high,
            "week_52_low": self.week_52_low,
            "pe_ratio": self.pe_ratio,
            "relative_strength": dict(self.relative_strength),
            "latest_quarter": self.latest_quarter,
            "latest_fiscal_year": self.latest_fiscal_year,
            "earnings_surprise_pct": self.earnings_surprise_pct,
        }


@dataclass(frozen=True)
class FactorScore:
    """One CANSLIM sub-score."""

    score: int
    max_score: int
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "description": self.description,
        }


@dataclass(frozen=True)
class CANSLIMScore:
    """Seven-factor score and the letter grade derived from it."""

    overall_grade: Grade
    scores: Mapping[str, FactorScore]
    total_score: int
    max_total_score: int

    @property
    def percentage(self) -> float:
        if self.max_total_score <= 0:
            return 0.0
        return self.total_score / self.max_total_score * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_grade": self.overall_grade,
            "scores": {key: self.scores[key].to_dict() for key in FACTOR_KEYS},
            "total_score": self.total_score,
            "max_total_score": self.max_total_score,
            "percentage": round(self.percentage, 1),
        }
