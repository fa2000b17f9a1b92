"""Runtime configuration.

Settings are built once at startup and passed explicitly to the factories
that need them (``build_resolver``, ``analyze_symbol``). Outside this module
only ``STOCK_SCORING_VERSION`` (read for ``__version__`` at import) and
``YF_MAX_CONCURRENT`` (read when yfinance first runs on an event loop) come
from the environment.
"""

import logging
import os
from dataclasses import dataclass, field

# Keys shorter than this are treated as placeholders and ignored
MIN_API_KEY_LENGTH = 10


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for provider calls."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds


@dataclass(frozen=True)
class Settings:
    """Explicit configuration for the data layer."""

    finnhub_api_key: str | None = None
    alpha_vantage_api_key: str | None = None
    provider_timeout: float = 10.0
    resolve_timeout: float | None = None
    alpha_vantage_min_interval: float = 12.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            finnhub_api_key=os.environ.get("FINNHUB_API_KEY") or None,
            alpha_vantage_api_key=os.environ.get("ALPHA_VANTAGE_API_KEY") or None,
            provider_timeout=_env_float("PROVIDER_TIMEOUT", 10.0) or 10.0,
            resolve_timeout=_env_float("RESOLVE_TIMEOUT", None),
            alpha_vantage_min_interval=_env_float("ALPHA_VANTAGE_MIN_INTERVAL", 12.0) or 0.0,
            retry=RetryPolicy(
                max_retries=_env_int("PROVIDER_MAX_RETRIES", 3),
                base_delay=_env_float("PROVIDER_BASE_DELAY", 1.0) or 0.0,
                max_delay=_env_float("PROVIDER_MAX_DELAY", 30.0) or 0.0,
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def finnhub_enabled(self) -> bool:
        return _usable_key(self.finnhub_api_key)

    @property
    def alpha_vantage_enabled(self) -> bool:
        return _usable_key(self.alpha_vantage_api_key)


def _usable_key(key: str | None) -> bool:
    return key is not None and len(key.strip()) >= MIN_API_KEY_LENGTH


def configure_logging(settings: Settings) -> None:
    """Configure root logging. Call from the application edge only."""
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
