"""Fundamental data resolution across an ordered list of providers."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import requests

from stock_scoring.config import Settings
from stock_scoring.data.http import JsonHttpClient
from stock_scoring.data.providers import (
    ALPHA_VANTAGE_BASE_URL,
    FINNHUB_BASE_URL,
    AlphaVantageProvider,
    FinnhubProvider,
    FundamentalsProvider,
)
from stock_scoring.models import FundamentalSnapshot
from stock_scoring.utils.provenance import build_provenance
from stock_scoring.utils.validators import normalize_symbol

logger = logging.getLogger(__name__)


class FundamentalDataResolver:
    """
    Tries providers in priority order and returns the first usable snapshot.

    Providers are awaited one at a time, never raced, so a slower secondary
    can never win over a primary that answered. Provider errors and timeouts
    are logged and treated as "no snapshot"; cancellation always propagates.
    """

    def __init__(
        self,
        providers: Sequence[FundamentalsProvider],
        timeout: float | None = None,
    ):
        self.providers = list(providers)
        self.timeout = timeout

    async def _try(self, provider: FundamentalsProvider, symbol: str) -> FundamentalSnapshot | None:
        try:
            if self.timeout is not None:
                return await asyncio.wait_for(provider.resolve(symbol), timeout=self.timeout)
            return await provider.resolve(symbol)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"{provider.name}: resolve({symbol}) timed out after {self.timeout}s")
        except Exception as e:
            logger.warning(f"{provider.name}: resolve({symbol}) failed: {e}")
        return None

    async def resolve_with_provenance(
        self, symbol: str
    ) -> tuple[FundamentalSnapshot | None, dict[str, Any]]:
        """
        Resolve fundamentals and report which providers were tried.

        Returns:
            Tuple of (snapshot or None, provenance dict)
        """
        symbol = normalize_symbol(symbol)
        tried: list[str] = []

        for index, provider in enumerate(self.providers):
            tried.append(provider.name)
            snapshot = await self._try(provider, symbol)
            if snapshot is not None:
                if index > 0:
                    logger.info(f"resolve({symbol}): fell back to {provider.name}")
                warnings = [] if snapshot.has_metrics else [
                    f"{provider.name} returned no scoring metrics; scores use proxies"
                ]
                return snapshot, build_provenance(
                    provider.name,
                    providers_tried=tried,
                    fallback_used=index > 0,
                    warnings=warnings,
                )

        warnings = ["No fundamentals provider configured"] if not self.providers else [
            "Fundamentals unavailable; scores use price/volume proxies"
        ]
        logger.info(f"resolve({symbol}): no fundamentals from {tried or 'any provider'}")
        return None, build_provenance(
            None, providers_tried=tried, fallback_used=False, warnings=warnings
        )

    async def resolve(self, symbol: str) -> FundamentalSnapshot | None:
        """Return the first usable snapshot, or None when no provider has one."""
        snapshot, _ = await self.resolve_with_provenance(symbol)
        return snapshot


def build_resolver(
    settings: Settings,
    session: requests.Session | None = None,
) -> FundamentalDataResolver:
    """
    Build the resolver for the configured providers.

    Finnhub is primary and Alpha Vantage secondary; a provider is included
    only when its API key is usable.

    Args:
        settings: Runtime configuration
        session: Optional shared requests session (one is created per
            client otherwise)

    Returns:
        FundamentalDataResolver, possibly with no providers
    """
    providers: list[FundamentalsProvider] = []

    if settings.finnhub_enabled:
        providers.append(
            FinnhubProvider(
                JsonHttpClient(FINNHUB_BASE_URL, timeout=settings.provider_timeout,
                               session=session),
                api_key=settings.finnhub_api_key.strip(),
                retry=settings.retry,
            )
        )

    if settings.alpha_vantage_enabled:
        providers.append(
            AlphaVantageProvider(
                JsonHttpClient(ALPHA_VANTAGE_BASE_URL, timeout=settings.provider_timeout,
                               session=session),
                api_key=settings.alpha_vantage_api_key.strip(),
                retry=settings.retry,
                min_interval=settings.alpha_vantage_min_interval,
            )
        )

    logger.debug(f"Fundamentals providers: {[p.name for p in providers] or 'none'}")
    return FundamentalDataResolver(providers, timeout=settings.resolve_timeout)
