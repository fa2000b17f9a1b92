"""Metadata and provenance blocks attached to analysis output."""

from datetime import datetime
from typing import Any

from stock_scoring import SCHEMA_VERSION, __version__


def build_meta(operation: str, duration_ms: float | None = None) -> dict[str, Any]:
    """
    Build the standard metadata block.

    Args:
        operation: Name of the operation producing the output
        duration_ms: Execution time in milliseconds (optional)

    Returns:
        Metadata dict with version info
    """
    meta: dict[str, Any] = {
        "engine_version": __version__,
        "schema_version": SCHEMA_VERSION,
        "operation": operation,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    return meta


def build_provenance(
    source: str | None,
    as_of: datetime | str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Build the provenance block for one data source.

    Args:
        source: Data source name ("yfinance", "finnhub", "alpha_vantage"),
            or None when nothing was available
        as_of: Timestamp of data freshness
        **kwargs: Additional provenance fields

    Returns:
        Provenance dict, always with a ``warnings`` list
    """
    prov: dict[str, Any] = {"source": source}

    if as_of is not None:
        prov["as_of"] = as_of.isoformat() if isinstance(as_of, datetime) else as_of

    prov.update(kwargs)
    prov.setdefault("warnings", [])
    return prov


def build_error_response(
    error_type: str,
    message: str,
    symbol: str | None = None,
) -> dict[str, Any]:
    """
    Build a structured error result.

    Args:
        error_type: invalid_symbol or data_unavailable
        message: Human-readable error message
        symbol: Symbol that caused the error (if applicable)

    Returns:
        Error dict
    """
    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta("error"),
    }
    if symbol is not None:
        response["symbol"] = symbol
    return response
