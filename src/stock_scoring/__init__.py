"""Stage analysis and CANSLIM-style scoring engine."""

import os


def get_version() -> str:
    """Get version with fallback for dev mode."""
    if version := os.environ.get("STOCK_SCORING_VERSION"):
        return version
    try:
        from importlib.metadata import version as pkg_version

        return pkg_version("stock-scoring")
    except Exception:
        return "dev"


__version__ = get_version()
# Bump when StageAnalysis / CANSLIMScore dict output changes materially
# v1: Initial schema
SCHEMA_VERSION = "1"
