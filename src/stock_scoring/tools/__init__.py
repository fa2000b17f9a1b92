"""Analysis entry points."""

from stock_scoring.tools.analyze import analyze_symbol, evaluate

__all__ = ["analyze_symbol", "evaluate"]
