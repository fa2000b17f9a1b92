"""Stage classification, factor scoring and grading."""

from stock_scoring.analysis.grade import (
    MAX_TOTAL_SCORE,
    aggregate,
    default_score,
    grade_for_percentage,
    score_canslim,
)
from stock_scoring.analysis.stage import analyze_stage, determine_stage

__all__ = [
    "MAX_TOTAL_SCORE",
    "aggregate",
    "analyze_stage",
    "default_score",
    "determine_stage",
    "grade_for_percentage",
    "score_canslim",
]
