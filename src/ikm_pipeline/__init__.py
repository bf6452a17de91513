"""IKM survey scoring pipeline."""

from .ikm import classify, convert_to_ikm, service_quality
from .ingest import normalize, normalize_responses, normalize_survey, parse_period
from .quant import analyze, demographic_breakdown, indicator_score, question_detail, survey_score
from .trend import compare_periods, compute_trend

__all__ = [
    "analyze",
    "classify",
    "compare_periods",
    "compute_trend",
    "convert_to_ikm",
    "demographic_breakdown",
    "indicator_score",
    "normalize",
    "normalize_responses",
    "normalize_survey",
    "parse_period",
    "question_detail",
    "service_quality",
    "survey_score",
]
