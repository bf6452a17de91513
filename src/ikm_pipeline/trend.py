"""Period-over-period trend assembly.

Each period is scored by a fresh `analyze()` call over the responses
whose period metadata falls inside it, so results never depend on which
other periods were computed, or in what order. Periods are emitted in
the order the caller supplies them; sorting is the caller's job.
"""

from __future__ import annotations

from typing import Any

from .errors import NormalizationError
from .ingest import parse_period
from .models import (
    IndicatorPeriodScore,
    IndicatorTrend,
    Period,
    PeriodComparison,
    Response,
    Survey,
    SurveyResult,
    TrendPoint,
)
from .quant import analyze


def _as_period(raw: Period | dict[str, Any] | str) -> Period:
    period = parse_period(raw)
    if period is None:
        raise NormalizationError(f"Empty period descriptor: {raw!r}")
    return period


def responses_in_period(responses: list[Response], period: Period) -> list[Response]:
    """Responses whose period falls inside `period`; those without one never match."""
    return [r for r in responses if period.matches(r.period)]


def period_result(survey: Survey, responses: list[Response], period: Period | dict[str, Any] | str) -> SurveyResult:
    return analyze(survey, responses_in_period(responses, _as_period(period)))


def _trend_point(period: Period, result: SurveyResult) -> TrendPoint:
    return TrendPoint(
        period=period,
        period_name=period.name,
        score=result.average_score,
        ikm=result.satisfaction_index,
        respondent_count=result.total_responses,
        quality=result.quality,
        has_data=result.has_data,
    )


def compute_trend(
    survey: Survey,
    responses: list[Response],
    periods: list[Period | dict[str, Any] | str],
) -> list[TrendPoint]:
    """One TrendPoint per period, in the order given."""
    points = []
    for raw in periods:
        period = _as_period(raw)
        points.append(_trend_point(period, period_result(survey, responses, period)))
    return points


def compare_periods(
    survey: Survey,
    responses: list[Response],
    periods: list[Period | dict[str, Any] | str],
) -> PeriodComparison:
    """Overall and per-indicator series across periods, for charts and tables."""
    overall: list[TrendPoint] = []
    indicators: dict[str, IndicatorTrend] = {}

    for raw in periods:
        period = _as_period(raw)
        result = period_result(survey, responses, period)
        overall.append(_trend_point(period, result))
        for ind in result.indicator_scores:
            trend = indicators.setdefault(
                ind.indicator_id,
                IndicatorTrend(indicator_id=ind.indicator_id, title=ind.title),
            )
            trend.scores.append(IndicatorPeriodScore(
                period_name=period.name,
                score=ind.score,
                ikm=ind.ikm,
            ))

    change: dict[str, float] = {}
    if len(overall) >= 2:
        change = {
            "previous_score": overall[-2].score,
            "current_score": overall[-1].score,
            "change": overall[-1].score - overall[-2].score,
        }

    return PeriodComparison(
        survey_id=survey.id,
        periods=[p.period_name for p in overall],
        indicators=list(indicators.values()),
        overall=overall,
        **change,
    )
