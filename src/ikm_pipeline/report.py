"""Calculation breakdowns, tabular exports and the markdown report."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from jinja2 import Environment, FileSystemLoader

from .ikm import quality_description
from .ingest import parse_period
from .models import (
    CalculationBreakdown,
    CalculationDetail,
    IndicatorScore,
    Period,
    PeriodComparison,
    Response,
    ScoringConfig,
    Survey,
    SurveyResult,
    SurveyType,
    TrendPoint,
)
from .quant import answers_frame
from .trend import responses_in_period

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
NO_PERIOD_LABEL = "Tidak disetel"


# ── Calculation breakdown ─────────────────────────────────────────────

def _indicator_detail(ind: IndicatorScore, survey_type: SurveyType) -> CalculationDetail:
    denominator = ind.respondent_count * ind.question_count
    if survey_type == SurveyType.WEIGHTED:
        formula = f"Σ(question average × weight) ÷ Σ weight = {ind.score:.2f}"
    else:
        formula = (
            f"S ÷ (n × p) = {ind.total_score:.2f} ÷ "
            f"({ind.respondent_count} × {ind.question_count}) = {ind.score:.2f}"
        )
    return CalculationDetail(
        label=ind.title,
        respondent_count=ind.respondent_count,
        question_count=ind.question_count,
        raw_total_score=ind.total_score,
        denominator=denominator,
        formula=formula,
        result=ind.score,
    )


def calculation_breakdown(result: SurveyResult) -> CalculationBreakdown:
    """Spell out how each indicator score and the overall IKM were obtained."""
    n = result.total_responses
    p = result.total_questions
    if result.survey_type == SurveyType.WEIGHTED:
        formula = f"Σ(indicator score × weight) ÷ Σ weight = {result.average_score:.2f}"
    else:
        formula = f"S ÷ (n × p) = {result.total_score:.2f} ÷ ({n} × {p}) = {result.average_score:.2f}"

    if result.has_data:
        ikm_formula = (
            f"IKM = (({result.average_score:.2f} - 1) ÷ ({result.scale_max} - 1)) × 3 + 1"
            f" = {result.satisfaction_index:.2f}"
        )
    else:
        ikm_formula = f"IKM = {result.satisfaction_index:.2f} (no data)"

    return CalculationBreakdown(
        survey_id=result.survey_id,
        survey_type=result.survey_type,
        indicators=[_indicator_detail(ind, result.survey_type) for ind in result.indicator_scores],
        overall=CalculationDetail(
            label=result.survey_title,
            respondent_count=n,
            question_count=p,
            raw_total_score=result.total_score,
            denominator=n * p,
            formula=formula,
            result=result.average_score,
        ),
        ikm=result.satisfaction_index,
        ikm_formula=ikm_formula,
        quality_description=quality_description(result.satisfaction_index, result.has_data),
    )


def indicator_ranking(result: SurveyResult) -> list[IndicatorScore]:
    """Indicators from lowest to highest score, for bar charts."""
    return sorted(result.indicator_scores, key=lambda ind: ind.score)


# ── Tabular exports ───────────────────────────────────────────────────

def indicator_frame(result: SurveyResult) -> pd.DataFrame:
    rows = [
        {
            "indicator_id": ind.indicator_id,
            "indicator": ind.title,
            "score": round(ind.score, 2),
            "ikm": round(ind.ikm, 2),
            "weight": ind.weight,
            "weighted_contribution": round(ind.weighted_contribution, 2),
            "respondents": ind.respondent_count,
            "questions": ind.question_count,
            "total_score": ind.total_score,
        }
        for ind in result.indicator_scores
    ]
    return pd.DataFrame(rows, columns=[
        "indicator_id", "indicator", "score", "ikm", "weight",
        "weighted_contribution", "respondents", "questions", "total_score",
    ])


def question_frame(result: SurveyResult) -> pd.DataFrame:
    rows = []
    for ind in result.indicator_scores:
        for q in ind.question_details:
            row = {
                "indicator": ind.title,
                "question_id": q.question_id,
                "question": q.question_text,
                "average": round(q.average_score, 2),
                "responses": q.response_count,
                "invalid": q.invalid_count,
                "median": q.median,
                "mode": q.mode,
                "std_dev": round(q.std_dev, 2),
                "weight": q.weight,
            }
            for bucket in q.distribution:
                row[f"pct_{bucket.score}"] = round(bucket.percentage, 1)
            rows.append(row)
    return pd.DataFrame(rows)


def trend_frame(points: list[TrendPoint]) -> pd.DataFrame:
    rows = [
        {
            "period": p.period_name,
            "score": round(p.score, 2),
            "ikm": round(p.ikm, 2),
            "category": p.quality.category,
            "respondents": p.respondent_count,
        }
        for p in points
    ]
    return pd.DataFrame(rows, columns=["period", "score", "ikm", "category", "respondents"])


def respondent_frame(
    survey: Survey,
    responses: list[Response],
    period: Period | dict | str | None = None,
) -> pd.DataFrame:
    """One row per complete response with its average over valid answers.

    A response with no valid answer averages 0. Pass `period` to keep only
    responses inside it; sorting by score or period is left to the caller.
    """
    complete = [r for r in responses if r.is_complete]
    descriptor = parse_period(period)
    if descriptor is not None:
        complete = responses_in_period(complete, descriptor)

    limits = {q.id: q.scale_max for q in survey.scored_questions}
    answers = answers_frame(complete)
    answers = answers[answers["question_id"].isin(list(limits))]
    in_range = (answers["score"] >= 1) & (answers["score"] <= answers["question_id"].map(limits).astype(float))
    grouped = answers[in_range].groupby("response_id")["score"]
    counts = grouped.count()
    means = grouped.mean()

    rows = [
        {
            "response_id": r.id,
            "period": r.period.name if r.period else NO_PERIOD_LABEL,
            "submitted_at": r.submitted_at.isoformat() if r.submitted_at else "",
            "answers": int(counts.get(r.id, 0)),
            "average_score": round(float(means.get(r.id, 0.0)), 2),
        }
        for r in complete
    ]
    return pd.DataFrame(rows, columns=["response_id", "period", "submitted_at", "answers", "average_score"])


def write_csv(
    result: SurveyResult,
    out_dir: Path,
    trend: list[TrendPoint] | None = None,
    respondents: pd.DataFrame | None = None,
) -> list[Path]:
    """Write indicator, question and (optionally) trend and respondent tables as CSV files."""
    out_dir.mkdir(parents=True, exist_ok=True)
    frames = {
        "indicators": indicator_frame(result),
        "questions": question_frame(result),
    }
    if trend is not None:
        frames["trend"] = trend_frame(trend)
    if respondents is not None:
        frames["respondents"] = respondents

    written = []
    for name, df in frames.items():
        path = out_dir / f"{result.survey_id}-{name}.csv"
        df.to_csv(path, index=False)
        written.append(path)
    return written


# ── Markdown report ───────────────────────────────────────────────────

def render_report(
    result: SurveyResult,
    comparison: PeriodComparison | None = None,
    config: ScoringConfig | None = None,
) -> str:
    """Render the markdown results report, naming answers with the configured scale labels."""
    config = config or ScoringConfig()
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("report.md.j2")
    return template.render(
        result=result,
        breakdown=calculation_breakdown(result),
        ranking=indicator_ranking(result),
        comparison=comparison,
        labels_for=config.labels_for,
    )
