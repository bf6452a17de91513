"""Deterministic score aggregation using pandas.

Two formulas, chosen once per pass from the survey type:

- unweighted: S / (n × p), total valid points over respondent-question
  slots, for an indicator and again pooled over the whole survey;
- weighted: weight-normalized average of question averages inside an
  indicator, then of indicator scores across the survey.

Answers outside a question's 1..scale_max range are excluded and counted.
Every division goes through `_safe_div`, so empty inputs score 0.
"""

from __future__ import annotations

import logging
import math

import pandas as pd

from .errors import SurveyTypeError
from .ikm import convert_to_ikm, service_quality
from .models import (
    DemographicBreakdown,
    DemographicCount,
    Indicator,
    IndicatorScore,
    Question,
    QuestionDetail,
    Response,
    ScoreBucket,
    Survey,
    SurveyResult,
    SurveyType,
)

logger = logging.getLogger(__name__)

_ANSWER_COLUMNS = ["response_id", "question_id", "score"]


def _safe_div(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def _is_weighted(survey_type: SurveyType | str) -> bool:
    if survey_type == SurveyType.WEIGHTED:
        return True
    if survey_type == SurveyType.UNWEIGHTED:
        return False
    raise SurveyTypeError(survey_type)


# ── Answer frames ─────────────────────────────────────────────────────

def answers_frame(responses: list[Response]) -> pd.DataFrame:
    """One row per given answer: response_id, question_id, score."""
    records = [
        {"response_id": r.id, "question_id": q_id, "score": answer.score}
        for r in responses
        for q_id, answer in r.answers.items()
    ]
    df = pd.DataFrame(records, columns=_ANSWER_COLUMNS)
    df["score"] = df["score"].astype(float)
    return df


def _split_valid(df: pd.DataFrame, questions: list[Question]) -> tuple[pd.DataFrame, pd.Series]:
    """Keep answers to `questions` inside their scale; count the rest per question."""
    limits = {q.id: q.scale_max for q in questions}
    df = df[df["question_id"].isin(list(limits))]
    scale_max = df["question_id"].map(limits).astype(float)
    in_range = (df["score"] >= 1) & (df["score"] <= scale_max)
    invalid = df.loc[~in_range, "question_id"].value_counts()
    for q_id, count in invalid.items():
        logger.warning("Excluded %d out-of-range answer(s) for question %s", count, q_id)
    return df[in_range], invalid


def _scores_by_question(valid: pd.DataFrame) -> dict[str, pd.Series]:
    return {str(q_id): group["score"] for q_id, group in valid.groupby("question_id")}


# ── Per-question aggregation ──────────────────────────────────────────

def _distribution(scores: pd.Series, scale_max: int) -> list[ScoreBucket]:
    total = int(scores.size)
    counts = scores.value_counts()
    buckets = []
    for value in range(1, scale_max + 1):
        count = int(counts.get(float(value), 0))
        buckets.append(ScoreBucket(
            score=value,
            count=count,
            percentage=_safe_div(count, total) * 100,
        ))
    return buckets


def _question_detail(question: Question, scores: pd.Series, invalid_count: int, weight: float) -> QuestionDetail:
    count = int(scores.size)
    total = float(scores.sum()) if count else 0.0
    return QuestionDetail(
        question_id=question.id,
        question_text=question.text,
        indicator_id=question.indicator_id,
        weight=weight,
        scale_max=question.scale_max,
        average_score=_safe_div(total, count),
        response_count=count,
        invalid_count=invalid_count,
        total_score=total,
        min_score=float(scores.min()) if count else 0.0,
        max_score=float(scores.max()) if count else 0.0,
        median=float(scores.median()) if count else 0.0,
        mode=float(scores.mode().min()) if count else 0.0,
        std_dev=float(scores.std(ddof=0)) if count else 0.0,
        distribution=_distribution(scores, question.scale_max),
    )


def question_detail(question: Question, responses: list[Response], weighted: bool = False) -> QuestionDetail:
    """Aggregate one question over `responses`.

    Responses without an answer to the question are skipped. The reported
    weight is the question's own weight in weighted mode, 1 otherwise.
    """
    valid, invalid = _split_valid(answers_frame(responses), [question])
    return _question_detail(
        question,
        valid["score"],
        int(invalid.get(question.id, 0)),
        question.weight if weighted else 1.0,
    )


# ── Indicator and survey formulas ─────────────────────────────────────

def unweighted_score(total_score: float, respondent_count: int, question_count: int) -> float:
    """S / (n × p)."""
    return _safe_div(total_score, respondent_count * question_count)


def weighted_score(values_and_weights: list[tuple[float, float]]) -> float:
    """Σ(value × weight) / Σ(weight)."""
    total_weight = sum(w for _, w in values_and_weights)
    return _safe_div(sum(v * w for v, w in values_and_weights), total_weight)


def _indicator_details(
    indicator: Indicator,
    scores: dict[str, pd.Series],
    invalid: pd.Series,
    weighted: bool,
) -> list[QuestionDetail]:
    empty = pd.Series([], dtype=float)
    return [
        _question_detail(
            q,
            scores.get(q.id, empty),
            int(invalid.get(q.id, 0)),
            q.weight if weighted else 1.0,
        )
        for q in indicator.scored_questions
    ]


def _combine_indicator(details: list[QuestionDetail], respondent_count: int, weighted: bool) -> float:
    if weighted:
        return weighted_score([(d.average_score, d.weight) for d in details])
    return unweighted_score(sum(d.total_score for d in details), respondent_count, len(details))


def _build_indicator_score(
    indicator: Indicator,
    details: list[QuestionDetail],
    score: float,
    weight: float,
    total_weight: float,
    respondent_count: int,
) -> IndicatorScore:
    answer_count = sum(d.response_count for d in details)
    return IndicatorScore(
        indicator_id=indicator.id,
        title=indicator.title,
        score=score,
        weight=weight,
        weighted_contribution=_safe_div(score * weight, total_weight) if details else 0.0,
        ikm=convert_to_ikm(score if answer_count else math.nan, indicator.scale_max),
        respondent_count=respondent_count,
        question_count=len(details),
        total_score=sum(d.total_score for d in details),
        answer_count=answer_count,
        question_details=details,
    )


def indicator_score(
    indicator: Indicator,
    responses: list[Response],
    survey_type: SurveyType | str,
) -> IndicatorScore:
    """Score a single indicator on its own.

    Only complete responses count; `weighted_contribution` is the full
    score since there are no sibling indicators to share weight with.
    """
    weighted = _is_weighted(survey_type)
    complete = [r for r in responses if r.is_complete]
    valid, invalid = _split_valid(answers_frame(complete), indicator.scored_questions)
    details = _indicator_details(indicator, _scores_by_question(valid), invalid, weighted)
    score = _combine_indicator(details, len(complete), weighted)
    weight = indicator.weight if weighted else 1.0
    return _build_indicator_score(indicator, details, score, weight, weight, len(complete))


# ── Respondent profiles ───────────────────────────────────────────────

def demographic_breakdown(responses: list[Response]) -> list[DemographicBreakdown]:
    """Value counts per demographic field over complete responses.

    Fields appear in first-seen order, values by descending count; `pct`
    is relative to all complete responses, filled in or not.
    """
    complete = [r for r in responses if r.is_complete]
    total = len(complete)
    records = [
        {"response_id": r.id, "field_id": field_id, "value": value}
        for r in complete
        for field_id, value in r.demographics.items()
    ]
    df = pd.DataFrame(records, columns=["response_id", "field_id", "value"])

    breakdown = []
    for field_id in df["field_id"].unique():
        counts = df.loc[df["field_id"] == field_id, "value"].value_counts()
        values = []
        for label, count in counts.items():
            count_int = int(count)
            values.append(DemographicCount(
                label=str(label),
                count=count_int,
                pct=round(_safe_div(count_int, total) * 100, 1),
            ))
        breakdown.append(DemographicBreakdown(
            field_id=str(field_id),
            respondent_count=int(counts.sum()),
            values=values,
        ))
    return breakdown


# ── Main analysis ─────────────────────────────────────────────────────

def analyze(survey: Survey, responses: list[Response]) -> SurveyResult:
    """Compute the full SurveyResult for a snapshot of responses."""
    weighted = _is_weighted(survey.type)
    survey_type = SurveyType(survey.type)

    complete = [r for r in responses if r.is_complete]
    n = len(complete)
    questions = survey.scored_questions

    valid, invalid = _split_valid(answers_frame(complete), questions)
    scores = _scores_by_question(valid)

    # (indicator, question details, score, weight) for every indicator
    rows = []
    for ind in survey.indicators:
        details = _indicator_details(ind, scores, invalid, weighted)
        weight = ind.weight if weighted else 1.0
        rows.append((ind, details, _combine_indicator(details, n, weighted), weight))

    # Indicators with no scale questions stay out of the survey combination
    scored = [(score, weight) for _, details, score, weight in rows if details]
    total_weight = sum(w for _, w in scored)

    indicator_scores = [
        _build_indicator_score(ind, details, score, weight, total_weight, n)
        for ind, details, score, weight in rows
    ]

    total_score = float(valid["score"].sum()) if len(valid) else 0.0
    has_data = bool(questions) and len(valid) > 0

    if not has_data:
        average = 0.0
    elif weighted:
        average = weighted_score(scored)
    else:
        average = unweighted_score(total_score, n, len(questions))

    ikm = convert_to_ikm(average if has_data else math.nan, survey.scale_max)
    excluded = int(invalid.sum()) if len(invalid) else 0

    logger.debug(
        "Survey %s (%s): n=%d, p=%d, score=%.4f, ikm=%.4f, excluded=%d",
        survey.id, survey_type.value, n, len(questions), average, ikm, excluded,
    )

    return SurveyResult(
        survey_id=survey.id,
        survey_title=survey.title,
        survey_type=survey_type,
        total_responses=n,
        average_score=average,
        satisfaction_index=ikm,
        quality=service_quality(ikm),
        has_data=has_data,
        scale_max=survey.scale_max,
        total_questions=len(questions),
        total_score=total_score,
        excluded_answers=excluded,
        distribution=_distribution(valid["score"], survey.scale_max),
        indicator_scores=indicator_scores,
        demographic_breakdown=demographic_breakdown(complete),
    )


def survey_score(survey: Survey, responses: list[Response]) -> float:
    """Survey-level score alone (0 when there is no data)."""
    return analyze(survey, responses).average_score
