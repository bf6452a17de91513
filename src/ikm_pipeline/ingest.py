"""Normalize stored survey rows into Survey and Response models.

The database hands back loosely typed rows: nested or flat indicator and
question lists, answers as lists or mappings, weights as strings, periods
as "Q1 2024"-style labels. Everything is shaped once here so aggregation
can assume a well-formed Survey and Response list.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from .errors import NormalizationError, SurveyTypeError
from .models import (
    Answer,
    Indicator,
    Period,
    Question,
    QuestionType,
    Response,
    ScoringConfig,
    Survey,
    SurveyType,
)

logger = logging.getLogger(__name__)


# ── Survey type ───────────────────────────────────────────────────────

def parse_survey_type(raw: Any, config: ScoringConfig | None = None) -> SurveyType:
    """Map a stored survey type to SurveyType.

    A row with no type at all gets the configured default; any other
    value that is not 'weighted' or 'unweighted' is rejected.
    """
    config = config or ScoringConfig()
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return config.default_survey_type
    if isinstance(raw, SurveyType):
        return raw
    if isinstance(raw, str):
        try:
            return SurveyType(raw.strip().lower())
        except ValueError:
            pass
    raise SurveyTypeError(raw)


# ── Question types ────────────────────────────────────────────────────

_CHOICE_TYPES = {"multiple_choice", "multiple-choice", "radio", "dropdown", "checkbox", "choice"}
_TEXT_TYPES = {"text", "date", "number"}
_GENERIC_SCALE_TYPES = {"likert", "scale", "rating"}


def _map_question_type(raw: Any, config: ScoringConfig) -> tuple[QuestionType, int]:
    """Return (question type, scale max) for a stored question type."""
    name = str(raw or "").strip().lower()
    if name in config.scales:
        return QuestionType.SCALE, config.scales[name].max
    if name in _GENERIC_SCALE_TYPES:
        return QuestionType.SCALE, config.default_scale_max
    m = re.match(r"^likert-(\d+)$", name)
    if m and int(m.group(1)) >= 2:
        return QuestionType.SCALE, int(m.group(1))
    if name in _CHOICE_TYPES:
        return QuestionType.CHOICE, config.default_scale_max
    if name not in _TEXT_TYPES:
        logger.warning("Unknown question type %r, treating as text", raw)
    return QuestionType.TEXT, config.default_scale_max


# ── Field helpers ─────────────────────────────────────────────────────

def _require_id(row: dict[str, Any], what: str) -> str:
    value = row.get("id")
    if value is None or str(value).strip() == "":
        raise NormalizationError(f"{what} row has no id: {row!r}")
    return str(value)


def _parse_weight(raw: Any, where: str) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return 1.0
    try:
        weight = float(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable weight %r on %s, using 1", raw, where)
        return 1.0
    if weight != weight:  # NaN
        logger.warning("NaN weight on %s, using 1", where)
        return 1.0
    if weight < 0:
        raise NormalizationError(f"Negative weight {weight} on {where}")
    return weight


def _parse_score(raw: Any, question_id: str, response_id: str) -> float | None:
    """Numeric score of a scale answer, None when the answer is blank."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        raise NormalizationError(
            f"Boolean score {raw!r} for question {question_id} in response {response_id}"
        )
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise NormalizationError(
            f"Non-numeric score {raw!r} for question {question_id} in response {response_id}"
        ) from None


def _parse_timestamp(raw: Any) -> datetime | None:
    if raw is None or isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", raw)
        return None


def _parse_flag(raw: Any, default: bool = True) -> bool:
    if raw is None:
        return default
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "t", "1", "yes", "y")
    return bool(raw)


# ── Periods ───────────────────────────────────────────────────────────

_YEAR_ONLY = re.compile(r"^(\d{4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})\s*[-/ ]\s*([QS])(\d)$", re.IGNORECASE)
_PART_FIRST = re.compile(r"^([QS])(\d)\s*[-/ ]?\s*(\d{4})$", re.IGNORECASE)


def _build_period(year: int, part: str | None = None, number: int | None = None) -> Period:
    fields: dict[str, Any] = {"year": year}
    if part is not None:
        fields["quarter" if part.upper() == "Q" else "semester"] = number
    return Period(**fields)


def parse_period(raw: Any) -> Period | None:
    """Parse period metadata from a stored response.

    Accepts a Period, a mapping with year and optional quarter/semester,
    a bare year, or labels like "2024-Q1", "Q1 2024", "2024-S2", "S2 2024".
    Returns None when the response carries no period.
    """
    if raw is None or isinstance(raw, Period):
        return raw
    try:
        if isinstance(raw, dict):
            if raw.get("year") in (None, ""):
                return None
            fields = {k: raw.get(k) for k in ("year", "quarter", "semester") if raw.get(k) not in (None, "")}
            return Period(**fields)
        if isinstance(raw, int) and not isinstance(raw, bool):
            return Period(year=raw)
        text = str(raw).strip()
        if not text:
            return None
        m = _YEAR_ONLY.match(text)
        if m:
            return _build_period(int(m.group(1)))
        m = _YEAR_FIRST.match(text)
        if m:
            return _build_period(int(m.group(1)), m.group(2), int(m.group(3)))
        m = _PART_FIRST.match(text)
        if m:
            return _build_period(int(m.group(3)), m.group(1), int(m.group(2)))
    except ValidationError as e:
        raise NormalizationError(f"Invalid period {raw!r}: {e.errors()[0]['msg']}") from e
    raise NormalizationError(f"Unrecognized period {raw!r}")


# ── Survey structure ──────────────────────────────────────────────────

def _sorted_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Stable sort by an `order` column when rows carry one."""
    return sorted(rows, key=lambda r: r.get("order") if isinstance(r.get("order"), (int, float)) else 0)


def _normalize_question(row: dict[str, Any], indicator_id: str, config: ScoringConfig) -> Question:
    q_id = _require_id(row, "Question")
    q_type, scale_max = _map_question_type(row.get("type") or row.get("question_type"), config)
    return Question(
        id=q_id,
        text=str(row.get("text") or row.get("question_text") or ""),
        type=q_type,
        weight=_parse_weight(row.get("weight"), f"question {q_id}"),
        indicator_id=indicator_id,
        scale_max=scale_max,
    )


def normalize_survey(
    survey_row: dict[str, Any],
    indicator_rows: list[dict[str, Any]] | None = None,
    question_rows: list[dict[str, Any]] | None = None,
    config: ScoringConfig | None = None,
) -> Survey:
    """Assemble a Survey from a survey row plus its indicators and questions.

    Indicators and questions may be nested (`survey_row["indicators"]`,
    `indicator["questions"]`) or passed as flat row lists, in which case
    questions are attached through their `indicator_id`.
    """
    config = config or ScoringConfig()
    survey_id = _require_id(survey_row, "Survey")
    survey_type = parse_survey_type(survey_row.get("type"), config)

    if indicator_rows is None:
        indicator_rows = survey_row.get("indicators") or []

    # indicator_id -> flat question rows
    flat_questions: dict[str, list[dict[str, Any]]] = {}
    for q in question_rows or []:
        ind_id = q.get("indicator_id")
        if ind_id is None:
            raise NormalizationError(f"Question {q.get('id')!r} has no indicator_id")
        flat_questions.setdefault(str(ind_id), []).append(q)

    seen_questions: set[str] = set()
    indicators: list[Indicator] = []
    for row in _sorted_rows(indicator_rows):
        ind_id = _require_id(row, "Indicator")
        if any(ind.id == ind_id for ind in indicators):
            raise NormalizationError(f"Duplicate indicator id {ind_id}")
        rows = list(row.get("questions") or []) + flat_questions.pop(ind_id, [])
        questions = []
        for q_row in _sorted_rows(rows):
            question = _normalize_question(q_row, ind_id, config)
            if question.id in seen_questions:
                raise NormalizationError(f"Question {question.id} appears more than once")
            seen_questions.add(question.id)
            questions.append(question)
        indicators.append(Indicator(
            id=ind_id,
            title=str(row.get("title") or row.get("name") or ""),
            weight=_parse_weight(row.get("weight"), f"indicator {ind_id}"),
            questions=questions,
        ))

    if flat_questions:
        orphans = ", ".join(sorted(flat_questions))
        raise NormalizationError(f"Questions reference unknown indicators: {orphans}")

    return Survey(
        id=survey_id,
        title=str(survey_row.get("title") or ""),
        type=survey_type,
        indicators=indicators,
    )


# ── Responses ─────────────────────────────────────────────────────────

def _answer_pairs(raw: Any) -> list[tuple[str, Any]]:
    """(question_id, score) pairs from a list of answer rows or a mapping."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [(str(k), v.get("score", v.get("value")) if isinstance(v, dict) else v) for k, v in raw.items()]
    pairs = []
    for a in raw:
        q_id = a.get("question_id")
        if q_id is None:
            raise NormalizationError(f"Answer row has no question_id: {a!r}")
        pairs.append((str(q_id), a.get("score", a.get("value"))))
    return pairs


def _demographic_pairs(raw: Any) -> list[tuple[str, Any]]:
    """(field_id, value) pairs from a mapping or a list of field rows."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [(str(k), v) for k, v in raw.items()]
    pairs = []
    for d in raw:
        field_id = d.get("field_id", d.get("fieldId"))
        if field_id is None:
            raise NormalizationError(f"Demographic row has no field_id: {d!r}")
        pairs.append((str(field_id), d.get("value")))
    return pairs


def normalize_responses(
    survey: Survey,
    response_rows: list[dict[str, Any]],
    answer_rows: list[dict[str, Any]] | None = None,
    demographic_rows: list[dict[str, Any]] | None = None,
) -> list[Response]:
    """Build Response models for `survey`.

    Answers may be nested under each response or passed as flat rows
    keyed by `response_id`. Answers to unscored (choice or text)
    questions are dropped; answers to questions the survey does not
    have are rejected. Demographic values follow the same two shapes;
    blank values are dropped.
    """
    questions = {q.id: q for ind in survey.indicators for q in ind.questions}

    flat_answers: dict[str, list[dict[str, Any]]] = {}
    for a in answer_rows or []:
        flat_answers.setdefault(str(a.get("response_id")), []).append(a)

    flat_demographics: dict[str, list[dict[str, Any]]] = {}
    for d in demographic_rows or []:
        flat_demographics.setdefault(str(d.get("response_id")), []).append(d)

    responses: list[Response] = []
    seen_ids: set[str] = set()
    for row in response_rows:
        r_id = _require_id(row, "Response")
        if r_id in seen_ids:
            raise NormalizationError(f"Duplicate response id {r_id}")
        seen_ids.add(r_id)

        owner = row.get("survey_id")
        if owner is not None and str(owner) != survey.id:
            raise NormalizationError(f"Response {r_id} belongs to survey {owner}, not {survey.id}")

        pairs = _answer_pairs(row.get("answers")) + _answer_pairs(flat_answers.pop(r_id, None))
        answers: dict[str, Answer] = {}
        for q_id, raw_score in pairs:
            question = questions.get(q_id)
            if question is None:
                raise NormalizationError(f"Response {r_id} answers unknown question {q_id}")
            if not question.is_scored:
                continue
            if q_id in answers:
                raise NormalizationError(f"Response {r_id} answers question {q_id} twice")
            score = _parse_score(raw_score, q_id, r_id)
            if score is None:
                continue
            answers[q_id] = Answer(question_id=q_id, score=score)

        nested = row.get("demographics")
        if nested is None:
            nested = row.get("demographic_data")
        demo_pairs = _demographic_pairs(nested) + _demographic_pairs(flat_demographics.pop(r_id, None))
        demographics = {
            field_id: str(value).strip()
            for field_id, value in demo_pairs
            if value is not None and str(value).strip()
        }

        period_raw = row.get("period")
        if period_raw is None:
            period_raw = row.get("periode_survei")

        responses.append(Response(
            id=r_id,
            survey_id=survey.id,
            answers=answers,
            submitted_at=_parse_timestamp(row.get("submitted_at") or row.get("created_at")),
            is_complete=_parse_flag(row.get("is_complete")),
            period=parse_period(period_raw),
            demographics=demographics,
        ))

    if flat_answers:
        orphans = ", ".join(sorted(flat_answers))
        raise NormalizationError(f"Answers reference unknown responses: {orphans}")
    if flat_demographics:
        orphans = ", ".join(sorted(flat_demographics))
        raise NormalizationError(f"Demographics reference unknown responses: {orphans}")

    return responses


# ── Main normalization ────────────────────────────────────────────────

def normalize(export: dict[str, Any], config: ScoringConfig | None = None) -> tuple[Survey, list[Response]]:
    """Shape a full export (survey, indicators, questions, responses, answers, demographics)."""
    survey_row = export.get("survey")
    if not isinstance(survey_row, dict):
        raise NormalizationError("Export has no 'survey' record")
    survey = normalize_survey(
        survey_row,
        indicator_rows=export.get("indicators"),
        question_rows=export.get("questions"),
        config=config,
    )
    responses = normalize_responses(
        survey,
        export.get("responses") or [],
        answer_rows=export.get("answers"),
        demographic_rows=export.get("demographic_responses"),
    )
    return survey, responses
