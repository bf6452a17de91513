"""Pydantic data models for the IKM scoring pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_SCALE_MAX = 5


# ── Scoring configuration ─────────────────────────────────────────────

class SurveyType(str, Enum):
    WEIGHTED = "weighted"
    UNWEIGHTED = "unweighted"


class ScaleConfig(BaseModel):
    max: int = Field(ge=2)
    labels: dict[int, str] = Field(default_factory=dict)


def _default_scales() -> dict[str, ScaleConfig]:
    return {
        "likert-4": ScaleConfig(max=4, labels={
            1: "Sangat Tidak Setuju", 2: "Tidak Setuju", 3: "Setuju", 4: "Sangat Setuju",
        }),
        "likert-5": ScaleConfig(max=5, labels={
            1: "Sangat Tidak Puas", 2: "Tidak Puas", 3: "Cukup Puas", 4: "Puas", 5: "Sangat Puas",
        }),
        "likert-6": ScaleConfig(max=6, labels={
            1: "Sangat Tidak Setuju", 2: "Tidak Setuju", 3: "Agak Tidak Setuju",
            4: "Agak Setuju", 5: "Setuju", 6: "Sangat Setuju",
        }),
    }


class ScoringConfig(BaseModel):
    default_scale_max: int = Field(default=DEFAULT_SCALE_MAX, ge=2)
    default_survey_type: SurveyType = SurveyType.UNWEIGHTED
    scales: dict[str, ScaleConfig] = Field(default_factory=_default_scales)

    def labels_for(self, scale_max: int) -> dict[int, str]:
        """Labels of the first configured scale with this many points, else plain numbers."""
        for scale in self.scales.values():
            if scale.max == scale_max and scale.labels:
                return scale.labels
        return {v: str(v) for v in range(1, scale_max + 1)}


# ── Periods ───────────────────────────────────────────────────────────

class Period(BaseModel):
    """A reporting interval: a whole year, or one quarter or semester of it."""

    model_config = ConfigDict(frozen=True)

    year: int
    quarter: int | None = Field(default=None, ge=1, le=4)
    semester: int | None = Field(default=None, ge=1, le=2)

    @model_validator(mode="after")
    def _single_subdivision(self) -> Period:
        if self.quarter is not None and self.semester is not None:
            raise ValueError("a period has a quarter or a semester, not both")
        return self

    @property
    def name(self) -> str:
        if self.quarter is not None:
            return f"Q{self.quarter} {self.year}"
        if self.semester is not None:
            return f"S{self.semester} {self.year}"
        return str(self.year)

    def matches(self, other: Period | None) -> bool:
        """True when `other` falls inside this period.

        Only the fields set on this descriptor are compared, so a year
        descriptor matches every quarter and semester of that year.
        """
        if other is None or other.year != self.year:
            return False
        if self.quarter is not None and other.quarter != self.quarter:
            return False
        if self.semester is not None and other.semester != self.semester:
            return False
        return True


# ── Survey structure ──────────────────────────────────────────────────

class QuestionType(str, Enum):
    SCALE = "scale"
    CHOICE = "choice"
    TEXT = "text"


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str = ""
    type: QuestionType = QuestionType.SCALE
    weight: float = Field(default=1.0, ge=0)
    indicator_id: str
    scale_max: int = Field(default=DEFAULT_SCALE_MAX, ge=2)

    @property
    def is_scored(self) -> bool:
        return self.type == QuestionType.SCALE


class Indicator(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    weight: float = Field(default=1.0, ge=0)
    questions: list[Question] = Field(default_factory=list)

    @property
    def scored_questions(self) -> list[Question]:
        return [q for q in self.questions if q.is_scored]

    @property
    def scale_max(self) -> int:
        return max((q.scale_max for q in self.scored_questions), default=DEFAULT_SCALE_MAX)


class Survey(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    type: SurveyType
    indicators: list[Indicator] = Field(default_factory=list)

    @property
    def is_weighted(self) -> bool:
        return self.type == SurveyType.WEIGHTED

    @property
    def scored_questions(self) -> list[Question]:
        return [q for ind in self.indicators for q in ind.scored_questions]

    @property
    def scale_max(self) -> int:
        return max((q.scale_max for q in self.scored_questions), default=DEFAULT_SCALE_MAX)


# ── Responses ─────────────────────────────────────────────────────────

class Answer(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    score: float


class Response(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    survey_id: str
    answers: dict[str, Answer] = Field(default_factory=dict)  # question_id -> answer
    submitted_at: datetime | None = None
    is_complete: bool = True
    period: Period | None = None
    demographics: dict[str, str] = Field(default_factory=dict)  # field_id -> value


# ── Aggregation results ───────────────────────────────────────────────

class ScoreBucket(BaseModel):
    score: int
    count: int
    percentage: float


class QuestionDetail(BaseModel):
    question_id: str
    question_text: str
    indicator_id: str
    weight: float
    scale_max: int
    average_score: float
    response_count: int
    invalid_count: int = 0
    total_score: float = 0.0
    min_score: float = 0.0
    max_score: float = 0.0
    median: float = 0.0
    mode: float = 0.0
    std_dev: float = 0.0
    distribution: list[ScoreBucket] = Field(default_factory=list)


class DemographicCount(BaseModel):
    label: str
    count: int
    pct: float


class DemographicBreakdown(BaseModel):
    field_id: str
    respondent_count: int  # complete responses that filled the field
    values: list[DemographicCount] = Field(default_factory=list)


class ServiceQuality(BaseModel):
    category: str  # A, B, C or D
    label: str  # Indonesian label used on published reports
    description: str


class IndicatorScore(BaseModel):
    indicator_id: str
    title: str
    score: float
    weight: float
    weighted_contribution: float
    ikm: float
    respondent_count: int  # n
    question_count: int  # p
    total_score: float  # S
    answer_count: int
    question_details: list[QuestionDetail] = Field(default_factory=list)


class SurveyResult(BaseModel):
    survey_id: str
    survey_title: str
    survey_type: SurveyType
    total_responses: int
    average_score: float
    satisfaction_index: float
    quality: ServiceQuality
    has_data: bool
    scale_max: int
    total_questions: int
    total_score: float
    excluded_answers: int = 0
    distribution: list[ScoreBucket] = Field(default_factory=list)
    indicator_scores: list[IndicatorScore] = Field(default_factory=list)
    demographic_breakdown: list[DemographicBreakdown] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ── Trend comparison ──────────────────────────────────────────────────

class TrendPoint(BaseModel):
    period: Period
    period_name: str
    score: float
    ikm: float
    respondent_count: int
    quality: ServiceQuality
    has_data: bool


class IndicatorPeriodScore(BaseModel):
    period_name: str
    score: float
    ikm: float


class IndicatorTrend(BaseModel):
    indicator_id: str
    title: str
    scores: list[IndicatorPeriodScore] = Field(default_factory=list)


class PeriodComparison(BaseModel):
    survey_id: str
    periods: list[str]
    indicators: list[IndicatorTrend]
    overall: list[TrendPoint]
    previous_score: float | None = None
    current_score: float | None = None
    change: float | None = None  # current_score - previous_score


# ── Calculation breakdown ─────────────────────────────────────────────

class CalculationDetail(BaseModel):
    label: str
    respondent_count: int
    question_count: int
    raw_total_score: float
    denominator: int
    formula: str
    result: float


class CalculationBreakdown(BaseModel):
    survey_id: str
    survey_type: SurveyType
    indicators: list[CalculationDetail]
    overall: CalculationDetail
    ikm: float
    ikm_formula: str
    quality_description: str
