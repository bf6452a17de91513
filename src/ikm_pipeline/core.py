"""Core orchestration for the IKM scoring pipeline.

Loads configuration and exported survey data, then runs the
normalize -> analyze -> (trend) -> report stages. The CLI is a thin
wrapper around these functions.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError

from . import ingest, quant, report, trend
from .errors import ConfigError, NormalizationError
from .models import (
    CalculationBreakdown,
    PeriodComparison,
    Response,
    ScoringConfig,
    Survey,
    SurveyResult,
)

CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "scoring.yaml"
CONFIG_ENV_VAR = "IKM_CONFIG_PATH"

ProgressFn = Callable[[str], None]


def _noop_progress(msg: str) -> None:
    pass


# ── Result dataclasses ───────────────────────────────────────────────


@dataclass
class AnalyzeResult:
    survey: Survey
    responses: list[Response]
    result: SurveyResult
    breakdown: CalculationBreakdown


@dataclass
class ReportResult:
    result: SurveyResult
    comparison: PeriodComparison | None
    markdown: str


# ── Config and data helpers ──────────────────────────────────────────


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_PATH


def load_config(path: Path | None = None) -> ScoringConfig:
    """Load scoring config from YAML. Falls back to defaults if the file is missing."""
    path = path or config_path()
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return ScoringConfig()
    except yaml.YAMLError as e:
        raise ConfigError(f"{path} is not valid YAML: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"{path} does not contain a config mapping")
    try:
        return ScoringConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e.errors()[0]['msg']}") from e


def load_export(path: Path) -> dict[str, Any]:
    """Read an exported survey (JSON or YAML) into a plain dict."""
    with open(path) as f:
        try:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise NormalizationError(f"Cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise NormalizationError(f"{path} does not contain a survey export object")
    return data


def load_survey(
    export_path: Path,
    config: ScoringConfig | None = None,
    on_progress: ProgressFn | None = None,
) -> tuple[Survey, list[Response]]:
    progress = on_progress or _noop_progress
    config = config or load_config()
    progress(f"Loading {export_path}...")
    survey, responses = ingest.normalize(load_export(export_path), config)
    complete = sum(1 for r in responses if r.is_complete)
    progress(
        f"  {survey.title or survey.id}: {len(survey.indicators)} indicators, "
        f"{len(survey.scored_questions)} scored questions, "
        f"{len(responses)} responses ({complete} complete)"
    )
    return survey, responses


# ── Core pipeline functions ──────────────────────────────────────────


def run_analyze(
    export_path: Path,
    period: str | None = None,
    config: ScoringConfig | None = None,
    on_progress: ProgressFn | None = None,
) -> AnalyzeResult:
    """Normalize an export and score it, optionally scoped to one period."""
    progress = on_progress or _noop_progress
    survey, responses = load_survey(export_path, config, on_progress)

    if period:
        progress(f"Scoring period {period} ({survey.type.value})...")
        result = trend.period_result(survey, responses, period)
    else:
        progress(f"Scoring all responses ({survey.type.value})...")
        result = quant.analyze(survey, responses)

    if result.excluded_answers:
        progress(f"  Excluded {result.excluded_answers} out-of-range answers")

    return AnalyzeResult(
        survey=survey,
        responses=responses,
        result=result,
        breakdown=report.calculation_breakdown(result),
    )


def run_trend(
    export_path: Path,
    periods: list[str],
    config: ScoringConfig | None = None,
    on_progress: ProgressFn | None = None,
) -> PeriodComparison:
    """Compare scores across the given periods, in the given order."""
    progress = on_progress or _noop_progress
    survey, responses = load_survey(export_path, config, on_progress)
    progress(f"Comparing {len(periods)} periods...")
    return trend.compare_periods(survey, responses, periods)


def run_report(
    export_path: Path,
    periods: list[str] | None = None,
    config: ScoringConfig | None = None,
    on_progress: ProgressFn | None = None,
) -> ReportResult:
    """Score everything, add a trend section when periods are given, render markdown."""
    progress = on_progress or _noop_progress
    config = config or load_config()
    survey, responses = load_survey(export_path, config, on_progress)
    result = quant.analyze(survey, responses)
    comparison = trend.compare_periods(survey, responses, periods) if periods else None
    progress("Rendering report...")
    return ReportResult(
        result=result,
        comparison=comparison,
        markdown=report.render_report(result, comparison, config),
    )


def run_export(
    export_path: Path,
    out_dir: Path,
    periods: list[str] | None = None,
    config: ScoringConfig | None = None,
    on_progress: ProgressFn | None = None,
) -> list[Path]:
    """Write result and per-respondent tables as CSV files into `out_dir`."""
    progress = on_progress or _noop_progress
    survey, responses = load_survey(export_path, config, on_progress)
    result = quant.analyze(survey, responses)
    points = trend.compute_trend(survey, responses, periods) if periods else None
    respondents = report.respondent_frame(survey, responses)
    paths = report.write_csv(result, out_dir, points, respondents)
    for path in paths:
        progress(f"  Wrote {path}")
    return paths
