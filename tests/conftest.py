"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from ikm_pipeline.models import (
    Answer,
    Indicator,
    Period,
    Question,
    QuestionType,
    Response,
    Survey,
    SurveyType,
)


@pytest.fixture
def survey_factory():
    """Build a Survey from a compact description.

    `indicators` is a list of (indicator_id, weight, questions) where each
    question is (question_id, weight) or (question_id, weight, scale_max).
    """

    def _create(indicators=None, survey_type=SurveyType.UNWEIGHTED, survey_id="s1", title="Survei Layanan"):
        built = []
        for ind_id, ind_weight, questions in indicators or []:
            qs = []
            for spec in questions:
                q_id, q_weight = spec[0], spec[1]
                scale_max = spec[2] if len(spec) > 2 else 5
                qs.append(Question(
                    id=q_id,
                    text=f"Pertanyaan {q_id}",
                    type=QuestionType.SCALE,
                    weight=q_weight,
                    indicator_id=ind_id,
                    scale_max=scale_max,
                ))
            built.append(Indicator(id=ind_id, title=f"Indikator {ind_id}", weight=ind_weight, questions=qs))
        return Survey(id=survey_id, title=title, type=survey_type, indicators=built)

    return _create


@pytest.fixture
def response_factory():
    """Build a Response from a {question_id: score} mapping."""
    counter = {"n": 0}

    def _create(scores, period=None, is_complete=True, survey_id="s1", response_id=None, demographics=None):
        counter["n"] += 1
        if isinstance(period, dict):
            period = Period(**period)
        return Response(
            id=response_id or f"r{counter['n']}",
            survey_id=survey_id,
            answers={q: Answer(question_id=q, score=s) for q, s in scores.items()},
            is_complete=is_complete,
            period=period,
            demographics=demographics or {},
        )

    return _create


@pytest.fixture
def two_question_survey(survey_factory):
    """One indicator, two 1-5 scale questions, unweighted."""
    return survey_factory([("i1", 1, [("q1", 1), ("q2", 1)])])


@pytest.fixture
def export_data():
    """A raw export as the data-access layer hands it over."""
    return {
        "survey": {
            "id": "svc-2024",
            "title": "Survei Kepuasan Masyarakat",
            "type": "unweighted",
            "indicators": [
                {
                    "id": "i1",
                    "title": "Persyaratan",
                    "weight": "1",
                    "questions": [
                        {"id": "q1", "text": "Kesesuaian persyaratan", "type": "likert-5", "weight": 1},
                        {"id": "q2", "text": "Kejelasan prosedur", "type": "likert-5", "weight": 1},
                        {"id": "q3", "text": "Saran", "type": "text"},
                    ],
                },
            ],
        },
        "responses": [
            {"id": "r1", "survey_id": "svc-2024", "periode_survei": "2024-Q1",
             "demographics": {"gender": "Perempuan", "education": "S1"},
             "answers": [{"question_id": "q1", "score": 5}, {"question_id": "q2", "score": 5},
                         {"question_id": "q3", "value": "Bagus"}]},
            {"id": "r2", "survey_id": "svc-2024", "periode_survei": "2024-Q1",
             "demographic_data": [{"field_id": "gender", "value": "Laki-laki"}],
             "answers": [{"question_id": "q1", "score": 4}, {"question_id": "q2", "score": 4}]},
            {"id": "r3", "survey_id": "svc-2024", "periode_survei": "2024-Q2",
             "demographics": {"gender": "Perempuan", "education": ""},
             "answers": [{"question_id": "q1", "score": 3}, {"question_id": "q2", "score": 3}]},
        ],
    }
