import logging
import math

import pytest

from ikm_pipeline.errors import SurveyTypeError
from ikm_pipeline.models import Indicator, Question, QuestionType, Survey, SurveyType
from ikm_pipeline.quant import (
    analyze,
    demographic_breakdown,
    indicator_score,
    question_detail,
    survey_score,
    unweighted_score,
    weighted_score,
)


class TestQuestionDetail:

    def test_average_and_distribution(self, two_question_survey, response_factory):
        q1 = two_question_survey.indicators[0].questions[0]
        responses = [response_factory({"q1": s}) for s in (5, 5, 4, 3)]

        detail = question_detail(q1, responses)

        assert detail.average_score == pytest.approx(4.25)
        assert detail.response_count == 4
        assert [b.score for b in detail.distribution] == [1, 2, 3, 4, 5]
        assert [b.count for b in detail.distribution] == [0, 0, 1, 1, 2]
        assert [b.percentage for b in detail.distribution] == pytest.approx([0, 0, 25, 25, 50])

    def test_statistics(self, two_question_survey, response_factory):
        q1 = two_question_survey.indicators[0].questions[0]
        responses = [response_factory({"q1": s}) for s in (5, 5, 4, 3)]

        detail = question_detail(q1, responses)

        assert detail.min_score == 3
        assert detail.max_score == 5
        assert detail.median == pytest.approx(4.5)
        assert detail.mode == 5
        assert detail.std_dev == pytest.approx(0.6875 ** 0.5)
        assert detail.total_score == 17

    def test_no_answers_gives_zeros_not_nan(self, two_question_survey, response_factory):
        q2 = two_question_survey.indicators[0].questions[1]
        responses = [response_factory({"q1": 4})]

        detail = question_detail(q2, responses)

        assert detail.average_score == 0
        assert detail.response_count == 0
        assert all(b.percentage == 0 for b in detail.distribution)
        assert not any(math.isnan(b.percentage) for b in detail.distribution)

    def test_out_of_range_excluded_and_counted(self, two_question_survey, response_factory):
        q1 = two_question_survey.indicators[0].questions[0]
        responses = [response_factory({"q1": s}) for s in (4, 9, 0)]

        detail = question_detail(q1, responses)

        assert detail.average_score == 4.0
        assert detail.response_count == 1
        assert detail.invalid_count == 2

    def test_weight_reported_only_when_weighted(self, survey_factory, response_factory):
        survey = survey_factory([("i1", 1, [("q1", 3)])])
        q1 = survey.indicators[0].questions[0]
        responses = [response_factory({"q1": 4})]

        assert question_detail(q1, responses, weighted=True).weight == 3
        assert question_detail(q1, responses, weighted=False).weight == 1


class TestFormulas:

    def test_unweighted_zero_denominator(self):
        assert unweighted_score(10, 0, 3) == 0
        assert unweighted_score(10, 4, 0) == 0

    def test_weighted_zero_total_weight(self):
        assert weighted_score([(4.0, 0), (3.0, 0)]) == 0
        assert weighted_score([]) == 0


class TestUnweightedIndicator:

    def test_missing_answer_is_skipped_not_zero_filled(self, two_question_survey, response_factory):
        """{q1:4,q2:3} and {q1:5}: S=12 over n×p=4 slots gives 3.0."""
        responses = [
            response_factory({"q1": 4, "q2": 3}),
            response_factory({"q1": 5}),
        ]

        result = analyze(two_question_survey, responses)
        ind = result.indicator_scores[0]

        assert ind.total_score == 12
        assert ind.respondent_count == 2
        assert ind.question_count == 2
        assert ind.score == pytest.approx(3.0)
        assert ind.answer_count == 3
        q2 = ind.question_details[1]
        assert q2.response_count == 1
        assert q2.average_score == 3.0

    def test_end_to_end_scenario(self, two_question_survey, response_factory):
        """Three complete responses [5,5], [4,4], [3,3] on a 1-5 scale."""
        responses = [response_factory({"q1": s, "q2": s}) for s in (5, 4, 3)]

        result = analyze(two_question_survey, responses)
        ind = result.indicator_scores[0]

        assert [d.average_score for d in ind.question_details] == [4.0, 4.0]
        assert ind.total_score == 24
        assert ind.respondent_count * ind.question_count == 6
        assert ind.score == 4.0
        assert result.average_score == 4.0
        assert result.satisfaction_index == pytest.approx(3.25)
        assert result.quality.category == "B"
        assert result.quality.label == "Baik"
        assert result.has_data

    def test_zero_responses(self, two_question_survey):
        result = analyze(two_question_survey, [])

        assert result.average_score == 0
        assert result.indicator_scores[0].score == 0
        assert result.total_responses == 0
        assert not result.has_data
        assert result.satisfaction_index == 1.0
        assert result.quality.category == "D"

    def test_out_of_range_answers_still_count_respondent(self, two_question_survey, response_factory, caplog):
        responses = [response_factory({"q1": 4}), response_factory({"q1": 9})]

        with caplog.at_level(logging.WARNING, logger="ikm_pipeline.quant"):
            result = analyze(two_question_survey, responses)

        assert result.excluded_answers == 1
        assert result.indicator_scores[0].score == pytest.approx(4 / 4)
        assert "out-of-range" in caplog.text

    def test_incomplete_responses_ignored(self, two_question_survey, response_factory):
        responses = [
            response_factory({"q1": 5, "q2": 5}),
            response_factory({"q1": 1, "q2": 1}, is_complete=False),
        ]

        result = analyze(two_question_survey, responses)

        assert result.total_responses == 1
        assert result.average_score == 5.0

    def test_unscored_questions_not_counted_in_p(self, response_factory):
        survey = Survey(id="s1", title="", type=SurveyType.UNWEIGHTED, indicators=[
            Indicator(id="i1", title="A", questions=[
                Question(id="q1", indicator_id="i1"),
                Question(id="note", indicator_id="i1", type=QuestionType.TEXT),
            ]),
        ])

        result = analyze(survey, [response_factory({"q1": 4})])

        assert result.indicator_scores[0].question_count == 1
        assert result.indicator_scores[0].score == 4.0


class TestWeightedIndicator:

    def test_non_uniform_weights(self, survey_factory, response_factory):
        survey = survey_factory([("i1", 1, [("q1", 3), ("q2", 1)])], survey_type=SurveyType.WEIGHTED)
        responses = [
            response_factory({"q1": 4, "q2": 3}),
            response_factory({"q1": 5}),
        ]

        result = analyze(survey, responses)

        # (4.5 × 3 + 3.0 × 1) / 4
        assert result.indicator_scores[0].score == pytest.approx(4.125)

    def test_uniform_weights_equal_mean_of_question_averages(self, survey_factory, response_factory):
        scores = [{"q1": 4, "q2": 3}, {"q1": 5}]
        weighted = survey_factory([("i1", 2, [("q1", 7), ("q2", 7)])], survey_type=SurveyType.WEIGHTED)
        unweighted = survey_factory([("i1", 2, [("q1", 7), ("q2", 7)])])

        w = analyze(weighted, [response_factory(s) for s in scores]).indicator_scores[0].score
        u = analyze(unweighted, [response_factory(s) for s in scores]).indicator_scores[0].score

        assert w == pytest.approx((4.5 + 3.0) / 2)
        assert u == pytest.approx(3.0)
        assert w != pytest.approx(u)

    def test_zero_weights_score_zero(self, survey_factory, response_factory):
        survey = survey_factory([("i1", 0, [("q1", 0), ("q2", 0)])], survey_type=SurveyType.WEIGHTED)

        result = analyze(survey, [response_factory({"q1": 5, "q2": 5})])

        assert result.indicator_scores[0].score == 0
        assert result.average_score == 0
        assert not math.isnan(result.satisfaction_index)

    def test_indicator_score_standalone(self, survey_factory, response_factory):
        survey = survey_factory([("i1", 2, [("q1", 3), ("q2", 1)])], survey_type=SurveyType.WEIGHTED)
        responses = [response_factory({"q1": 4, "q2": 3}), response_factory({"q1": 5})]

        ind = indicator_score(survey.indicators[0], responses, SurveyType.WEIGHTED)

        assert ind.score == pytest.approx(4.125)
        assert ind.weight == 2
        assert ind.weighted_contribution == pytest.approx(4.125)


class TestSurveyScore:

    @pytest.fixture
    def two_indicators(self):
        return [
            ("a", 1, [("a1", 1)]),
            ("b", 3, [("b1", 1)]),
        ]

    @pytest.fixture
    def responses(self, response_factory):
        return [
            response_factory({"a1": 4, "b1": 2}),
            response_factory({"a1": 4, "b1": 2}),
        ]

    def test_weighted_combines_indicator_scores(self, survey_factory, two_indicators, responses):
        survey = survey_factory(two_indicators, survey_type=SurveyType.WEIGHTED)

        result = analyze(survey, responses)

        assert result.average_score == pytest.approx((4 * 1 + 2 * 3) / 4)
        contributions = [ind.weighted_contribution for ind in result.indicator_scores]
        assert contributions == pytest.approx([1.0, 1.5])

    def test_unweighted_pools_all_questions(self, survey_factory, two_indicators, responses):
        survey = survey_factory(two_indicators)

        result = analyze(survey, responses)

        assert result.total_score == 12
        assert result.total_questions == 2
        assert result.average_score == pytest.approx(12 / (2 * 2))
        assert [ind.weight for ind in result.indicator_scores] == [1.0, 1.0]

    def test_empty_indicator_left_out_of_weighted_combination(self, survey_factory, two_indicators, responses):
        survey = survey_factory(two_indicators + [("c", 5, [])], survey_type=SurveyType.WEIGHTED)

        result = analyze(survey, responses)

        assert result.average_score == pytest.approx(2.5)
        empty = result.indicator_scores[2]
        assert empty.score == 0
        assert empty.weighted_contribution == 0

    def test_survey_without_indicators_has_no_data(self, survey_factory, response_factory):
        survey = survey_factory([])

        result = analyze(survey, [response_factory({})])

        assert result.average_score == 0
        assert result.indicator_scores == []
        assert not result.has_data
        assert result.satisfaction_index == 1.0

    def test_overall_distribution(self, survey_factory, two_indicators, responses):
        survey = survey_factory(two_indicators)

        result = analyze(survey, responses)

        counts = {b.score: b.count for b in result.distribution}
        assert counts == {1: 0, 2: 2, 3: 0, 4: 2, 5: 0}

    def test_survey_score_helper(self, survey_factory, two_indicators, responses):
        survey = survey_factory(two_indicators, survey_type=SurveyType.WEIGHTED)
        assert survey_score(survey, responses) == pytest.approx(2.5)

    def test_indicator_ikm_uses_its_own_scale(self, survey_factory, response_factory):
        survey = survey_factory([("a", 1, [("a1", 1, 4)]), ("b", 1, [("b1", 1, 6)])])

        result = analyze(survey, [response_factory({"a1": 4, "b1": 6})])

        assert [ind.ikm for ind in result.indicator_scores] == pytest.approx([4.0, 4.0])
        assert result.scale_max == 6


class TestSurveyType:

    def test_unknown_type_fails_fast(self):
        survey = Survey.model_construct(id="s1", title="", type="mixed", indicators=[])

        with pytest.raises(SurveyTypeError):
            analyze(survey, [])

    def test_unknown_type_for_single_indicator(self, two_question_survey):
        with pytest.raises(SurveyTypeError):
            indicator_score(two_question_survey.indicators[0], [], "mixed")

    def test_plain_string_type_is_accepted(self, two_question_survey, response_factory):
        survey = Survey.model_construct(
            id="s1", title="", type="weighted", indicators=two_question_survey.indicators,
        )

        result = analyze(survey, [response_factory({"q1": 4, "q2": 2})])

        assert result.survey_type == SurveyType.WEIGHTED
        assert result.average_score == 3.0


class TestDemographicBreakdown:

    @pytest.fixture
    def responses(self, response_factory):
        return [
            response_factory({"q1": 5}, demographics={"gender": "Perempuan", "education": "S1"}),
            response_factory({"q1": 4}, demographics={"gender": "Laki-laki"}),
            response_factory({"q1": 3}, demographics={"gender": "Perempuan"}),
            response_factory({"q1": 1}, demographics={"gender": "Laki-laki"}, is_complete=False),
        ]

    def test_counts_per_field(self, responses):
        gender, education = demographic_breakdown(responses)

        assert gender.field_id == "gender"
        assert gender.respondent_count == 3
        assert [(v.label, v.count, v.pct) for v in gender.values] == [
            ("Perempuan", 2, 66.7),
            ("Laki-laki", 1, 33.3),
        ]
        assert education.field_id == "education"
        assert education.respondent_count == 1
        assert [(v.label, v.count, v.pct) for v in education.values] == [("S1", 1, 33.3)]

    def test_no_demographics(self, response_factory):
        assert demographic_breakdown([response_factory({"q1": 5})]) == []
        assert demographic_breakdown([]) == []

    def test_included_in_analysis(self, two_question_survey, responses):
        result = analyze(two_question_survey, responses)

        assert [b.field_id for b in result.demographic_breakdown] == ["gender", "education"]
        assert result.demographic_breakdown[0].values[0].count == 2
