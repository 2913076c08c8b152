"""
Tests for answer-value normalisation, validation and numeric mapping
"""

import pytest

from conftest import make_question, make_questionnaire
from errors import DuplicateThreshold, InvalidAnswerValue, QuestionnaireConfigError
from questions import normalize_value, numeric_value_of, validate_questionnaire, validate_value

SYMPTOMS = [
    {"value": 2, "label": "Headache"},
    {"value": 1, "label": "Fatigue"},
    {"value": 3, "label": "Insomnia"},
]


class TestNormalizeValue:

    def test_single_choice_accepts_value_string_and_label(self):
        question = make_question("q", 1)
        assert normalize_value(question, 2) == 2
        assert normalize_value(question, "2") == 2
        assert normalize_value(question, "nearly every day") == 3

    def test_single_choice_rejects_unknown_option(self):
        question = make_question("q", 1)
        with pytest.raises(InvalidAnswerValue) as exc:
            normalize_value(question, 7)
        assert exc.value.question_id == "q_1"

    def test_single_choice_rejects_boolean(self):
        question = make_question("q", 1)
        with pytest.raises(InvalidAnswerValue):
            normalize_value(question, True)

    def test_multiple_choice_keeps_option_order_without_duplicates(self):
        question = make_question("q", 1, type="multiple_choice", options=SYMPTOMS)
        assert normalize_value(question, ["Insomnia", "Headache", "insomnia"]) == [2, 3]

    def test_multiple_choice_accepts_comma_separated_labels(self):
        question = make_question("q", 1, type="multiple_choice", options=SYMPTOMS)
        assert normalize_value(question, "Fatigue, Headache") == [2, 1]

    def test_multiple_choice_requires_a_selection(self):
        question = make_question("q", 1, type="multiple_choice", options=SYMPTOMS)
        with pytest.raises(InvalidAnswerValue):
            normalize_value(question, [])

    @pytest.mark.parametrize("raw,expected", [("Yes", True), ("no", False), (" YES ", True), (False, False)])
    def test_yes_no(self, raw, expected):
        question = make_question("q", 1, type="yes_no")
        assert normalize_value(question, raw) is expected

    def test_yes_no_rejects_other_literals(self):
        question = make_question("q", 1, type="yes_no")
        with pytest.raises(InvalidAnswerValue):
            normalize_value(question, "maybe")

    def test_text_is_stripped_and_must_not_be_blank(self):
        question = make_question("q", 1, type="text")
        assert normalize_value(question, "  fine  ") == "fine"
        with pytest.raises(InvalidAnswerValue):
            normalize_value(question, "   ")

    def test_date_must_be_iso(self):
        question = make_question("q", 1, type="date")
        assert normalize_value(question, "2024-03-01") == "2024-03-01"
        with pytest.raises(InvalidAnswerValue):
            normalize_value(question, "March 1st")

    def test_none_is_rejected(self):
        with pytest.raises(InvalidAnswerValue):
            normalize_value(make_question("q", 1, type="text"), None)


class TestValidateValue:

    def test_matches_shape_to_type(self):
        assert validate_value(make_question("q", 1), 3)
        assert not validate_value(make_question("q", 1), "3")
        assert validate_value(make_question("q", 1, type="yes_no"), True)
        assert not validate_value(make_question("q", 1, type="yes_no"), "Yes")
        assert validate_value(make_question("q", 1, type="date"), "2024-01-31")
        assert not validate_value(make_question("q", 1, type="date"), 20240131)

    def test_multiple_choice_values_must_be_options(self):
        question = make_question("q", 1, type="multiple_choice", options=SYMPTOMS)
        assert validate_value(question, [2, 1])
        assert not validate_value(question, [2, 9])
        assert not validate_value(question, [2, 2])


class TestNumericValueOf:

    def test_choice_uses_option_value(self):
        assert numeric_value_of(make_question("q", 1), 2) == 2

    def test_option_score_overrides_value(self):
        options = [{"value": "a", "label": "A", "score": 4}, {"value": "b", "label": "B"}]
        question = make_question("q", 1, options=options)
        assert numeric_value_of(question, "a") == 4
        assert numeric_value_of(question, "b") is None

    def test_multiple_choice_sums_selected(self):
        question = make_question("q", 1, type="multiple_choice", options=SYMPTOMS)
        assert numeric_value_of(question, [2, 3]) == 5

    def test_yes_no_maps_to_one_and_zero(self):
        question = make_question("q", 1, type="yes_no")
        assert numeric_value_of(question, True) == 1
        assert numeric_value_of(question, False) == 0

    def test_text_and_date_have_no_numeric_meaning(self):
        assert numeric_value_of(make_question("q", 1, type="text"), "hello") is None
        assert numeric_value_of(make_question("q", 1, type="date"), "2024-01-01") is None


class TestValidateQuestionnaire:

    def test_valid_definition_passes(self, phq9):
        questionnaire, questions = phq9
        validate_questionnaire(questionnaire, questions)

    def test_duplicate_order_num(self):
        questionnaire = make_questionnaire("q")
        questions = [make_question("q", 1, id="a"), make_question("q", 1, id="b")]
        with pytest.raises(QuestionnaireConfigError):
            validate_questionnaire(questionnaire, questions)

    def test_choice_question_without_options(self):
        questionnaire = make_questionnaire("q")
        with pytest.raises(QuestionnaireConfigError):
            validate_questionnaire(questionnaire, [make_question("q", 1, type="rating", options=[])])

    def test_tied_thresholds(self):
        questionnaire = make_questionnaire("q", thresholds=[
            {"label": "low", "min_score": 0},
            {"label": "high", "min_score": 0},
        ])
        with pytest.raises(DuplicateThreshold):
            validate_questionnaire(questionnaire, [])

    def test_auto_flag_level_must_be_a_risk_level(self):
        questionnaire = make_questionnaire("q", auto_flag_level="critical")
        with pytest.raises(QuestionnaireConfigError):
            validate_questionnaire(questionnaire, [])
