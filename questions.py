"""
Question model: answer-value validation and numeric mapping.

Raw values arrive from the API in loose shapes (option labels, numbers sent
as strings, "Yes"/"No"). They are normalised once, when an answer is
recorded, into the stored shape for the question's type:

    text                            non-empty string
    single_choice / rating / scale  the selected option's value
    multiple_choice                 list of option values, in option order
    yes_no                          bool
    date                            ISO "YYYY-MM-DD" string
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from errors import InvalidAnswerValue, QuestionnaireConfigError
from risk import check_thresholds

logger = logging.getLogger(__name__)

CHOICE_TYPES = ("single_choice", "rating", "scale")
OPTION_TYPES = ("single_choice", "multiple_choice", "rating", "scale")
YES_NO = {"yes": True, "no": False}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _match_option(options: List[Dict[str, Any]], raw: Any) -> Optional[Dict[str, Any]]:
    for option in options:
        if raw == option["value"] and type(raw) is not bool:
            return option
    if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
        text = str(raw).strip()
        for option in options:
            if text == str(option["value"]):
                return option
        for option in options:
            if text.lower() == str(option.get("label", "")).strip().lower():
                return option
    return None


def _option_number(option: Dict[str, Any]) -> Optional[float]:
    if _is_number(option.get("score")):
        return option["score"]
    if _is_number(option["value"]):
        return option["value"]
    return None


def normalize_value(question, raw: Any) -> Any:
    """Convert a raw answer into the stored shape, or raise InvalidAnswerValue."""
    qtype = question.type
    options = question.options or []

    def invalid(reason: str):
        logger.warning(f"Rejected answer for question {question.id}: {reason}")
        return InvalidAnswerValue(f"Invalid answer for question {question.id}: {reason}", question.id)

    if raw is None:
        raise invalid("no value")

    if qtype == "text":
        if not isinstance(raw, str) or not raw.strip():
            raise invalid("expected non-empty text")
        return raw.strip()

    if qtype in CHOICE_TYPES:
        option = _match_option(options, raw)
        if option is None:
            raise invalid(f"{raw!r} is not one of the options")
        return option["value"]

    if qtype == "multiple_choice":
        if isinstance(raw, str):
            raw = [part for part in raw.split(",") if part.strip()]
        if not isinstance(raw, (list, tuple, set)) or not raw:
            raise invalid("expected at least one selected option")
        selected = []
        for item in raw:
            option = _match_option(options, item)
            if option is None:
                raise invalid(f"{item!r} is not one of the options")
            selected.append(option["value"])
        # option order, duplicates dropped
        return [option["value"] for option in options if option["value"] in selected]

    if qtype == "yes_no":
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in YES_NO:
            return YES_NO[raw.strip().lower()]
        raise invalid("expected Yes or No")

    if qtype == "date":
        if isinstance(raw, date):
            return raw.isoformat()
        try:
            return date.fromisoformat(str(raw).strip()).isoformat()
        except ValueError:
            raise invalid("expected an ISO date (YYYY-MM-DD)")

    raise invalid(f"unknown question type {qtype}")


def validate_value(question, value: Any) -> bool:
    """Structural check of a stored value against the question's type and options."""
    qtype = question.type
    values = [option["value"] for option in (question.options or [])]
    if qtype == "text":
        return isinstance(value, str) and bool(value.strip())
    if qtype in CHOICE_TYPES:
        return not isinstance(value, bool) and value in values
    if qtype == "multiple_choice":
        return (
            isinstance(value, list)
            and bool(value)
            and len(value) == len(set(map(str, value)))
            and all(v in values for v in value)
        )
    if qtype == "yes_no":
        return isinstance(value, bool)
    if qtype == "date":
        try:
            date.fromisoformat(value)
            return True
        except (TypeError, ValueError):
            return False
    return False


def numeric_value_of(question, value: Any) -> Optional[float]:
    """Scoring-ready number for a stored value; None when the type has no numeric meaning."""
    qtype = question.type
    options = question.options or []
    if qtype in CHOICE_TYPES:
        option = _match_option(options, value)
        return _option_number(option) if option else None
    if qtype == "multiple_choice":
        numbers = [_option_number(o) for o in options if o["value"] in value]
        numbers = [n for n in numbers if n is not None]
        return sum(numbers) if numbers else None
    if qtype == "yes_no":
        return 1 if value else 0
    return None


def validate_questionnaire(questionnaire, questions) -> None:
    """Check a questionnaire definition before it is stored."""
    seen_orders = set()
    for question in questions:
        if question.questionnaire_id != questionnaire.id:
            raise QuestionnaireConfigError(
                f"Question {question.id} belongs to {question.questionnaire_id}, not {questionnaire.id}",
                question.id,
            )
        if question.order_num in seen_orders:
            raise QuestionnaireConfigError(
                f"Duplicate order_num {question.order_num} in questionnaire {questionnaire.id}",
                question.id,
            )
        seen_orders.add(question.order_num)
        if question.type in OPTION_TYPES:
            options = question.options or []
            if not options:
                raise QuestionnaireConfigError(f"Question {question.id} of type {question.type} needs options", question.id)
            if any("value" not in option for option in options):
                raise QuestionnaireConfigError(f"Question {question.id} has an option without a value", question.id)
    check_thresholds(questionnaire.risk_thresholds or [])
    if questionnaire.auto_flag_level and questionnaire.auto_flag_level not in [
        t["label"] for t in questionnaire.risk_thresholds or []
    ]:
        raise QuestionnaireConfigError(
            f"Auto-flag level {questionnaire.auto_flag_level!r} is not a risk level of {questionnaire.id}"
        )
