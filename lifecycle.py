"""
Response lifecycle: draft -> in_progress -> completed -> scored.

Every transition either applies completely or raises a QuestionnaireError
and leaves the response untouched. Flagging is orthogonal to the state.
"""

import logging
import secrets
import time
from datetime import datetime, timezone

from config import AUTO_FLAG_RISK_LEVEL
from errors import InvalidTransition, QuestionNotInQuestionnaire, ResponseAlreadyScored
from models import Answer, Response
from questions import normalize_value
from risk import classify, meets_level
from scoring import check_answers, compute_score, index_answers

logger = logging.getLogger(__name__)

BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def generate_unique_code() -> str:
    millis = int(time.time() * 1000)
    stamp = ""
    while millis:
        millis, digit = divmod(millis, 36)
        stamp = BASE36[digit] + stamp
    return f"{secrets.token_hex(4).upper()}-{stamp[-4:]}"


def _now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _reject_if_scored(response: Response, action: str):
    if response.state == "scored":
        logger.warning(f"Cannot {action} response {response.id}: already scored")
        raise ResponseAlreadyScored(f"Response {response.id} is already scored; reopen it to {action}")


def start_response(questionnaire, name=None, email=None, age=None, gender=None) -> Response:
    response = Response(
        questionnaire_id=questionnaire.id,
        respondent_name=name,
        respondent_email=email,
        respondent_age=age,
        respondent_gender=gender,
        unique_code=generate_unique_code(),
        state="draft",
        flagged_for_review=False,
    )
    logger.info(f"Started response {response.unique_code} for questionnaire {questionnaire.id}")
    return response


def record_answer(response: Response, question, raw_value) -> Response:
    _reject_if_scored(response, "record answers")
    if response.state not in ("draft", "in_progress"):
        raise InvalidTransition(f"Cannot record answers on a {response.state} response; reopen it first")
    if question.questionnaire_id != response.questionnaire_id:
        raise QuestionNotInQuestionnaire(
            f"Question {question.id} does not belong to questionnaire {response.questionnaire_id}", question.id
        )

    value = normalize_value(question, raw_value)
    existing = next((a for a in response.answers if a.question_id == question.id), None)
    if existing is not None:
        existing.value = value
        logger.info(f"Updated answer to {question.id} on response {response.id}")
    else:
        response.answers.append(Answer(question_id=question.id, value=value))
        logger.info(f"Recorded answer to {question.id} on response {response.id}")
    response.state = "in_progress"
    # touch the row so the version check covers answer writes
    response.updated_at = _now()
    return response


def submit(response: Response, questions) -> Response:
    _reject_if_scored(response, "submit")
    if response.state not in ("draft", "in_progress"):
        raise InvalidTransition(f"Cannot submit a {response.state} response")
    questions = list(questions)
    # a draft passes only when no question is required
    check_answers(questions, index_answers(questions, response.answers))
    response.state = "completed"
    response.completed_at = _now()
    logger.info(f"Response {response.id} submitted with {len(response.answers)} answers")
    return response


def score(response: Response, questionnaire, questions, answers=None) -> Response:
    _reject_if_scored(response, "score")
    if response.state != "completed":
        raise InvalidTransition(f"Only completed responses can be scored (response is {response.state})")
    if response.questionnaire_id != questionnaire.id:
        raise InvalidTransition(f"Response {response.id} does not belong to questionnaire {questionnaire.id}")

    thresholds = questionnaire.risk_thresholds or []
    outcome = compute_score(questionnaire, questions, response.answers if answers is None else answers)
    risk_level = classify(outcome.score, thresholds)
    flag_level = questionnaire.auto_flag_level or AUTO_FLAG_RISK_LEVEL
    auto_flag = bool(flag_level) and flag_level in [t["label"] for t in thresholds] and meets_level(
        risk_level, flag_level, thresholds
    )

    response.score = outcome.score
    response.risk_level = risk_level
    response.state = "scored"
    if auto_flag:
        response.flagged_for_review = True
        logger.warning(f"Response {response.id} auto-flagged: risk level {risk_level} reaches {flag_level}")
    logger.info(f"Response {response.id} scored {outcome.score} ({risk_level})")
    return response


def set_flag(response: Response, flagged: bool) -> Response:
    if response.state == "draft":
        raise InvalidTransition("A draft response cannot be flagged")
    response.flagged_for_review = bool(flagged)
    logger.info(f"Response {response.id} flagged_for_review={response.flagged_for_review}")
    return response


def reopen(response: Response) -> Response:
    if response.state not in ("completed", "scored"):
        raise InvalidTransition(f"Only completed or scored responses can be reopened (response is {response.state})")
    response.state = "in_progress"
    response.score = None
    response.risk_level = None
    response.completed_at = None
    logger.info(f"Response {response.id} reopened")
    return response
