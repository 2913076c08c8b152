import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from config import SCORE_PRECISION
from errors import (
    InvalidAnswerValue,
    MissingRequiredAnswer,
    QuestionNotInQuestionnaire,
    UnsupportedScoringMethod,
)
from questions import numeric_value_of, validate_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreOutcome:
    score: float
    contributing_question_count: int
    max_score: Optional[float] = None


def _weight(question) -> float:
    # transient instances have no column default applied yet
    return 1 if question.scoring_weight is None else question.scoring_weight


def index_answers(questions, answers) -> dict:
    """Map question id -> answer, rejecting answers to foreign questions."""
    question_ids = {q.id for q in questions}
    by_question = {}
    for answer in answers:
        if answer.question_id not in question_ids:
            raise QuestionNotInQuestionnaire(
                f"Question {answer.question_id} is not part of this questionnaire", answer.question_id
            )
        by_question[answer.question_id] = answer
    return by_question


def check_answers(questions, by_question: dict) -> None:
    for question in sorted(questions, key=lambda q: q.order_num):
        answer = by_question.get(question.id)
        if answer is None:
            if question.required:
                raise MissingRequiredAnswer(f"Required question {question.id} has no answer", question.id)
            continue
        if not validate_value(question, answer.value):
            raise InvalidAnswerValue(f"Stored answer for question {question.id} is invalid", question.id)


def compute_score(questionnaire, questions: Iterable, answers: Iterable, precision: int = SCORE_PRECISION) -> ScoreOutcome:
    questions = list(questions)
    for question in questions:
        if question.questionnaire_id != questionnaire.id:
            raise QuestionNotInQuestionnaire(
                f"Question {question.id} is not part of questionnaire {questionnaire.id}", question.id
            )

    method = questionnaire.scoring_method or "sum"
    if method == "custom":
        raise UnsupportedScoringMethod(f"Questionnaire {questionnaire.id} uses custom scoring")
    if method not in ("sum", "average", "weighted_average"):
        raise UnsupportedScoringMethod(f"Unknown scoring method {method!r}")

    by_question = index_answers(questions, answers)
    check_answers(questions, by_question)

    total = 0
    total_weight = 0
    contributing = 0
    for question in sorted(questions, key=lambda q: q.order_num):
        weight = _weight(question)
        answer = by_question.get(question.id)
        if weight == 0 or answer is None:
            continue
        number = numeric_value_of(question, answer.value)
        if number is None:
            continue
        total += number * weight
        total_weight += weight
        contributing += 1

    if method == "sum":
        score = total
    elif method == "average":
        score = total / contributing if contributing else 0
    else:
        score = total / total_weight if total_weight else 0

    score = round(float(score), precision)
    logger.info(
        f"Computed {method} score {score} for questionnaire {questionnaire.id} "
        f"from {contributing} contributing questions"
    )
    return ScoreOutcome(score=score, contributing_question_count=contributing, max_score=questionnaire.max_score)
