"""
Pytest configuration for the questionnaire service tests
"""

import os
import sys
import tempfile

import pytest

# Point the app at a throwaway SQLite file BEFORE importing any app modules
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(tempfile.mkdtemp(), "test_questionnaires.db")
os.environ.pop("AUTO_FLAG_RISK_LEVEL", None)

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from database import Base, SessionLocal, engine  # noqa: E402
from models import Question, Questionnaire  # noqa: E402

FREQUENCY_OPTIONS = [
    {"value": 0, "label": "Not at all"},
    {"value": 1, "label": "Several days"},
    {"value": 2, "label": "More than half the days"},
    {"value": 3, "label": "Nearly every day"},
]

PHQ9_THRESHOLDS = [
    {"label": "minimal", "min_score": 0},
    {"label": "mild", "min_score": 5},
    {"label": "moderate", "min_score": 10},
    {"label": "moderately severe", "min_score": 15},
    {"label": "severe", "min_score": 20},
]


def make_questionnaire(id="q", scoring_method="sum", thresholds=None, auto_flag_level=None, max_score=None):
    return Questionnaire(
        id=id,
        title=f"Questionnaire {id}",
        type="screening",
        scoring_method=scoring_method,
        risk_thresholds=PHQ9_THRESHOLDS if thresholds is None else thresholds,
        max_score=max_score,
        auto_flag_level=auto_flag_level,
        is_active=True,
    )


def make_question(questionnaire_id, order_num, type="single_choice", required=True, weight=1, options=None, id=None):
    if options is None and type in ("single_choice", "multiple_choice", "rating", "scale"):
        options = FREQUENCY_OPTIONS
    return Question(
        id=id or f"{questionnaire_id}_{order_num}",
        questionnaire_id=questionnaire_id,
        order_num=order_num,
        text=f"Question {order_num}",
        type=type,
        options=options,
        required=required,
        scoring_weight=weight,
    )


@pytest.fixture
def phq9():
    """PHQ-9 shaped questionnaire: 9 scored items plus an unscored item 10"""
    questionnaire = make_questionnaire("phq9", max_score=27, auto_flag_level="moderately severe")
    questions = [make_question("phq9", n) for n in range(1, 10)]
    questions.append(make_question("phq9", 10, required=False, weight=0))
    return questionnaire, questions


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
