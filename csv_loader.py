import csv
import os
import logging
from sqlalchemy.orm import Session
from models import Questionnaire, Question
from questions import validate_questionnaire

logger = logging.getLogger(__name__)

def _number(text: str):
    text = text.strip()
    for cast in (int, float):
        try:
            return cast(text)
        except ValueError:
            pass
    return text

def _optional_number(text: str):
    return float(text) if text and text.strip() else None

def parse_risk_levels(text: str):
    thresholds = []
    for part in text.split(";"):
        if not part.strip():
            continue
        label, min_score = part.rsplit(":", 1)
        thresholds.append({"label": label.strip(), "min_score": _number(min_score)})
    return thresholds

def parse_options(text: str):
    if not text:
        return None
    options = []
    for part in text.split(";"):
        if "=" in part:
            value, label = part.split("=", 1)
            options.append({"value": _number(value), "label": label.strip()})
        else:
            options.append({"value": part.strip(), "label": part.strip()})
    return options

def read_templates(templates_dir: str):
    """Parse questionnaires.csv and questions.csv into unsaved model instances."""
    questionnaires = {}
    with open(os.path.join(templates_dir, "questionnaires.csv"), newline='') as f:
        for row in csv.DictReader(f):
            questionnaire = Questionnaire(
                id=row["Questionnaire ID"],
                title=row["Title"],
                description=row["Description"] or None,
                type=row["Type"] or "assessment",
                scoring_method=row["Scoring Method"] or "sum",
                risk_thresholds=parse_risk_levels(row["Risk Levels"]),
                max_score=_optional_number(row["Max Score"]),
                passing_score=_optional_number(row["Passing Score"]),
                auto_flag_level=row["Auto Flag Level"] or None,
                is_active=True
            )
            questionnaires[questionnaire.id] = (questionnaire, [])

    with open(os.path.join(templates_dir, "questions.csv"), newline='') as f:
        for row in csv.DictReader(f):
            questionnaire_id = row["Questionnaire ID"]
            if questionnaire_id not in questionnaires:
                raise ValueError(f"Question {row['Question ID']} references unknown questionnaire {questionnaire_id}")
            questionnaires[questionnaire_id][1].append(Question(
                id=row["Question ID"],
                questionnaire_id=questionnaire_id,
                order_num=int(row["Order"]),
                text=row["Question Text"],
                type=row["Question Type"],
                options=parse_options(row["Options"]),
                required=row["Required"] == "Yes",
                scoring_weight=float(row["Scoring Weight"]) if row["Scoring Weight"] else 1
            ))
    return list(questionnaires.values())

def load_templates(db: Session, templates_dir: str):
    logger.info(f"Loading questionnaire templates from {templates_dir}")
    try:
        for questionnaire, questions in read_templates(templates_dir):
            validate_questionnaire(questionnaire, questions)
            expected_ids = [q.id for q in sorted(questions, key=lambda q: q.order_num)]
            stored_ids = [q.id for q in db.query(Question).filter(
                Question.questionnaire_id == questionnaire.id
            ).order_by(Question.order_num).all()]

            if stored_ids == expected_ids:
                logger.info(f"Questionnaire {questionnaire.id} already loaded, skipping.")
                continue

            logger.info(f"Loading questionnaire {questionnaire.id} with {len(questions)} questions")
            db.merge(questionnaire)
            for question in questions:
                db.merge(question)
            db.commit()

            stored_ids = [q.id for q in db.query(Question).filter(
                Question.questionnaire_id == questionnaire.id
            ).order_by(Question.order_num).all()]
            if stored_ids != expected_ids:
                logger.warning(f"Question order mismatch for {questionnaire.id}. Expected: {expected_ids}, Got: {stored_ids}")
            else:
                logger.info(f"Question order verified for {questionnaire.id}.")
    except Exception as e:
        logger.error(f"Error loading templates: {e}")
        db.rollback()
        raise
