import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from models import AIAnalysis, Question, Questionnaire, Response

logger = logging.getLogger(__name__)


class ResponseRepository:
    """Loads and saves questionnaires and responses for one request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    def get_questionnaire(self, questionnaire_id: str) -> Optional[Questionnaire]:
        return self.db.query(Questionnaire).filter(Questionnaire.id == questionnaire_id).first()

    def list_questionnaires(self, active_only: bool = True) -> List[Questionnaire]:
        query = self.db.query(Questionnaire)
        if active_only:
            query = query.filter(Questionnaire.is_active.is_(True))
        return query.order_by(Questionnaire.title).all()

    def questions_for(self, questionnaire_id: str) -> List[Question]:
        return (
            self.db.query(Question)
            .filter(Question.questionnaire_id == questionnaire_id)
            .order_by(Question.order_num)
            .all()
        )

    def get_question(self, question_id: str) -> Optional[Question]:
        return self.db.query(Question).filter(Question.id == question_id).first()

    def get(self, response_id: int, for_update: bool = False) -> Optional[Response]:
        # FOR UPDATE serialises writers per response on PostgreSQL; the
        # version column catches anything that slips past it.
        query = self.db.query(Response).filter(Response.id == response_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_code(self, unique_code: str) -> Optional[Response]:
        return self.db.query(Response).filter(Response.unique_code == unique_code).first()

    def list_responses(self, questionnaire_id: str, state: str = None, flagged: bool = None) -> List[Response]:
        query = self.db.query(Response).filter(Response.questionnaire_id == questionnaire_id)
        if state is not None:
            query = query.filter(Response.state == state)
        if flagged is not None:
            query = query.filter(Response.flagged_for_review.is_(flagged))
        return query.order_by(Response.created_at.desc(), Response.id.desc()).all()

    def add_questionnaire(self, questionnaire: Questionnaire, questions: List[Question]) -> Questionnaire:
        self.db.add(questionnaire)
        self.db.add_all(questions)
        try:
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to save questionnaire {questionnaire.id}: {e}")
            self.db.rollback()
            raise
        self.db.refresh(questionnaire)
        return questionnaire

    def add(self, response: Response) -> Response:
        self.db.add(response)
        return response

    def save(self, response: Response) -> Response:
        try:
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to save response {response.id}: {e}")
            self.db.rollback()
            raise
        self.db.refresh(response)
        return response

    def save_analysis(self, response: Response, payload: dict, model_used: str = None) -> AIAnalysis:
        analysis = AIAnalysis(response_id=response.id, payload=payload, model_used=model_used)
        self.db.add(analysis)
        self.db.commit()
        self.db.refresh(analysis)
        return analysis

    def latest_analysis(self, response_id: int) -> Optional[AIAnalysis]:
        return (
            self.db.query(AIAnalysis)
            .filter(AIAnalysis.response_id == response_id)
            .order_by(AIAnalysis.id.desc())
            .first()
        )
