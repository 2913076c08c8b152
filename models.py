from sqlalchemy import Column, Integer, String, Boolean, JSON, Enum, ForeignKey, DateTime, Float, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base

QUESTIONNAIRE_TYPES = ("assessment", "survey", "feedback", "screening", "intake", "custom")
SCORING_METHODS = ("sum", "average", "weighted_average", "custom")
QUESTION_TYPES = ("text", "single_choice", "multiple_choice", "rating", "yes_no", "scale", "date")
RESPONSE_STATES = ("draft", "in_progress", "completed", "scored")

class Questionnaire(Base):
    __tablename__ = "questionnaires"
    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(*QUESTIONNAIRE_TYPES, name="questionnaire_type"), nullable=False, default="assessment")
    scoring_method = Column(Enum(*SCORING_METHODS, name="scoring_method"), nullable=False, default="sum")
    # [{"label": "minimal", "min_score": 0}, ...] ascending by min_score
    risk_thresholds = Column(JSON, nullable=False, default=list)
    max_score = Column(Float, nullable=True)
    passing_score = Column(Float, nullable=True)
    auto_flag_level = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    questions = relationship("Question", back_populates="questionnaire", order_by="Question.order_num")

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (UniqueConstraint("questionnaire_id", "order_num", name="uq_question_order"),)
    id = Column(String, primary_key=True)
    questionnaire_id = Column(String, ForeignKey("questionnaires.id"), nullable=False)
    order_num = Column(Integer, nullable=False)
    text = Column(String, nullable=False)
    type = Column(Enum(*QUESTION_TYPES, name="question_type"), nullable=False)
    # [{"value": 0, "label": "Not at all"}, ...]; an optional "score" overrides value when scoring
    options = Column(JSON, nullable=True)
    required = Column(Boolean, nullable=False, default=True)
    scoring_weight = Column(Float, nullable=False, default=1)
    questionnaire = relationship("Questionnaire", back_populates="questions")

class Response(Base):
    __tablename__ = "responses"
    id = Column(Integer, primary_key=True)
    questionnaire_id = Column(String, ForeignKey("questionnaires.id"), nullable=False)
    respondent_name = Column(String, nullable=True)
    respondent_email = Column(String, nullable=True)
    respondent_age = Column(Integer, nullable=True)
    respondent_gender = Column(String, nullable=True)
    unique_code = Column(String(20), nullable=False, unique=True, index=True)
    state = Column(Enum(*RESPONSE_STATES, name="response_state"), nullable=False, default="draft")
    score = Column(Float, nullable=True)
    risk_level = Column(String, nullable=True)
    flagged_for_review = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    version = Column(Integer, nullable=False)
    questionnaire = relationship("Questionnaire")
    answers = relationship("Answer", back_populates="response", cascade="all, delete-orphan")
    analyses = relationship("AIAnalysis", back_populates="response", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (UniqueConstraint("response_id", "question_id", name="uq_answer_per_question"),)
    id = Column(Integer, primary_key=True)
    response_id = Column(Integer, ForeignKey("responses.id"), nullable=False)
    question_id = Column(String, ForeignKey("questions.id"), nullable=False)
    value = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    response = relationship("Response", back_populates="answers")
    question = relationship("Question")

class AIAnalysis(Base):
    __tablename__ = "ai_analyses"
    id = Column(Integer, primary_key=True)
    response_id = Column(Integer, ForeignKey("responses.id"), nullable=False)
    payload = Column(JSON, nullable=False)
    model_used = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    response = relationship("Response", back_populates="analyses")
