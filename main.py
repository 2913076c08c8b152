from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql import text
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from models import Question, Questionnaire, Response, RESPONSE_STATES
from database import get_db, Base, engine, SessionLocal
from csv_loader import load_templates
from config import TEMPLATES_DIR, LOG_LEVEL
from errors import QuestionnaireError, ValidationError, LifecycleError, ScoringError
from questions import validate_questionnaire
from repository import ResponseRepository
from reporting import questionnaire_statistics
import lifecycle
import os
import logging

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Questionnaire Scoring Service")

@app.on_event("startup")
def on_startup():
    logger.info("Starting up and creating database tables...")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Tables registered with metadata: {Base.metadata.tables.keys()}")
        with engine.connect() as conn:
            conn.execute(text("SELECT 1 FROM questionnaires LIMIT 1"))
        logger.info("Tables created successfully.")

        if os.path.exists(os.path.join(TEMPLATES_DIR, "questionnaires.csv")):
            with SessionLocal() as db:
                load_templates(db, TEMPLATES_DIR)
                logger.info("Questionnaire templates loaded successfully.")
        else:
            logger.error(f"Templates not found in {TEMPLATES_DIR}")
            raise FileNotFoundError(f"Templates not found: {TEMPLATES_DIR}")
    except Exception as e:
        logger.error(f"Error during startup: {e}")
        raise

ERROR_STATUS = (
    (ValidationError, 400),
    (LifecycleError, 409),
    (ScoringError, 422),
)

@app.exception_handler(QuestionnaireError)
async def questionnaire_error_handler(request: Request, exc: QuestionnaireError):
    status_code = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 400)
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})

@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning(f"{request.method} {request.url.path} lost a concurrent update: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": {"kind": "ConcurrentUpdate", "message": "Response was modified concurrently, retry"}}
    )

@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"{request.method} {request.url.path} conflicted with an existing row: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content={"detail": {"kind": "ConcurrentUpdate", "message": "Conflicting write, retry"}}
    )

# Pydantic models
class OptionOut(BaseModel):
    value: Any
    label: Optional[str] = None

class QuestionOut(BaseModel):
    id: str
    order_num: int
    text: str
    type: str
    required: bool
    options: Optional[List[OptionOut]]
    scoring_weight: float

class RiskThreshold(BaseModel):
    label: str
    min_score: float

class QuestionnaireOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    type: str
    scoring_method: str
    risk_thresholds: List[RiskThreshold]
    max_score: Optional[float]
    passing_score: Optional[float]
    auto_flag_level: Optional[str]

class QuestionnaireDetail(QuestionnaireOut):
    questions: List[QuestionOut]

class OptionInput(BaseModel):
    value: Any
    label: str
    score: Optional[float] = None

class QuestionInput(BaseModel):
    id: str
    order_num: int
    text: str
    type: Literal["text", "single_choice", "multiple_choice", "rating", "yes_no", "scale", "date"]
    required: bool = True
    options: Optional[List[OptionInput]] = None
    scoring_weight: float = 1

class QuestionnaireInput(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: Literal["assessment", "survey", "feedback", "screening", "intake", "custom"] = "assessment"
    scoring_method: Literal["sum", "average", "weighted_average", "custom"] = "sum"
    risk_thresholds: List[RiskThreshold]
    max_score: Optional[float] = None
    passing_score: Optional[float] = None
    auto_flag_level: Optional[str] = None
    questions: List[QuestionInput]

class RespondentInput(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None

class AnswerInput(BaseModel):
    question_id: str
    value: Any

class FlagInput(BaseModel):
    flagged: bool

class AnalysisInput(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    payload: Dict[str, Any]
    model_used: Optional[str] = None

class AnswerOut(BaseModel):
    question_id: str
    value: Any

class ResponseOut(BaseModel):
    id: int
    questionnaire_id: str
    unique_code: str
    state: str
    respondent_name: Optional[str]
    respondent_email: Optional[str]
    respondent_age: Optional[int]
    respondent_gender: Optional[str]
    score: Optional[float]
    risk_level: Optional[str]
    flagged_for_review: bool
    completed_at: Optional[datetime]
    answers: List[AnswerOut]

class ScoreResult(BaseModel):
    response: ResponseOut
    score: float
    risk_level: str
    max_score: Optional[float]
    passing_score: Optional[float]
    passed: Optional[bool]

class AnalysisOut(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    response_id: int
    payload: Dict[str, Any]
    model_used: Optional[str]
    created_at: Optional[datetime]

def questionnaire_out(questionnaire, questions=None):
    data = {
        "id": questionnaire.id,
        "title": questionnaire.title,
        "description": questionnaire.description,
        "type": questionnaire.type,
        "scoring_method": questionnaire.scoring_method,
        "risk_thresholds": questionnaire.risk_thresholds or [],
        "max_score": questionnaire.max_score,
        "passing_score": questionnaire.passing_score,
        "auto_flag_level": questionnaire.auto_flag_level
    }
    if questions is None:
        return QuestionnaireOut(**data)
    data["questions"] = [
        QuestionOut(
            id=q.id,
            order_num=q.order_num,
            text=q.text,
            type=q.type,
            required=q.required,
            options=q.options,
            scoring_weight=q.scoring_weight
        )
        for q in questions
    ]
    return QuestionnaireDetail(**data)

def response_out(response: Response) -> ResponseOut:
    return ResponseOut(
        id=response.id,
        questionnaire_id=response.questionnaire_id,
        unique_code=response.unique_code,
        state=response.state,
        respondent_name=response.respondent_name,
        respondent_email=response.respondent_email,
        respondent_age=response.respondent_age,
        respondent_gender=response.respondent_gender,
        score=response.score,
        risk_level=response.risk_level,
        flagged_for_review=response.flagged_for_review,
        completed_at=response.completed_at,
        answers=[AnswerOut(question_id=a.question_id, value=a.value) for a in response.answers]
    )

def _questionnaire_or_404(repo: ResponseRepository, questionnaire_id: str):
    questionnaire = repo.get_questionnaire(questionnaire_id)
    if not questionnaire:
        raise HTTPException(status_code=404, detail=f"Questionnaire not found: {questionnaire_id}")
    return questionnaire

def _response_or_404(repo: ResponseRepository, response_id: int, for_update: bool = False):
    response = repo.get(response_id, for_update=for_update)
    if not response:
        raise HTTPException(status_code=404, detail=f"Response not found: {response_id}")
    return response

@app.get("/questionnaires", response_model=List[QuestionnaireOut])
def list_questionnaires(db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    return [questionnaire_out(q) for q in repo.list_questionnaires()]

@app.get("/questionnaires/{questionnaire_id}", response_model=QuestionnaireDetail)
def get_questionnaire(questionnaire_id: str, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    questionnaire = _questionnaire_or_404(repo, questionnaire_id)
    return questionnaire_out(questionnaire, repo.questions_for(questionnaire_id))

@app.get("/questionnaires/{questionnaire_id}/statistics")
def get_statistics(questionnaire_id: str, db: Session = Depends(get_db)):
    _questionnaire_or_404(ResponseRepository(db), questionnaire_id)
    return questionnaire_statistics(db, questionnaire_id)

@app.post("/questionnaires", response_model=QuestionnaireDetail, status_code=201)
def create_questionnaire(definition: QuestionnaireInput, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    if repo.get_questionnaire(definition.id):
        raise HTTPException(status_code=409, detail=f"Questionnaire already exists: {definition.id}")
    questionnaire = Questionnaire(
        id=definition.id,
        title=definition.title,
        description=definition.description,
        type=definition.type,
        scoring_method=definition.scoring_method,
        risk_thresholds=[t.model_dump() for t in definition.risk_thresholds],
        max_score=definition.max_score,
        passing_score=definition.passing_score,
        auto_flag_level=definition.auto_flag_level,
        is_active=True
    )
    questions = [
        Question(
            id=q.id,
            questionnaire_id=definition.id,
            order_num=q.order_num,
            text=q.text,
            type=q.type,
            required=q.required,
            options=[o.model_dump(exclude_none=True) for o in q.options] if q.options is not None else None,
            scoring_weight=q.scoring_weight
        )
        for q in definition.questions
    ]
    validate_questionnaire(questionnaire, questions)
    repo.add_questionnaire(questionnaire, questions)
    logger.info(f"Created questionnaire {questionnaire.id} with {len(questions)} questions")
    return questionnaire_out(questionnaire, repo.questions_for(questionnaire.id))

@app.get("/questionnaires/{questionnaire_id}/responses", response_model=List[ResponseOut])
def list_responses(questionnaire_id: str, state: Optional[str] = None, flagged: Optional[bool] = None,
                   db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    _questionnaire_or_404(repo, questionnaire_id)
    if state is not None and state not in RESPONSE_STATES:
        raise HTTPException(status_code=400, detail=f"Invalid state. Must be one of {list(RESPONSE_STATES)}")
    responses = repo.list_responses(questionnaire_id, state=state, flagged=flagged)
    logger.info(f"Returning {len(responses)} responses for {questionnaire_id} (state={state}, flagged={flagged})")
    return [response_out(r) for r in responses]

@app.post("/questionnaires/{questionnaire_id}/responses", response_model=ResponseOut, status_code=201)
def start_response(questionnaire_id: str, respondent: RespondentInput, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    questionnaire = _questionnaire_or_404(repo, questionnaire_id)
    if not questionnaire.is_active:
        raise HTTPException(status_code=400, detail=f"Questionnaire {questionnaire_id} is not accepting responses")
    if respondent.age is not None and respondent.age < 0:
        raise HTTPException(status_code=400, detail="Age must be non-negative")
    response = lifecycle.start_response(
        questionnaire,
        name=respondent.name,
        email=respondent.email,
        age=respondent.age,
        gender=respondent.gender
    )
    repo.add(response)
    repo.save(response)
    logger.info(f"Created response {response.id} ({response.unique_code})")
    return response_out(response)

@app.get("/responses/{response_id}", response_model=ResponseOut)
def get_response(response_id: int, db: Session = Depends(get_db)):
    return response_out(_response_or_404(ResponseRepository(db), response_id))

@app.get("/responses/code/{unique_code}", response_model=ResponseOut)
def get_response_by_code(unique_code: str, db: Session = Depends(get_db)):
    response = ResponseRepository(db).get_by_code(unique_code)
    if not response:
        raise HTTPException(status_code=404, detail=f"No response found for code: {unique_code}")
    return response_out(response)

@app.post("/responses/{response_id}/answers", response_model=ResponseOut)
def record_answer(response_id: int, answer: AnswerInput, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    response = _response_or_404(repo, response_id, for_update=True)
    question = repo.get_question(answer.question_id)
    if not question:
        raise HTTPException(status_code=404, detail=f"Question not found: {answer.question_id}")
    lifecycle.record_answer(response, question, answer.value)
    return response_out(repo.save(response))

@app.post("/responses/{response_id}/submit", response_model=ResponseOut)
def submit_response(response_id: int, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    response = _response_or_404(repo, response_id, for_update=True)
    lifecycle.submit(response, repo.questions_for(response.questionnaire_id))
    return response_out(repo.save(response))

@app.post("/responses/{response_id}/score", response_model=ScoreResult)
def score_response(response_id: int, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    response = _response_or_404(repo, response_id, for_update=True)
    questionnaire = repo.get_questionnaire(response.questionnaire_id)
    lifecycle.score(response, questionnaire, repo.questions_for(questionnaire.id))
    repo.save(response)
    passing = questionnaire.passing_score
    return ScoreResult(
        response=response_out(response),
        score=response.score,
        risk_level=response.risk_level,
        max_score=questionnaire.max_score,
        passing_score=passing,
        passed=None if passing is None else response.score >= passing
    )

@app.post("/responses/{response_id}/flag", response_model=ResponseOut)
def flag_response(response_id: int, flag: FlagInput, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    response = _response_or_404(repo, response_id, for_update=True)
    lifecycle.set_flag(response, flag.flagged)
    return response_out(repo.save(response))

@app.post("/responses/{response_id}/reopen", response_model=ResponseOut)
def reopen_response(response_id: int, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    response = _response_or_404(repo, response_id, for_update=True)
    lifecycle.reopen(response)
    return response_out(repo.save(response))

@app.put("/responses/{response_id}/analysis", response_model=AnalysisOut)
def store_analysis(response_id: int, analysis: AnalysisInput, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    response = _response_or_404(repo, response_id)
    stored = repo.save_analysis(response, analysis.payload, analysis.model_used)
    logger.info(f"Stored analysis {stored.id} for response {response_id}")
    return AnalysisOut(
        response_id=stored.response_id,
        payload=stored.payload,
        model_used=stored.model_used,
        created_at=stored.created_at
    )

@app.get("/responses/{response_id}/analysis", response_model=AnalysisOut)
def get_analysis(response_id: int, db: Session = Depends(get_db)):
    repo = ResponseRepository(db)
    _response_or_404(repo, response_id)
    stored = repo.latest_analysis(response_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"No analysis found for response ID: {response_id}")
    return AnalysisOut(
        response_id=stored.response_id,
        payload=stored.payload,
        model_used=stored.model_used,
        created_at=stored.created_at
    )
