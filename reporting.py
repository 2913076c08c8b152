import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from models import Response

logger = logging.getLogger(__name__)

def questionnaire_statistics(db: Session, questionnaire_id: str) -> dict:
    base = db.query(Response).filter(Response.questionnaire_id == questionnaire_id)
    total = base.count()
    completed = base.filter(Response.state.in_(("completed", "scored"))).count()
    flagged = base.filter(Response.flagged_for_review.is_(True)).count()

    avg_score, min_score, max_score = db.query(
        func.avg(Response.score), func.min(Response.score), func.max(Response.score)
    ).filter(
        Response.questionnaire_id == questionnaire_id,
        Response.state == "scored"
    ).one()

    risk_rows = db.query(
        Response.risk_level, func.count(Response.id)
    ).filter(
        Response.questionnaire_id == questionnaire_id,
        Response.risk_level.isnot(None)
    ).group_by(Response.risk_level).all()

    stats = {
        "questionnaire_id": questionnaire_id,
        "responses": {
            "total": total,
            "completed": completed,
            "completion_rate": round(completed / total * 100, 2) if total else 0.0,
            "flagged": flagged,
        },
        "scores": {
            "average": round(avg_score, 2) if avg_score is not None else None,
            "min": min_score,
            "max": max_score,
        },
        "risk_levels": {level: count for level, count in risk_rows},
    }
    logger.info(f"Statistics for {questionnaire_id}: {stats['responses']}")
    return stats
