from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import query_model
from app.core.db import get_db
from app.core.security import require_admin
from app.schemas.filters import DistributionQuery, StatsQuery
from app.schemas.stats import DistributionOut, StatsOut
from app.services import answer_store
from app.services.statistics import summarize_responses
from app.services.tally import tally_answers

router = APIRouter(prefix="/api/admin/stats", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=StatsOut)
def get_stats(q: StatsQuery = Depends(query_model(StatsQuery)), db: Session = Depends(get_db)):
    return summarize_responses(answer_store.fetch_responses(db, q))


@router.get("/questions/{question_id}", response_model=DistributionOut)
def get_distribution(
    question_id: UUID,
    q: DistributionQuery = Depends(query_model(DistributionQuery)),
    db: Session = Depends(get_db),
):
    question = answer_store.get_question(db, question_id)
    tally = tally_answers(question, answer_store.fetch_question_answers(db, q, question))
    return DistributionOut(
        questionId=question.id,
        questionType=question.question_type,
        total=tally.total,
        options=tally.options(),
        stray=tally.stray,
        texts=tally.texts,
    )
