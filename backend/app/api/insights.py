from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import query_model
from app.core.db import get_db
from app.core.security import require_admin
from app.schemas.filters import InsightsQuery
from app.services.insights import generate_insights
from app.services.llm import ChatModel, get_insights_model

router = APIRouter(prefix="/api/admin/insights", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("")
def get_insights(
    q: InsightsQuery = Depends(query_model(InsightsQuery)),
    db: Session = Depends(get_db),
    model: ChatModel = Depends(get_insights_model),
):
    return generate_insights(db, q, model)
