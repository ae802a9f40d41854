from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.security import require_admin
from app.schemas.question import QuestionsOut, QuestionsUpsert
from app.services import answer_store

router = APIRouter(prefix="/api/admin/questions", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=QuestionsOut)
def list_questions(db: Session = Depends(get_db)):
    return {"questions": answer_store.list_questions(db)}


@router.put("", response_model=QuestionsOut)
def save_questions(payload: QuestionsUpsert, db: Session = Depends(get_db)):
    answer_store.upsert_questions(db, payload.questions)
    return {"questions": answer_store.list_questions(db)}
