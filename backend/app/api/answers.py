from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import query_model
from app.core.db import get_db
from app.core.security import require_admin
from app.schemas.filters import AnswersQuery, ExportFormat
from app.schemas.stats import AnswersPage
from app.services import answer_store
from app.services.export_csv import ANSWER_COLUMNS, answer_export_row, iter_csv

router = APIRouter(prefix="/api/admin/answers", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=AnswersPage)
def list_answers(q: AnswersQuery = Depends(query_model(AnswersQuery)), db: Session = Depends(get_db)):
    question = answer_store.get_question(db, q.question_id)

    if q.format is ExportFormat.csv:
        rows = answer_store.fetch_export_answers(db, q, question)
        return StreamingResponse(
            iter_csv((answer_export_row(a) for a in rows), ANSWER_COLUMNS),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": "attachment; filename=answers.csv"},
        )

    rows, total = answer_store.page_answers(db, q, question)
    return {"answers": rows, "total": total, "page": q.page, "pageSize": q.page_size}
