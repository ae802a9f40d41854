from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import query_model
from app.core.db import get_db
from app.core.security import require_admin
from app.schemas.filters import ExportQuery
from app.services import answer_store
from app.services.export_csv import iter_csv

router = APIRouter(prefix="/api/admin/exports", tags=["admin"], dependencies=[Depends(require_admin)])

COLUMNS = {
    "responses": ["id", "customer_email", "customer_name", "location", "created_at", "completed"],
    "customers": ["id", "name", "email", "phone", "created_at", "updated_at"],
}


@router.get("")
def export_table(q: ExportQuery = Depends(query_model(ExportQuery)), db: Session = Depends(get_db)):
    if q.type == "customers":
        rows = answer_store.customers_table(db, q.limit)
    else:
        rows = answer_store.responses_table(db, q.limit)
    return StreamingResponse(
        iter_csv(rows, COLUMNS[q.type]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={q.type}.csv"},
    )
