import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import query_model
from app.core.config import settings
from app.core.db import get_db
from app.core.security import require_admin
from app.schemas.customer import CustomerOut, CustomersPage, CustomerUpdate, VisitsOut
from app.schemas.filters import CustomersQuery, StatsQuery, WindowQuery
from app.schemas.stats import NewCustomersOut
from app.services import answer_store
from app.services.statistics import new_customer_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/customers", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=CustomersPage)
def list_customers(q: CustomersQuery = Depends(query_model(CustomersQuery)), db: Session = Depends(get_db)):
    rows, count = answer_store.list_customers(db, q)
    return {"data": rows, "count": count}


@router.get("/stats", response_model=NewCustomersOut)
def customer_stats(q: WindowQuery = Depends(query_model(WindowQuery)), db: Session = Depends(get_db)):
    # location is ignored: counts are always broken down across every location
    window = StatsQuery.model_validate({"from": q.from_, "to": q.to})
    counts = new_customer_counts(answer_store.fetch_responses(db, window), settings.locations)
    logger.debug("new customer counts %s", counts)
    return counts


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: UUID, db: Session = Depends(get_db)):
    return answer_store.get_customer(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: UUID, payload: CustomerUpdate, db: Session = Depends(get_db)):
    return answer_store.update_customer(db, customer_id, payload.model_dump(exclude_unset=True))


@router.delete("/{customer_id}")
def delete_customer(customer_id: UUID, db: Session = Depends(get_db)):
    answer_store.delete_customer(db, customer_id)
    return {"success": True}


@router.get("/{customer_id}/visits", response_model=VisitsOut)
def customer_visits(customer_id: UUID, db: Session = Depends(get_db)):
    return {"visits": answer_store.list_customer_visits(db, customer_id)}
