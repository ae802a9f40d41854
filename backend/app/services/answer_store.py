"""
Answer Store: every read and write the analytics layer performs against the
survey tables.

Driver failures are re-raised as :class:`UpstreamStoreError` with the
driver's message so an aggregation never reports "no responses" when the
query itself failed.
"""
import logging
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, selectinload

from app.core.errors import NotFoundError, UpstreamStoreError, ValidationError
from app.models import Answer, Customer, Question, SurveyResponse
from app.schemas.filters import AnswersQuery, CustomersQuery, InsightsQuery, SortBy, SortDir, StatsQuery
from app.schemas.question import QuestionIn
from app.services.filters import answer_clauses, response_clauses, window_clauses

logger = logging.getLogger(__name__)

EXPORT_LIMIT = 2000


@contextmanager
def store_errors(action: str, db: Session | None = None):
    try:
        yield
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        orig = getattr(exc, "orig", None)
        logger.error("%s failed: %s", action, exc, exc_info=True)
        raise UpstreamStoreError(
            str(orig or exc),
            code=getattr(orig, "pgcode", None) or getattr(exc, "code", None),
            hint=action,
        ) from exc


# --- questions -------------------------------------------------------------

def list_questions(db: Session, active_only: bool = False) -> list[Question]:
    stmt = select(Question).order_by(Question.sort_order, Question.code)
    if active_only:
        stmt = stmt.where(Question.is_active.is_(True))
    with store_errors("list questions"):
        return list(db.scalars(stmt))


def get_question(db: Session, question_id: UUID) -> Question:
    with store_errors("load question"):
        question = db.get(Question, question_id)
    if question is None:
        raise NotFoundError(f"Question {question_id} not found")
    return question


def upsert_questions(db: Session, items: list[QuestionIn]) -> list[Question]:
    """Insert or update questions keyed by ``code``. Last write wins."""
    saved: list[Question] = []
    with store_errors("save questions", db):
        for item in items:
            q = db.scalar(select(Question).where(Question.code == item.code))
            if q is None and item.id is not None:
                q = db.get(Question, item.id)
            if q is None:
                q = Question(id=item.id) if item.id else Question()
                db.add(q)
            q.code = item.code
            q.prompt = item.prompt
            q.question_type = item.question_type.value
            q.options = item.options
            q.sort_order = item.sort_order
            q.group_key = item.group_key
            q.is_active = item.is_active
            saved.append(q)
        db.commit()
    logger.info("Saved %d questions", len(saved))
    return saved


# --- responses & answers ---------------------------------------------------

def fetch_responses(db: Session, q: StatsQuery) -> list[SurveyResponse]:
    stmt = select(SurveyResponse).where(*response_clauses(q)).order_by(SurveyResponse.created_at)
    if q.question_id is not None:
        stmt = stmt.where(
            exists().where(Answer.response_id == SurveyResponse.id, Answer.question_id == q.question_id)
        )
    with store_errors("fetch responses"):
        return list(db.scalars(stmt))


def fetch_question_answers(db: Session, q: StatsQuery, question: Question) -> list[Answer]:
    stmt = (
        select(Answer)
        .join(Answer.response)
        .where(Answer.question_id == question.id, *response_clauses(q))
        .order_by(Answer.created_at)
    )
    with store_errors("fetch answers"):
        return list(db.scalars(stmt))


def _answers_stmt(q: AnswersQuery, question: Question):
    return (
        select(Answer)
        .join(Answer.response)
        .options(contains_eager(Answer.response))
        .where(*answer_clauses(q, question))
    )


def _order(q: AnswersQuery):
    if q.sort_by is SortBy.answer:
        cols = [Answer.value_text, Answer.value_number]
    elif q.sort_by is SortBy.sentiment:
        cols = [SurveyResponse.sentiment_score]
    else:
        cols = [SurveyResponse.created_at]
    if q.sort_dir is SortDir.asc:
        ordered = [c.asc().nulls_last() for c in cols]
    else:
        ordered = [c.desc().nulls_last() for c in cols]
    return [*ordered, Answer.id]


def page_answers(db: Session, q: AnswersQuery, question: Question) -> tuple[list[Answer], int]:
    page_size = q.page_size
    offset = (q.page - 1) * page_size
    stmt = _answers_stmt(q, question).order_by(*_order(q)).offset(offset).limit(page_size)
    count_stmt = (
        select(func.count(Answer.id)).select_from(Answer).join(Answer.response).where(*answer_clauses(q, question))
    )
    with store_errors("fetch answers page"):
        total = db.scalar(count_stmt) or 0
        rows = list(db.scalars(stmt).unique())
    return rows, total


def fetch_export_answers(db: Session, q: AnswersQuery, question: Question) -> list[Answer]:
    limit = min(q.limit or 500, EXPORT_LIMIT)
    stmt = _answers_stmt(q, question).order_by(*_order(q)).limit(limit)
    with store_errors("export answers"):
        return list(db.scalars(stmt))


def fetch_insight_responses(db: Session, q: InsightsQuery) -> list[SurveyResponse]:
    stmt = (
        select(SurveyResponse)
        .where(*window_clauses(q))
        .options(selectinload(SurveyResponse.answers).joinedload(Answer.question))
        .order_by(SurveyResponse.created_at.desc())
        .limit(q.limit)
    )
    with store_errors("fetch insight responses"):
        return list(db.scalars(stmt))


def create_response(
    db: Session,
    *,
    customer: Customer | None,
    email: str | None,
    name: str | None,
    location: str,
    nps_bucket: str | None,
    sentiment_score: float | None,
    answers: list[dict],
) -> SurveyResponse:
    """Persist a completed response together with its answers in one commit."""
    with store_errors("save survey response", db):
        response = SurveyResponse(
            customer_id=customer.id if customer else None,
            customer_email=email,
            customer_name=name,
            location=location,
            completed=True,
            nps_bucket=nps_bucket,
            sentiment_score=sentiment_score,
        )
        response.answers = [Answer(**a) for a in answers]
        db.add(response)
        db.commit()
    return response


def responses_table(db: Session, limit: int = EXPORT_LIMIT) -> list[dict]:
    stmt = select(SurveyResponse).order_by(SurveyResponse.created_at.desc()).limit(limit)
    with store_errors("export responses"):
        return [
            {
                "id": r.id,
                "customer_email": r.customer_email,
                "customer_name": r.customer_name,
                "location": r.location,
                "created_at": r.created_at,
                "completed": r.completed,
            }
            for r in db.scalars(stmt)
        ]


# --- customers -------------------------------------------------------------

def upsert_customer(db: Session, email: str, name: str | None = None, phone: str | None = None) -> Customer:
    """Resolve a customer by email, creating or refreshing the record."""
    email = email.strip().lower()
    with store_errors("upsert customer", db):
        customer = db.scalar(select(Customer).where(Customer.email == email))
        if customer is None:
            customer = Customer(email=email, name=name, phone=phone)
            db.add(customer)
        else:
            if name:
                customer.name = name
            if phone:
                customer.phone = phone
        db.commit()
    return customer


def get_customer(db: Session, customer_id: UUID) -> Customer:
    with store_errors("load customer"):
        customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def update_customer(db: Session, customer_id: UUID, changes: dict) -> Customer:
    """Apply a partial update. Only keys present in ``changes`` are touched."""
    customer = get_customer(db, customer_id)
    if changes.get("email"):
        email = changes["email"].strip().lower()
        with store_errors("check customer email"):
            owner = db.scalar(select(Customer.id).where(Customer.email == email, Customer.id != customer_id))
        if owner is not None:
            raise ValidationError("email", "already belongs to another customer")
        customer.email = email
    for key in ("name", "phone"):
        if key in changes:
            setattr(customer, key, changes[key])
    with store_errors("update customer", db):
        db.commit()
    logger.info("Updated customer %s (%s)", customer_id, ", ".join(sorted(changes)) or "no changes")
    return customer


def delete_customer(db: Session, customer_id: UUID) -> None:
    customer = get_customer(db, customer_id)
    with store_errors("delete customer", db):
        db.delete(customer)
        db.commit()
    logger.info("Deleted customer %s", customer_id)


def list_customer_visits(db: Session, customer_id: UUID) -> list[SurveyResponse]:
    get_customer(db, customer_id)
    stmt = (
        select(SurveyResponse)
        .where(SurveyResponse.customer_id == customer_id)
        .order_by(SurveyResponse.created_at.desc())
    )
    with store_errors("list customer visits"):
        return list(db.scalars(stmt))


def list_customers(db: Session, q: CustomersQuery) -> tuple[list[Customer], int]:
    clauses = []
    if q.search:
        pattern = f"%{q.search.strip()}%"
        clauses.append(or_(Customer.email.ilike(pattern), Customer.name.ilike(pattern)))
    if q.from_ is not None:
        clauses.append(Customer.created_at >= q.from_)
    if q.to is not None:
        clauses.append(Customer.created_at <= q.to)
    if q.location:
        clauses.append(
            exists().where(SurveyResponse.customer_id == Customer.id, SurveyResponse.location == q.location)
        )

    stmt = (
        select(Customer)
        .where(*clauses)
        .order_by(Customer.created_at.desc())
        .offset(q.offset)
        .limit(q.limit)
    )
    with store_errors("list customers"):
        count = db.scalar(select(func.count(Customer.id)).where(*clauses)) or 0
        rows = list(db.scalars(stmt))
    return rows, count


def customers_table(db: Session, limit: int = EXPORT_LIMIT) -> list[dict]:
    stmt = select(Customer).order_by(Customer.created_at.desc()).limit(limit)
    with store_errors("export customers"):
        return [
            {
                "id": c.id,
                "name": c.name,
                "email": c.email,
                "phone": c.phone,
                "created_at": c.created_at,
                "updated_at": c.updated_at,
            }
            for c in db.scalars(stmt)
        ]
