"""Compile validated query models into SQLAlchemy clauses."""
import logging
from collections.abc import Mapping
from typing import Any, TypeVar

import pydantic
from sqlalchemy import ColumnElement, and_, or_

from app.core.errors import ValidationError
from app.models import Answer, Question, SurveyResponse
from app.schemas.filters import AnswersQuery, SentimentBucket, StatsQuery, WindowQuery
from app.services.statistics import NEGATIVE_THRESHOLD, POSITIVE_THRESHOLD
from app.services.tally import resolve_scale

logger = logging.getLogger(__name__)

Q = TypeVar("Q", bound=pydantic.BaseModel)


def query_dict(params: Any) -> dict[str, Any]:
    """Flatten Starlette query params; blank values are treated as absent, ``id`` may repeat."""
    raw: dict[str, Any] = {k: v for k, v in params.items() if v != ""}
    ids = [v for v in params.getlist("id") if v]
    if ids:
        raw["id"] = ids
    return raw


def parse_query(model: type[Q], raw: Mapping[str, Any]) -> Q:
    try:
        parsed = model.model_validate(dict(raw))
    except pydantic.ValidationError as exc:
        err = exc.errors()[0]
        loc = [str(p) for p in err.get("loc", ())]
        # list items report their index; the parameter name is enough
        field = next((p for p in loc if not p.isdigit()), "request")
        raise ValidationError(field, err.get("msg", "invalid value")) from None

    if isinstance(parsed, WindowQuery) and parsed.from_ and parsed.to and parsed.from_ > parsed.to:
        raise ValidationError("to", "must not be earlier than 'from'")
    return parsed


def window_clauses(q: WindowQuery) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if q.from_ is not None:
        clauses.append(SurveyResponse.created_at >= q.from_)
    if q.to is not None:
        clauses.append(SurveyResponse.created_at <= q.to)
    if q.location:
        clauses.append(SurveyResponse.location == q.location)
    return clauses


def sentiment_clause(bucket: SentimentBucket) -> ColumnElement[bool]:
    score = SurveyResponse.sentiment_score
    if bucket is SentimentBucket.missing:
        return score.is_(None)
    if bucket is SentimentBucket.negative:
        return score < NEGATIVE_THRESHOLD
    if bucket is SentimentBucket.positive:
        return score > POSITIVE_THRESHOLD
    return and_(score >= NEGATIVE_THRESHOLD, score <= POSITIVE_THRESHOLD)


def response_clauses(q: WindowQuery) -> list[ColumnElement[bool]]:
    """Predicates on survey_responses for any window/bucket query."""
    clauses = window_clauses(q)
    if isinstance(q, StatsQuery):
        if q.nps_bucket is not None:
            if q.nps_bucket.value == "missing":
                clauses.append(SurveyResponse.nps_bucket.is_(None))
            else:
                clauses.append(SurveyResponse.nps_bucket == q.nps_bucket.value)
        if q.sentiment is not None:
            clauses.append(sentiment_clause(q.sentiment))
    return clauses


def answer_value_clause(question: Question, value: str) -> ColumnElement[bool]:
    if question.question_type == "single_choice":
        labels = question.labels
        if value not in labels:
            raise ValidationError("answer", f"'{value}' is not an option of question {question.code}")
        index = labels.index(value) + 1
        return or_(
            Answer.value_text == value,
            and_(Answer.value_text.is_(None), Answer.value_number == index),
        )

    if question.question_type == "scale_0_10":
        try:
            number = float(value)
        except ValueError:
            raise ValidationError("answer", "must be an integer between 0 and 10") from None
        if resolve_scale(number) is None:
            raise ValidationError("answer", "must be an integer between 0 and 10")
        return Answer.value_number == number

    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return Answer.value_text.ilike(f"%{escaped}%", escape="\\")


def answer_clauses(q: StatsQuery, question: Question | None = None) -> list[ColumnElement[bool]]:
    """Predicates on survey_answers joined to survey_responses."""
    clauses = response_clauses(q)
    if q.question_id is not None:
        clauses.append(Answer.question_id == q.question_id)
    if isinstance(q, AnswersQuery):
        if q.answer is not None and question is not None:
            clauses.append(answer_value_clause(question, q.answer))
        if q.ids:
            clauses.append(Answer.id.in_(q.ids))
    logger.debug("compiled %d answer clauses", len(clauses))
    return clauses
