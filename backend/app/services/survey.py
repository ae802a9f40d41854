import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import UpstreamModelError, ValidationError
from app.models import Question, SurveyResponse
from app.schemas.survey import SubmitSurveyIn
from app.services import answer_store
from app.services.llm import SentimentClassifier
from app.services.notifications import AlertContext
from app.services.statistics import nps_bucket_for, nps_value
from app.services.tally import resolve_scale

logger = logging.getLogger(__name__)


def _check_answers(db: Session, payload: SubmitSurveyIn) -> dict:
    ids = {a.question_id for a in payload.answers}
    with answer_store.store_errors("load questions"):
        questions = {q.id: q for q in db.scalars(select(Question).where(Question.id.in_(ids)))}

    for idx, a in enumerate(payload.answers):
        question = questions.get(a.question_id)
        if question is None:
            raise ValidationError(f"answers.{idx}.question_id", f"unknown question {a.question_id}")
        if question.question_type == "scale_0_10" and a.value_number is not None and resolve_scale(a.value_number) is None:
            raise ValidationError(f"answers.{idx}.value_number", "must be an integer between 0 and 10")
    return questions


def sentiment_text(payload: SubmitSurveyIn, questions: dict) -> str:
    if payload.improvement_text:
        return payload.improvement_text
    texts = [
        a.value_text.strip()
        for a in payload.answers
        if a.value_text and questions[a.question_id].question_type == "free_text"
    ]
    return "\n".join(t for t in texts if t)


def submit_survey(
    db: Session, payload: SubmitSurveyIn, classifier: SentimentClassifier | None
) -> tuple[SurveyResponse, AlertContext]:
    """
    Store a completed survey.

    NPS bucket and sentiment are derived before the insert; sentiment is best
    effort and a model failure just leaves it empty.
    """
    questions = _check_answers(db, payload)
    email = payload.email.strip().lower() if payload.email else None

    customer = answer_store.upsert_customer(db, email, payload.name, payload.phone) if email else None

    # choice answers may carry an option index in value_number; only the scale answer is NPS
    nps = nps_value(
        a.value_number for a in payload.answers if questions[a.question_id].question_type == "scale_0_10"
    )
    sentiment = None
    if classifier is not None:
        try:
            sentiment = classifier.score(sentiment_text(payload, questions))
        except UpstreamModelError as e:
            logger.error("Sentiment classification failed: %s", e.message)

    response = answer_store.create_response(
        db,
        customer=customer,
        email=email,
        name=payload.name,
        location=payload.location,
        nps_bucket=nps_bucket_for(nps),
        sentiment_score=sentiment,
        answers=[
            {"question_id": a.question_id, "value_text": a.value_text, "value_number": a.value_number}
            for a in payload.answers
        ],
    )
    logger.info("Stored survey response %s (%d answers)", response.id, len(payload.answers))

    ctx = AlertContext(
        location=payload.location,
        email=email,
        name=payload.name,
        nps=nps,
        sentiment=sentiment,
        improvement_text=payload.improvement_text,
    )
    return response, ctx
