from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.question import QuestionsOut
from app.schemas.survey import StartSurveyIn, StartSurveyOut, SubmitSurveyIn, SubmitSurveyOut
from app.services import answer_store
from app.services.llm import SentimentClassifier, get_sentiment_classifier
from app.services.notifications import Notifier, get_notifier, schedule_post_submit
from app.services.survey import submit_survey

router = APIRouter(prefix="/api/survey", tags=["survey"])


@router.get("/questions", response_model=QuestionsOut)
def get_questions(db: Session = Depends(get_db)):
    return {"questions": answer_store.list_questions(db, active_only=True)}


@router.post("/start", response_model=StartSurveyOut)
def start_survey(payload: StartSurveyIn, db: Session = Depends(get_db)):
    customer = answer_store.upsert_customer(db, payload.email, payload.name, payload.phone)
    return StartSurveyOut(
        customerId=customer.id,
        email=customer.email,
        name=customer.name,
        phone=customer.phone,
        location=payload.location,
    )


@router.post("/submit", response_model=SubmitSurveyOut)
def submit(
    payload: SubmitSurveyIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    classifier: SentimentClassifier | None = Depends(get_sentiment_classifier),
    notifier: Notifier = Depends(get_notifier),
):
    response, ctx = submit_survey(db, payload, classifier)
    # response and answers are committed; notifications are best effort from here on
    schedule_post_submit(background, notifier, email=ctx.email, ctx=ctx)
    return SubmitSurveyOut(responseId=response.id)
