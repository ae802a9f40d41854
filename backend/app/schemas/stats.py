from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.schemas.question import QuestionType


class SentimentCounts(BaseModel):
    negative: int = 0
    neutral: int = 0
    positive: int = 0
    missing: int = 0


class NpsCounts(BaseModel):
    promoters: int = 0
    passives: int = 0
    detractors: int = 0
    missing: int = 0


class StatsOut(BaseModel):
    total: int
    byLocation: dict[str, int]
    byDay: dict[str, int]
    sentiment: SentimentCounts
    nps: NpsCounts
    npsScore: float | None


class OptionCount(BaseModel):
    label: str
    count: int
    percentage: int


class DistributionOut(BaseModel):
    questionId: UUID
    questionType: QuestionType
    total: int
    options: list[OptionCount]
    stray: int
    texts: list[str]


class NewCustomersOut(BaseModel):
    totalNew: int
    byLocation: dict[str, int]


class QuestionRef(BaseModel):
    id: UUID
    code: str
    prompt: str
    question_type: QuestionType
    options: dict

    model_config = ConfigDict(from_attributes=True)


class ResponseRef(BaseModel):
    id: UUID
    customer_name: str | None
    customer_email: str | None
    location: str
    created_at: datetime
    sentiment_score: float | None
    nps_bucket: str | None

    model_config = ConfigDict(from_attributes=True)


class AnswerRow(BaseModel):
    id: UUID
    value_text: str | None
    value_number: float | None
    created_at: datetime
    question: QuestionRef
    response: ResponseRef

    model_config = ConfigDict(from_attributes=True)


class AnswersPage(BaseModel):
    answers: list[AnswerRow]
    total: int
    page: int
    pageSize: int
