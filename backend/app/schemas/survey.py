from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.config import settings


def _known_location(v: str) -> str:
    if v not in settings.locations:
        raise ValueError(f"must be one of {', '.join(settings.locations)}")
    return v


class StartSurveyIn(BaseModel):
    email: EmailStr
    name: str | None = Field(None, min_length=1)
    phone: str | None = None
    location: str

    _location = field_validator("location")(_known_location)


class StartSurveyOut(BaseModel):
    customerId: UUID
    email: str
    name: str | None
    phone: str | None
    location: str


class AnswerIn(BaseModel):
    question_id: UUID
    value_text: str | None = None
    value_number: float | None = None


class SubmitSurveyIn(BaseModel):
    email: EmailStr | None = None
    name: str | None = Field(None, min_length=1)
    phone: str | None = None
    location: str
    answers: list[AnswerIn] = Field(min_length=1)
    improvement_text: str | None = None

    _location = field_validator("location")(_known_location)

    @field_validator("name", "phone", "improvement_text", mode="before")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class SubmitSurveyOut(BaseModel):
    responseId: UUID
