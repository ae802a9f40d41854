from datetime import date, datetime, time, timezone
from enum import Enum
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings


class SentimentBucket(str, Enum):
    positive = "positive"
    neutral = "neutral"
    negative = "negative"
    missing = "missing"


class NpsBucket(str, Enum):
    promoter = "promoter"
    passive = "passive"
    detractor = "detractor"
    missing = "missing"


class SortBy(str, Enum):
    answer = "answer"
    sentiment = "sentiment"
    date = "date"


class SortDir(str, Enum):
    asc = "asc"
    desc = "desc"


class ExportFormat(str, Enum):
    json = "json"
    csv = "csv"


def parse_timestamp(value, *, end_of_day: bool = False) -> datetime:
    """ISO-8601 string -> aware UTC datetime. A bare date covers the whole day."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.max if end_of_day else time.min)
    else:
        text = str(value).strip()
        try:
            day = date.fromisoformat(text)
        except ValueError:
            day = None
        if day is not None:
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise ValueError("must be an ISO-8601 timestamp") from None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class WindowQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_: datetime | None = Field(None, alias="from")
    to: datetime | None = None
    location: str | None = None

    @field_validator("from_", mode="before")
    @classmethod
    def _parse_from(cls, v):
        return parse_timestamp(v) if v is not None else None

    @field_validator("to", mode="before")
    @classmethod
    def _parse_to(cls, v):
        return parse_timestamp(v, end_of_day=True) if v is not None else None

    @field_validator("location")
    @classmethod
    def _known_location(cls, v):
        if v is not None and v not in settings.locations:
            raise ValueError(f"must be one of {', '.join(settings.locations)}")
        return v


class StatsQuery(WindowQuery):
    question_id: UUID | None = Field(None, alias="questionId")
    sentiment: SentimentBucket | None = None
    nps_bucket: NpsBucket | None = Field(None, alias="npsBucket")


class DistributionQuery(StatsQuery):
    pass


class AnswersQuery(StatsQuery):
    question_id: UUID = Field(alias="questionId")
    answer: str | None = Field(None, validation_alias=AliasChoices("answerValue", "answer"))
    page: int = Field(1, ge=1, le=500)
    page_size: int = Field(25, ge=1, le=200, alias="pageSize")
    limit: int | None = Field(None, ge=1, le=2000)
    sort_by: SortBy = Field(SortBy.date, alias="sortBy")
    sort_dir: SortDir = Field(SortDir.desc, alias="sortDir")
    format: ExportFormat = ExportFormat.json
    ids: list[UUID] | None = Field(None, alias="id")


class InsightsQuery(WindowQuery):
    limit: int = Field(400, ge=50, le=800)


class CustomersQuery(WindowQuery):
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)
    search: str | None = None


class ExportQuery(BaseModel):
    type: str = Field("responses", pattern="^(responses|customers)$")
    limit: int = Field(2000, ge=1, le=2000)
