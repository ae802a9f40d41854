from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


class CustomerOut(BaseModel):
    id: UUID
    name: str | None
    email: str
    phone: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomersPage(BaseModel):
    data: list[CustomerOut]
    count: int


class CustomerUpdate(BaseModel):
    email: EmailStr | None = None
    name: str | None = None
    phone: str | None = None

    @field_validator("name", "phone", mode="before")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class VisitOut(BaseModel):
    id: UUID
    location: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VisitsOut(BaseModel):
    visits: list[VisitOut]
