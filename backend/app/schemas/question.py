from enum import Enum
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class QuestionType(str, Enum):
    single_choice = "single_choice"
    scale_0_10 = "scale_0_10"
    free_text = "free_text"


class _OptionsBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    required: bool = True
    description: str | None = None


class ChoiceOptions(_OptionsBase):
    kind: Literal["single_choice"] = "single_choice"
    labels: list[Annotated[str, Field(min_length=1)]] = Field(min_length=1)


class ScaleOptions(_OptionsBase):
    kind: Literal["scale_0_10"] = "scale_0_10"


class TextOptions(_OptionsBase):
    kind: Literal["free_text"] = "free_text"


QuestionOptions = Annotated[Union[ChoiceOptions, ScaleOptions, TextOptions], Field(discriminator="kind")]
_options_adapter = TypeAdapter(QuestionOptions)


def options_for(question_type: str, raw: dict | None) -> ChoiceOptions | ScaleOptions | TextOptions:
    """Validate a stored/posted options bag against its question type."""
    data = {k: v for k, v in (raw or {}).items() if k != "kind"}
    return _options_adapter.validate_python({**data, "kind": question_type})


class QuestionIn(BaseModel):
    id: UUID | None = None
    code: str = Field(min_length=1, max_length=100)
    prompt: str = Field(min_length=1)
    question_type: QuestionType
    options: dict = Field(default_factory=dict)
    sort_order: int = 0
    group_key: str = "core_v2"
    is_active: bool = True

    @model_validator(mode="after")
    def _typed_options(self):
        typed = options_for(self.question_type.value, self.options)
        self.options = typed.model_dump(exclude={"kind"}, exclude_none=True)
        return self


class QuestionsUpsert(BaseModel):
    questions: list[QuestionIn] = Field(min_length=1)


class QuestionOut(BaseModel):
    id: UUID
    code: str
    prompt: str
    question_type: QuestionType
    options: dict
    sort_order: int
    group_key: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class QuestionsOut(BaseModel):
    questions: list[QuestionOut]
