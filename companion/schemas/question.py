from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag, field_validator, model_validator

from companion.schemas.common import CamelModel


class QuestionType(str, Enum):
    single = "single"
    multiple = "multiple"
    numerical = "numerical"


class ExamType(str, Enum):
    quiz1 = "quiz1"
    quiz2 = "quiz2"
    ET = "ET"


class NumericRange(BaseModel):
    """Inclusive accepted range for a numerical answer."""

    min: float
    max: float

    @model_validator(mode="after")
    def check_bounds(self) -> "NumericRange":
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class QuestionBase(CamelModel):
    """Fields shared by every question variant."""

    id: Optional[str] = Field(default=None, alias="_id")
    question: str
    context: Optional[str] = None
    image: Optional[str] = None
    explanation: Optional[str] = None
    options: Optional[Dict[str, str]] = None
    topic: Optional[str] = None
    term: Optional[str] = None

    @field_validator("options", mode="before")
    @classmethod
    def options_as_mapping(cls, value: Any) -> Any:
        """Accept a plain list of options and key it A, B, C..."""

        if isinstance(value, list):
            return {chr(65 + idx): str(item) for idx, item in enumerate(value)}
        if isinstance(value, dict):
            return {str(key): str(item) for key, item in value.items()}
        return value


class SingleChoiceQuestion(QuestionBase):
    question_type: Literal["single"] = "single"
    correct_option: str

    @field_validator("correct_option", mode="before")
    @classmethod
    def collapse_list(cls, value: Any) -> Any:
        if isinstance(value, list):
            value = value[0] if value else ""
        return value if isinstance(value, str) else str(value)


class MultipleChoiceQuestion(QuestionBase):
    question_type: Literal["multiple"]
    correct_option: List[str]

    @field_validator("correct_option", mode="before")
    @classmethod
    def wrap_scalar(cls, value: Any) -> Any:
        if not isinstance(value, list):
            value = [value]
        return [str(item) for item in value]


class NumericalQuestion(QuestionBase):
    question_type: Literal["numerical"]
    correct_option: Union[NumericRange, float, str]

    @field_validator("correct_option", mode="before")
    @classmethod
    def collapse_list(cls, value: Any) -> Any:
        if isinstance(value, list):
            return value[0] if value else ""
        return value


def _question_kind(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("questionType") or value.get("question_type") or QuestionType.single.value
    return getattr(value, "question_type", QuestionType.single.value)


Question = Annotated[
    Union[
        Annotated[SingleChoiceQuestion, Tag("single")],
        Annotated[MultipleChoiceQuestion, Tag("multiple")],
        Annotated[NumericalQuestion, Tag("numerical")],
    ],
    Discriminator(_question_kind),
]


class QuestionPublicView(CamelModel):
    """Question as shown while a session is running (no answer, no explanation)."""

    id: Optional[str] = Field(default=None, alias="_id")
    question: str
    context: Optional[str] = None
    image: Optional[str] = None
    options: Optional[Dict[str, str]] = None
    question_type: QuestionType
    topic: Optional[str] = None
    term: Optional[str] = None


class TermsResponse(BaseModel):
    terms: List[str]
    exams: List[ExamType]
