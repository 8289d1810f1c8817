import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from companion.schemas.common import CamelModel

UserAnswer = Union[List[str], float, str, None]


class AnswerStatus(str, Enum):
    correct = "correct"
    incorrect = "incorrect"
    # Stored and accepted, never produced by the classifier.
    partially_correct = "partially_correct"
    not_attempted = "not_attempted"


class AnsweredQuestion(CamelModel):
    question_id: Optional[str] = None
    user_answer: UserAnswer = None
    status: AnswerStatus
    marks: int = 0
    topic: str


class QuizResultCreate(CamelModel):
    """Submission payload for a completed quiz attempt."""

    user_id: Optional[str] = None
    subject: str = Field(..., min_length=1)
    term: Optional[str] = None
    exam: Optional[str] = None
    questions: List[AnsweredQuestion]
    start_time: datetime
    end_time: datetime
    time_taken: int = Field(..., ge=0, description="Seconds")
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_window(self) -> "QuizResultCreate":
        if self.end_time < self.start_time:
            raise ValueError("endTime must not be before startTime")
        return self


class QuizResult(QuizResultCreate):
    id: str = Field(..., alias="_id")
    user_id: str
    ai_analysis: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("ai_analysis", mode="before")
    @classmethod
    def parse_legacy_analysis(cls, value: Any) -> Any:
        # older documents hold the analysis as a JSON string
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return None
        return value


class ReviewedQuestion(AnsweredQuestion):
    """Answered question joined with its question-bank entry."""

    question: Optional[str] = None
    options: Optional[Dict[str, str]] = None
    correct_option: Any = None
    context: Optional[str] = None
    image: Optional[str] = None
    explanation: Optional[str] = None


class QuizResultDetail(QuizResult):
    questions: List[ReviewedQuestion]


class QuizHistoryItem(CamelModel):
    id: str = Field(..., alias="_id")
    subject: str
    exam: Optional[str] = None
    term: Optional[str] = None
    score: int
    total_questions: int
    time_taken: int
    created_at: datetime
    has_ai_analysis: bool = False


class AnalysisSummary(BaseModel):
    title: str
    short_description: str
    behavioral_insight: str


class WeakArea(BaseModel):
    topic: str
    sub_concept: str
    correction: str


class StudyPlanDay(BaseModel):
    day: str
    tasks: List[str] = Field(default_factory=list)
    search_terms: List[str] = Field(default_factory=list)


class AIAnalysis(BaseModel):
    """Structured performance analysis returned by the generative model."""

    summary: AnalysisSummary
    weak_areas: List[WeakArea] = Field(default_factory=list)
    study_plan: List[StudyPlanDay] = Field(default_factory=list)


class AnalyzeRequest(CamelModel):
    result_id: str
    time_taken: Optional[str] = Field(default=None, description="Human readable, e.g. '1m 31s'")


class AnalyzeResponse(BaseModel):
    analysis: AIAnalysis
