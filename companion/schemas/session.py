from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from companion.schemas.common import CamelModel
from companion.schemas.question import ExamType, QuestionPublicView
from companion.schemas.result import UserAnswer


class SessionStatus(str, Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    finished = "finished"


class SessionMode(str, Enum):
    practice = "practice"
    exam = "exam"


class SessionStartRequest(CamelModel):
    subject: str = Field(..., min_length=1)
    exam: ExamType
    topic: Optional[str] = None
    term: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)
    mode: SessionMode = SessionMode.exam


class AnswerRequest(CamelModel):
    index: int = Field(..., ge=0)
    answer: UserAnswer = None


class SessionView(CamelModel):
    id: str
    status: SessionStatus
    mode: SessionMode
    subject: str
    exam: Optional[str] = None
    term: Optional[str] = None
    current_index: int
    total_questions: int
    questions: List[QuestionPublicView]
    answers: Dict[int, Any] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    time_limit_seconds: Optional[int] = None
    remaining_seconds: Optional[int] = None
    result_id: Optional[str] = None
