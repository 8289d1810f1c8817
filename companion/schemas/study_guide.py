from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from companion.schemas.common import CamelModel
from companion.schemas.question import ExamType


class StudyGuideRequest(CamelModel):
    subject: str = Field(..., min_length=1)
    exam: ExamType


class StudyGuide(CamelModel):
    """Stored study guide document."""

    id: str = Field(..., alias="_id")
    user_id: str
    subject: str
    exam: ExamType
    topics: List[str] = Field(default_factory=list)
    questions_used: List[Dict[str, Any]] = Field(default_factory=list)
    ai_response: str
    created_at: datetime


class StudyGuideSummary(CamelModel):
    id: str = Field(..., alias="_id")
    subject: str
    exam: ExamType
    topics: List[str] = Field(default_factory=list)
    created_at: datetime


class StudyGuideView(StudyGuideSummary):
    questions_count: int
    content: str


class StudyGuideEnvelope(CamelModel):
    message: Optional[str] = None
    study_guide: StudyGuideView
    cached: Optional[bool] = None


class StudyGuideList(CamelModel):
    study_guides: List[StudyGuideSummary]
