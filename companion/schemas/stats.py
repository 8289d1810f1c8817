from typing import Optional

from pydantic import Field

from companion.schemas.common import CamelModel


class FocusArea(CamelModel):
    topic: str
    subject: str
    accuracy: int


class LastQuiz(CamelModel):
    subject: str
    exam: Optional[str] = None
    term: Optional[str] = None
    topic: Optional[str] = None


class DashboardStats(CamelModel):
    streak: int = 0
    focus_area: Optional[FocusArea] = None
    last_quiz: Optional[LastQuiz] = None


class LeaderboardEntry(CamelModel):
    user_id: str
    username: Optional[str] = None
    avatar: Optional[str] = None
    total_score: int
    quizzes_taken: int


class SkillStat(CamelModel):
    subject: str
    proficiency: int
    full_mark: int = Field(default=100)
