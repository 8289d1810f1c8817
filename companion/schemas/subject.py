from typing import List, Optional

from pydantic import Field

from companion.schemas.common import CamelModel
from companion.schemas.question import ExamType, Question


class Papers(CamelModel):
    """Exam-keyed question collections of a subject."""

    quiz1: List[Question] = Field(default_factory=list)
    quiz2: List[Question] = Field(default_factory=list)
    et: List[Question] = Field(default_factory=list, alias="ET")

    def for_exam(self, exam: ExamType) -> List[Question]:
        return {"quiz1": self.quiz1, "quiz2": self.quiz2, "ET": self.et}[ExamType(exam).value]

    def all_questions(self) -> List[Question]:
        return [*self.quiz1, *self.quiz2, *self.et]


class Subject(CamelModel):
    id: Optional[str] = Field(default=None, alias="_id")
    subject_name: str
    papers: Papers = Field(default_factory=Papers)
