from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.question import Question, TermsResponse
from companion.services.question_service import get_questions, list_terms, list_topics

router = APIRouter()


@router.get("/questions", response_model=List[Question])
def get_questions_endpoint(
    subject: Optional[str] = None,
    exam: Optional[str] = None,
    topic: Optional[str] = None,
    limit: int = Query(default=10, ge=0, le=200),
    repo: SubjectRepo = Depends(get_subject_repo),
) -> List[Question]:
    return get_questions(subject, exam, topic=topic, limit=limit, repo=repo)


@router.get("/topics", response_model=List[str])
def list_topics_endpoint(subject: Optional[str] = None, repo: SubjectRepo = Depends(get_subject_repo)) -> List[str]:
    return list_topics(subject, repo=repo)


@router.get("/terms", response_model=TermsResponse)
def list_terms_endpoint(
    subject: Optional[str] = None,
    exam: Optional[str] = None,
    topic: Optional[str] = None,
    repo: SubjectRepo = Depends(get_subject_repo),
) -> TermsResponse:
    return list_terms(subject, exam=exam, topic=topic, repo=repo)
