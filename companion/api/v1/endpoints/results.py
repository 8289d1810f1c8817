from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from companion.db.results_repo import ResultRepo, get_result_repo
from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.result import QuizHistoryItem, QuizResult, QuizResultCreate, QuizResultDetail
from companion.security.tokens import get_current_user_id
from companion.services.result_service import get_result_detail, list_history, save_result

router = APIRouter()


@router.post("/results", response_model=QuizResult, status_code=201)
def save_result_endpoint(
    payload: QuizResultCreate,
    user_id: str = Depends(get_current_user_id),
    repo: ResultRepo = Depends(get_result_repo),
) -> QuizResult:
    return save_result(payload, user_id, repo=repo)


@router.get("/results/user/{owner_id}", response_model=List[QuizHistoryItem])
def list_history_endpoint(
    owner_id: str,
    subject: Optional[str] = None,
    limit: int = Query(default=20, ge=0, le=100),
    skip: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    repo: ResultRepo = Depends(get_result_repo),
) -> List[QuizHistoryItem]:
    return list_history(owner_id, user_id, subject=subject, limit=limit, skip=skip, repo=repo)


@router.get("/results/{result_id}", response_model=QuizResultDetail)
def get_result_endpoint(
    result_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: ResultRepo = Depends(get_result_repo),
    subject_repo: SubjectRepo = Depends(get_subject_repo),
) -> QuizResultDetail:
    return get_result_detail(result_id, user_id, repo=repo, subject_repo=subject_repo)
