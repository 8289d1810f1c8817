from fastapi import APIRouter, Depends

from companion.db.results_repo import ResultRepo, get_result_repo
from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.result import QuizResult
from companion.schemas.session import AnswerRequest, SessionStartRequest, SessionView
from companion.security.tokens import get_current_user_id
from companion.services.session_service import SessionManager, get_session_manager

router = APIRouter()


@router.post("/sessions", response_model=SessionView, status_code=201)
def start_session_endpoint(
    payload: SessionStartRequest,
    user_id: str = Depends(get_current_user_id),
    manager: SessionManager = Depends(get_session_manager),
    subject_repo: SubjectRepo = Depends(get_subject_repo),
    result_repo: ResultRepo = Depends(get_result_repo),
) -> SessionView:
    session = manager.create(user_id, payload, subject_repo=subject_repo, result_repo=result_repo)
    return session.view()


@router.get("/sessions/{session_id}", response_model=SessionView)
def get_session_endpoint(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionView:
    return manager.get(session_id, user_id).view()


@router.put("/sessions/{session_id}/answers", response_model=SessionView)
def answer_endpoint(
    session_id: str,
    payload: AnswerRequest,
    user_id: str = Depends(get_current_user_id),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionView:
    return manager.answer(session_id, user_id, payload.index, payload.answer).view()


@router.post("/sessions/{session_id}/finish", response_model=QuizResult)
def finish_session_endpoint(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: SessionManager = Depends(get_session_manager),
) -> QuizResult:
    return manager.finish(session_id, user_id)
