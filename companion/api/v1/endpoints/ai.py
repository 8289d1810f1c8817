from fastapi import APIRouter, Depends

from companion.db.results_repo import ResultRepo, get_result_repo
from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.result import AnalyzeRequest, AnalyzeResponse
from companion.security.tokens import get_current_user_id
from companion.services.ai_service import GeminiClient, analyze_result, get_ai_client

router = APIRouter(prefix="/ai")


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze_endpoint(
    payload: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
    repo: ResultRepo = Depends(get_result_repo),
    subject_repo: SubjectRepo = Depends(get_subject_repo),
    client: GeminiClient = Depends(get_ai_client),
) -> AnalyzeResponse:
    analysis = analyze_result(
        payload.result_id,
        user_id,
        time_taken=payload.time_taken,
        client=client,
        repo=repo,
        subject_repo=subject_repo,
    )
    return AnalyzeResponse(analysis=analysis)
