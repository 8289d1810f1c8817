from fastapi import APIRouter, Depends

from companion.db.study_guides_repo import StudyGuideRepo, get_study_guide_repo
from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.study_guide import StudyGuideEnvelope, StudyGuideList, StudyGuideRequest
from companion.security.tokens import get_current_user_id
from companion.services.ai_service import GeminiClient, get_ai_client
from companion.services.study_guide_service import (
    delete_study_guide,
    generate_study_guide,
    get_study_guide,
    list_study_guides,
)

router = APIRouter(prefix="/study-guides")


@router.post("/generate", response_model=StudyGuideEnvelope, response_model_exclude_none=True)
def generate_endpoint(
    payload: StudyGuideRequest,
    user_id: str = Depends(get_current_user_id),
    repo: StudyGuideRepo = Depends(get_study_guide_repo),
    subject_repo: SubjectRepo = Depends(get_subject_repo),
    client: GeminiClient = Depends(get_ai_client),
) -> StudyGuideEnvelope:
    return generate_study_guide(payload, user_id, repo=repo, subject_repo=subject_repo, client=client)


@router.get("/user", response_model=StudyGuideList)
def list_endpoint(
    user_id: str = Depends(get_current_user_id),
    repo: StudyGuideRepo = Depends(get_study_guide_repo),
) -> StudyGuideList:
    return list_study_guides(user_id, repo=repo)


@router.get("/{guide_id}", response_model=StudyGuideEnvelope, response_model_exclude_none=True)
def get_endpoint(
    guide_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: StudyGuideRepo = Depends(get_study_guide_repo),
) -> StudyGuideEnvelope:
    return get_study_guide(guide_id, user_id, repo=repo)


@router.delete("/{guide_id}")
def delete_endpoint(
    guide_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: StudyGuideRepo = Depends(get_study_guide_repo),
) -> dict:
    delete_study_guide(guide_id, user_id, repo=repo)
    return {"message": "Study guide deleted successfully"}
