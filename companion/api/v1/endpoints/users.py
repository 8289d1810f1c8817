from fastapi import APIRouter, Depends

from companion.db.users_repo import UserRepo, get_user_repo
from companion.schemas.user import AiUsageUpdate, OnboardingRequest, ProfileUpdate, SubjectsUpdate, UserEnvelope
from companion.security.tokens import get_current_user_id
from companion.services.user_service import complete_onboarding, update_ai_usage, update_profile, update_subjects

router = APIRouter(prefix="/user")


@router.post("/onboarding", response_model=UserEnvelope, response_model_exclude_none=True)
def onboarding_endpoint(
    payload: OnboardingRequest,
    user_id: str = Depends(get_current_user_id),
    repo: UserRepo = Depends(get_user_repo),
) -> UserEnvelope:
    return complete_onboarding(user_id, payload, repo=repo)


@router.put("/update-profile", response_model=UserEnvelope, response_model_exclude_none=True)
def update_profile_endpoint(
    payload: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    repo: UserRepo = Depends(get_user_repo),
) -> UserEnvelope:
    return update_profile(user_id, payload, repo=repo)


@router.put("/update-subjects", response_model=UserEnvelope, response_model_exclude_none=True)
def update_subjects_endpoint(
    payload: SubjectsUpdate,
    user_id: str = Depends(get_current_user_id),
    repo: UserRepo = Depends(get_user_repo),
) -> UserEnvelope:
    return update_subjects(user_id, payload, repo=repo)


@router.put("/update-ai-usage", response_model=UserEnvelope, response_model_exclude_none=True)
def update_ai_usage_endpoint(
    payload: AiUsageUpdate,
    user_id: str = Depends(get_current_user_id),
    repo: UserRepo = Depends(get_user_repo),
) -> UserEnvelope:
    return update_ai_usage(user_id, payload, repo=repo)
