from fastapi import APIRouter, Depends

from companion.db.users_repo import UserRepo, get_user_repo
from companion.schemas.user import FeedbackRequest
from companion.security.tokens import get_current_user_id
from companion.services.feedback_service import send_feedback

router = APIRouter()


@router.post("/feedback")
def feedback_endpoint(
    payload: FeedbackRequest,
    user_id: str = Depends(get_current_user_id),
    repo: UserRepo = Depends(get_user_repo),
) -> dict:
    send_feedback(payload.feedback, user_id, repo=repo)
    return {"message": "Feedback sent!"}
