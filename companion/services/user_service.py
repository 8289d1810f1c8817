import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from companion.core.errors import AuthenticationError, NotFoundError, ValidationError
from companion.db.users_repo import TokenRepo, UserRepo, get_user_repo
from companion.schemas.user import (
    AiUsageUpdate,
    AuthResponse,
    GoogleAuthRequest,
    LoginRequest,
    MeResponse,
    OnboardingRequest,
    ProfileUpdate,
    RegisterRequest,
    SubjectsUpdate,
    UserEnvelope,
    UserProfile,
)
from companion.security.passwords import hash_password, verify_password
from companion.security.tokens import issue_token

logger = logging.getLogger(__name__)


def _profile(doc: Dict[str, Any]) -> UserProfile:
    return UserProfile.model_validate(doc)


def _new_user_doc(email: str, name: Optional[str], **extra: Any) -> Dict[str, Any]:
    return {
        "_id": f"usr_{uuid.uuid4()}",
        "name": name,
        "email": email,
        "subjects": [],
        "onboardingCompleted": False,
        "aiAnalysisCount": 0,
        "aiAnalysisResetDate": datetime.utcnow(),
        "createdAt": datetime.utcnow(),
        **extra,
    }


def register(
    payload: RegisterRequest, repo: Optional[UserRepo] = None, token_repo: Optional[TokenRepo] = None
) -> AuthResponse:
    repo = repo or get_user_repo()
    if repo.find_by_email(payload.email):
        raise ValidationError("User already exists")
    doc = _new_user_doc(payload.email, payload.name, password=hash_password(payload.password))
    repo.insert(doc)
    logger.info("Registered user %s", doc["_id"])
    return AuthResponse(token=issue_token(doc["_id"], repo=token_repo), user=_profile(doc), is_new=True)


def login(payload: LoginRequest, repo: Optional[UserRepo] = None, token_repo: Optional[TokenRepo] = None) -> AuthResponse:
    repo = repo or get_user_repo()
    doc = repo.find_by_email(payload.email)
    # accounts created through Google sign-in carry no password
    if not doc or not doc.get("password") or not verify_password(payload.password, doc["password"]):
        raise AuthenticationError("Invalid email or password")
    return AuthResponse(token=issue_token(doc["_id"], repo=token_repo), user=_profile(doc))


def google_sign_in(
    payload: GoogleAuthRequest, repo: Optional[UserRepo] = None, token_repo: Optional[TokenRepo] = None
) -> AuthResponse:
    """Sign in an identity already verified by the client's Google flow, creating it if new."""

    repo = repo or get_user_repo()
    doc = repo.find_by_email(payload.email)
    is_new = doc is None
    if is_new:
        doc = _new_user_doc(payload.email, payload.name, photoURL=payload.photo_url)
        repo.insert(doc)
        logger.info("Created user %s from Google sign-in", doc["_id"])
    return AuthResponse(token=issue_token(doc["_id"], repo=token_repo), user=_profile(doc), is_new=is_new)


def get_user(user_id: str, repo: Optional[UserRepo] = None) -> UserProfile:
    repo = repo or get_user_repo()
    doc = repo.find_by_id(user_id)
    if not doc:
        raise NotFoundError("User not found")
    return _profile(doc)


def me(user_id: str, repo: Optional[UserRepo] = None) -> MeResponse:
    repo = repo or get_user_repo()
    doc = repo.find_by_id(user_id)
    if not doc:
        raise NotFoundError("User not found")
    if doc.get("aiAnalysisCount") is None:
        # accounts created before AI usage tracking
        doc = repo.update(user_id, {"aiAnalysisCount": 0, "aiAnalysisResetDate": datetime.utcnow()}) or doc
    user = _profile(doc)
    return MeResponse(user=user, needs_onboarding=not user.onboarding_completed)


def _updated(doc: Optional[Dict[str, Any]]) -> UserProfile:
    if not doc:
        raise NotFoundError("User not found")
    return _profile(doc)


def complete_onboarding(user_id: str, payload: OnboardingRequest, repo: Optional[UserRepo] = None) -> UserEnvelope:
    repo = repo or get_user_repo()
    patch = payload.model_dump(by_alias=True, exclude={"username"}, exclude_none=True)
    patch.update({"name": payload.username, "onboardingCompleted": True})
    user = _updated(repo.update(user_id, patch))
    return UserEnvelope(message="Onboarding completed successfully", user=user)


def update_profile(user_id: str, payload: ProfileUpdate, repo: Optional[UserRepo] = None) -> UserEnvelope:
    repo = repo or get_user_repo()
    return UserEnvelope(user=_updated(repo.update(user_id, payload.model_dump(by_alias=True))))


def update_subjects(user_id: str, payload: SubjectsUpdate, repo: Optional[UserRepo] = None) -> UserEnvelope:
    repo = repo or get_user_repo()
    if not payload.add and not payload.remove:
        raise ValidationError("Provide 'add' array and/or 'remove' string.")
    user = _updated(repo.update_subjects(user_id, payload.add, payload.remove))
    return UserEnvelope(message="Subjects updated", user=user)


def update_ai_usage(user_id: str, payload: AiUsageUpdate, repo: Optional[UserRepo] = None) -> UserEnvelope:
    repo = repo or get_user_repo()
    patch: Dict[str, Any] = {}
    if payload.count is not None:
        patch["aiAnalysisCount"] = payload.count
    if payload.last_reset_date is not None:
        patch["aiAnalysisResetDate"] = payload.last_reset_date
    if not patch:
        return UserEnvelope(user=get_user(user_id, repo=repo))
    return UserEnvelope(user=_updated(repo.update(user_id, patch)))
