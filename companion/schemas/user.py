from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from companion.schemas.common import CamelModel


class Level(str, Enum):
    Foundational = "Foundational"
    Diploma = "Diploma"


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("email must be a valid address")
    return value


class UserProfile(CamelModel):
    """User document without credentials; safe to return to clients."""

    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    email: str
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    avatar: Optional[str] = None
    gender: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    blood_group: Optional[str] = None
    current_level: Optional[Level] = None
    subjects: List[str] = Field(default_factory=list)
    onboarding_completed: bool = False
    ai_analysis_count: int = 0
    ai_analysis_reset_date: Optional[datetime] = None


class UserRecord(UserProfile):
    password_hash: Optional[str] = Field(default=None, alias="password")


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)

    normalize_email = field_validator("email")(_normalize_email)


class LoginRequest(CamelModel):
    email: str
    password: str

    normalize_email = field_validator("email")(_normalize_email)


class GoogleAuthRequest(CamelModel):
    name: Optional[str] = None
    email: str
    photo_url: Optional[str] = Field(default=None, alias="photoURL")

    normalize_email = field_validator("email")(_normalize_email)


class AuthResponse(CamelModel):
    token: str
    user: UserProfile
    is_new: bool = False


class MeResponse(CamelModel):
    user: UserProfile
    needs_onboarding: bool


class OnboardingRequest(CamelModel):
    username: str = Field(..., min_length=1)
    avatar: Optional[str] = None
    gender: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    blood_group: Optional[str] = None
    current_level: Optional[Level] = None
    subjects: List[str] = Field(default_factory=list)


class ProfileUpdate(CamelModel):
    name: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    current_level: Level


class SubjectsUpdate(CamelModel):
    add: List[str] = Field(default_factory=list)
    remove: Optional[str] = None


class AiUsageUpdate(CamelModel):
    count: Optional[int] = Field(default=None, ge=0)
    last_reset_date: Optional[datetime] = None


class UserEnvelope(CamelModel):
    message: Optional[str] = None
    user: UserProfile


class FeedbackRequest(CamelModel):
    feedback: str
