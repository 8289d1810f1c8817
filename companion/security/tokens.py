import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Header

from companion.core.config import get_settings
from companion.core.errors import AuthenticationError
from companion.db.users_repo import TokenRepo, get_token_repo

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def hash_token(raw_token: str) -> str:
    """Return salted sha256 hash for storage/verification."""

    salt = get_settings().token_salt
    return hashlib.sha256(f"{raw_token}{salt}".encode("utf-8")).hexdigest()


def issue_token(user_id: str, repo: Optional[TokenRepo] = None) -> str:
    """Create a bearer token for ``user_id``; only its hash is stored."""

    repo = repo or get_token_repo()
    raw = secrets.token_urlsafe(32)
    expires_at = datetime.utcnow() + timedelta(hours=get_settings().token_ttl_hours)
    repo.insert(hash_token(raw), user_id, expires_at)
    logger.info("Issued token for user %s (expires %s)", user_id, expires_at.isoformat())
    return raw


def resolve_token(raw_token: str, repo: Optional[TokenRepo] = None) -> str:
    """Return the user id a raw token belongs to, or raise AuthenticationError."""

    repo = repo or get_token_repo()
    hashed = hash_token(raw_token)
    record = repo.find(hashed)
    if not record or not hmac.compare_digest(hashed, record["tokenHash"]):
        raise AuthenticationError("Invalid token")
    if record["expiresAt"] <= datetime.utcnow():
        repo.delete(hashed)
        raise AuthenticationError("Token expired")
    return record["userId"]


def revoke_token(raw_token: str, repo: Optional[TokenRepo] = None) -> None:
    repo = repo or get_token_repo()
    repo.delete(hash_token(raw_token))


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    """Dependency extracting the raw token from ``Authorization: Bearer``."""

    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        raise AuthenticationError("No token provided")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError("No token provided")
    return token


def get_current_user_id(
    token: str = Depends(bearer_token),
    repo: TokenRepo = Depends(get_token_repo),
) -> str:
    """Dependency returning the authenticated user's id."""

    return resolve_token(token, repo=repo)
