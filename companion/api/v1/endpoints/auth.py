from fastapi import APIRouter, Depends

from companion.db.users_repo import TokenRepo, UserRepo, get_token_repo, get_user_repo
from companion.schemas.user import AuthResponse, GoogleAuthRequest, LoginRequest, MeResponse, RegisterRequest
from companion.security.tokens import bearer_token, get_current_user_id, revoke_token
from companion.services.user_service import google_sign_in, login, me, register

router = APIRouter(prefix="/auth")


@router.post("/register", response_model=AuthResponse)
def register_endpoint(
    payload: RegisterRequest,
    repo: UserRepo = Depends(get_user_repo),
    token_repo: TokenRepo = Depends(get_token_repo),
) -> AuthResponse:
    return register(payload, repo=repo, token_repo=token_repo)


@router.post("/login", response_model=AuthResponse)
def login_endpoint(
    payload: LoginRequest,
    repo: UserRepo = Depends(get_user_repo),
    token_repo: TokenRepo = Depends(get_token_repo),
) -> AuthResponse:
    return login(payload, repo=repo, token_repo=token_repo)


@router.post("/google", response_model=AuthResponse)
def google_endpoint(
    payload: GoogleAuthRequest,
    repo: UserRepo = Depends(get_user_repo),
    token_repo: TokenRepo = Depends(get_token_repo),
) -> AuthResponse:
    return google_sign_in(payload, repo=repo, token_repo=token_repo)


@router.get("/me", response_model=MeResponse)
def me_endpoint(user_id: str = Depends(get_current_user_id), repo: UserRepo = Depends(get_user_repo)) -> MeResponse:
    return me(user_id, repo=repo)


@router.post("/logout")
def logout_endpoint(
    token: str = Depends(bearer_token),
    token_repo: TokenRepo = Depends(get_token_repo),
) -> dict:
    revoke_token(token, repo=token_repo)
    return {"message": "Logged out"}
