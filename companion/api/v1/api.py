from fastapi import APIRouter, Depends

from companion.api.v1.endpoints import ai, auth, feedback, questions, results, sessions, stats, study_guides, users
from companion.core.config import get_settings
from companion.security.rate_limit import RateLimiter

settings = get_settings()

# Per-client limiter applied to every API router
default_limiter = RateLimiter(limit=settings.rate_limit_requests, window_seconds=settings.rate_limit_window_seconds)

api_router = APIRouter(dependencies=[Depends(default_limiter)])
api_router.include_router(questions.router, tags=["questions"])
api_router.include_router(sessions.router, tags=["sessions"])
api_router.include_router(results.router, tags=["results"])
api_router.include_router(stats.router, tags=["stats"])
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(users.router, tags=["user"])
api_router.include_router(ai.router, tags=["ai"])
api_router.include_router(study_guides.router, tags=["study-guides"])
api_router.include_router(feedback.router, tags=["feedback"])
