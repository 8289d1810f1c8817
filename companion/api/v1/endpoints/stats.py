from typing import List, Optional

from fastapi import APIRouter, Depends

from companion.db.results_repo import ResultRepo, get_result_repo
from companion.db.users_repo import UserRepo, get_user_repo
from companion.schemas.stats import DashboardStats, LeaderboardEntry, SkillStat
from companion.security.tokens import get_current_user_id
from companion.services.analytics_service import dashboard_stats, leaderboard, skill_stats

router = APIRouter()


@router.get("/user/dashboard-stats", response_model=DashboardStats)
def dashboard_stats_endpoint(
    user_id: str = Depends(get_current_user_id),
    repo: ResultRepo = Depends(get_result_repo),
) -> DashboardStats:
    return dashboard_stats(user_id, repo=repo)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
def leaderboard_endpoint(
    subject: Optional[str] = None,
    repo: ResultRepo = Depends(get_result_repo),
    user_repo: UserRepo = Depends(get_user_repo),
) -> List[LeaderboardEntry]:
    return leaderboard(subject, repo=repo, user_repo=user_repo)


@router.get("/stats/skills", response_model=List[SkillStat])
def skill_stats_endpoint(
    user_id: str = Depends(get_current_user_id),
    repo: ResultRepo = Depends(get_result_repo),
) -> List[SkillStat]:
    return skill_stats(user_id, repo=repo)
