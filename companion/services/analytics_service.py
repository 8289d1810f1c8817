from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from companion.db.results_repo import ResultRepo, get_result_repo
from companion.db.users_repo import UserRepo, get_user_repo
from companion.schemas.result import AnswerStatus, QuizResult
from companion.schemas.stats import DashboardStats, FocusArea, LastQuiz, LeaderboardEntry, SkillStat

WEAK_TOPIC_MIN_ATTEMPTS = 5
LEADERBOARD_SIZE = 20
SKILLS_LIMIT = 6
ALL_SUBJECTS = "All"


def local_day(moment: datetime) -> date:
    """Server-local calendar date of a stored (naive UTC) timestamp."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone().date()


def compute_streak(results: Iterable[QuizResult], today: Optional[date] = None) -> int:
    """Consecutive local days with at least one quiz, ending today or yesterday."""

    today = today or date.today()
    days = sorted({local_day(result.created_at) for result in results}, reverse=True)
    if not days or (today - days[0]).days > 1:
        return 0
    streak = 1
    for previous, current in zip(days, days[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak


def find_weakest_topic(results: Iterable[QuizResult]) -> Optional[FocusArea]:
    """
    Lowest-accuracy topic across all answered questions.

    Topics with at least ``WEAK_TOPIC_MIN_ATTEMPTS`` answers are preferred;
    when none qualify every topic is considered. ``results`` should be newest
    first: a topic reports the subject of the first result it appears in.
    """

    stats: Dict[str, Dict[str, Any]] = {}
    for result in results:
        for answered in result.questions:
            entry = stats.setdefault(answered.topic, {"correct": 0, "total": 0, "subject": result.subject})
            entry["total"] += 1
            if answered.status == AnswerStatus.correct:
                entry["correct"] += 1
    if not stats:
        return None

    def pick(min_total: int) -> Optional[FocusArea]:
        weakest: Optional[FocusArea] = None
        lowest = None
        for topic, entry in stats.items():
            if entry["total"] < min_total:
                continue
            accuracy = entry["correct"] / entry["total"] * 100
            if lowest is None or accuracy < lowest:
                lowest = accuracy
                weakest = FocusArea(topic=topic, subject=entry["subject"], accuracy=round(accuracy))
        return weakest

    weakest = pick(WEAK_TOPIC_MIN_ATTEMPTS)
    return weakest if weakest is not None else pick(0)


def last_quiz(results: List[QuizResult]) -> Optional[LastQuiz]:
    if not results:
        return None
    newest = results[0]
    return LastQuiz(
        subject=newest.subject,
        exam=newest.exam,
        term=newest.term,
        topic=newest.questions[0].topic if newest.questions else None,
    )


def dashboard_stats(user_id: str, repo: Optional[ResultRepo] = None, today: Optional[date] = None) -> DashboardStats:
    repo = repo or get_result_repo()
    results = [QuizResult.model_validate(doc) for doc in repo.find_for_user(user_id)]
    return DashboardStats(
        streak=compute_streak(results, today=today),
        focus_area=find_weakest_topic(results),
        last_quiz=last_quiz(results),
    )


def build_leaderboard(
    best_scores: Iterable[Dict[str, Any]],
    users: Dict[str, Dict[str, Any]],
    limit: int = LEADERBOARD_SIZE,
) -> List[LeaderboardEntry]:
    """
    Rank users by the sum of their best score on each distinct quiz.

    ``best_scores`` holds one row per (user, subject, term, exam) with its
    ``maxScore``; rows of users missing from ``users`` are dropped.
    """

    totals: Dict[str, Dict[str, Any]] = {}
    for row in best_scores:
        user_id = row["userId"]
        if user_id not in users:
            continue
        entry = totals.setdefault(user_id, {"total": 0, "quizzes": 0})
        entry["total"] += row.get("maxScore") or 0
        entry["quizzes"] += 1

    board = [
        LeaderboardEntry(
            user_id=user_id,
            username=users[user_id].get("name"),
            avatar=users[user_id].get("avatar"),
            total_score=entry["total"],
            quizzes_taken=entry["quizzes"],
        )
        for user_id, entry in totals.items()
    ]
    board.sort(key=lambda item: item.total_score, reverse=True)
    return board[:limit]


def leaderboard(
    subject: Optional[str] = None,
    repo: Optional[ResultRepo] = None,
    user_repo: Optional[UserRepo] = None,
) -> List[LeaderboardEntry]:
    repo = repo or get_result_repo()
    user_repo = user_repo or get_user_repo()
    if subject == ALL_SUBJECTS:
        subject = None
    rows = repo.best_scores(subject=subject)
    users = user_repo.find_many(row["userId"] for row in rows)
    return build_leaderboard(rows, users)


def build_skills(subject_totals: Iterable[Dict[str, Any]], limit: int = SKILLS_LIMIT) -> List[SkillStat]:
    skills = []
    for row in subject_totals:
        total_questions = row.get("totalQuestions") or 0
        proficiency = row.get("totalScore", 0) / total_questions * 100 if total_questions else 0
        skills.append(SkillStat(subject=row["subject"], proficiency=round(proficiency)))
    skills.sort(key=lambda item: item.proficiency, reverse=True)
    return skills[:limit]


def skill_stats(user_id: str, repo: Optional[ResultRepo] = None) -> List[SkillStat]:
    repo = repo or get_result_repo()
    return build_skills(repo.subject_totals(user_id))
