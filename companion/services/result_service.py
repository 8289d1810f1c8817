import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from companion.core.errors import ForbiddenError, NotFoundError
from companion.db.results_repo import ResultRepo, get_result_repo
from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.question import NumericRange
from companion.schemas.result import (
    QuizHistoryItem,
    QuizResult,
    QuizResultCreate,
    QuizResultDetail,
    ReviewedQuestion,
)
from companion.schemas.subject import Subject

logger = logging.getLogger(__name__)


def save_result(payload: QuizResultCreate, user_id: str, repo: Optional[ResultRepo] = None) -> QuizResult:
    """Persist a completed attempt for the authenticated user."""

    repo = repo or get_result_repo()
    if payload.user_id and payload.user_id != user_id:
        raise ForbiddenError("Cannot save a result for another user")
    now = datetime.utcnow()
    doc = payload.model_dump(by_alias=True)
    doc.update({"_id": f"res_{uuid.uuid4()}", "userId": user_id, "aiAnalysis": None, "createdAt": now, "updatedAt": now})
    repo.insert(doc)
    logger.info("Saved result %s for user %s (%s/%s)", doc["_id"], user_id, payload.score, payload.total_questions)
    return QuizResult.model_validate(doc)


def get_owned_result(result_id: str, user_id: str, repo: Optional[ResultRepo] = None) -> QuizResult:
    repo = repo or get_result_repo()
    doc = repo.find_by_id(result_id)
    if not doc:
        raise NotFoundError("Quiz result not found")
    result = QuizResult.model_validate(doc)
    if result.user_id != user_id:
        raise ForbiddenError()
    return result


def _bank_index(subject_doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not subject_doc:
        return {}
    subject = Subject.model_validate(subject_doc)
    return {q.id: q for q in subject.papers.all_questions() if q.id}


def get_result_detail(
    result_id: str,
    user_id: str,
    repo: Optional[ResultRepo] = None,
    subject_repo: Optional[SubjectRepo] = None,
) -> QuizResultDetail:
    """Owned result with each answer joined to its question-bank entry."""

    result = get_owned_result(result_id, user_id, repo=repo)
    subject_repo = subject_repo or get_subject_repo()
    bank = _bank_index(subject_repo.find_by_name(result.subject))

    reviewed: List[ReviewedQuestion] = []
    for answered in result.questions:
        data = answered.model_dump()
        question = bank.get(answered.question_id) if answered.question_id else None
        if question is not None:
            correct = question.correct_option
            data.update(
                question=question.question,
                options=question.options,
                correct_option=correct.model_dump() if isinstance(correct, NumericRange) else correct,
                context=question.context,
                image=question.image,
                explanation=question.explanation,
            )
        reviewed.append(ReviewedQuestion(**data))
    return QuizResultDetail(**result.model_dump(exclude={"questions"}), questions=reviewed)


def list_history(
    user_id: str,
    requester_id: str,
    subject: Optional[str] = None,
    limit: int = 20,
    skip: int = 0,
    repo: Optional[ResultRepo] = None,
) -> List[QuizHistoryItem]:
    if user_id != requester_id:
        raise ForbiddenError()
    repo = repo or get_result_repo()
    docs = repo.find_for_user(user_id, subject=subject, skip=skip, limit=limit)
    return [
        QuizHistoryItem(
            id=doc["_id"],
            subject=doc["subject"],
            exam=doc.get("exam"),
            term=doc.get("term"),
            score=doc["score"],
            total_questions=doc["totalQuestions"],
            time_taken=doc["timeTaken"],
            created_at=doc["createdAt"],
            has_ai_analysis=bool(doc.get("aiAnalysis")),
        )
        for doc in docs
    ]


def attach_analysis(result_id: str, analysis: Dict[str, Any], repo: Optional[ResultRepo] = None) -> None:
    repo = repo or get_result_repo()
    if not repo.set_analysis(result_id, analysis, datetime.utcnow()):
        raise NotFoundError("Quiz result not found")
