import json
import logging
import random
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from companion.core.config import get_settings
from companion.core.errors import NotFoundError
from companion.db.study_guides_repo import StudyGuideRepo, get_study_guide_repo
from companion.db.subjects_repo import SubjectRepo
from companion.schemas.question import Question
from companion.schemas.study_guide import (
    StudyGuideEnvelope,
    StudyGuideList,
    StudyGuideRequest,
    StudyGuideSummary,
    StudyGuideView,
)
from companion.services import question_service
from companion.services.ai_service import GeminiClient, get_ai_client

logger = logging.getLogger(__name__)

GUIDE_PROMPT = """You are an expert educational assistant creating comprehensive, visually engaging study guides for college students.

Context:
- Subject: {subject}
- Exam: {exam}
- Topics Covered: {topics}
- Total Questions Analyzed: {count}

Write a detailed, well-structured study guide based on the patterns in the provided questions, following the rule that 80% of the marks come from 20% of the topics.

Formatting rules:
1. Always put technical terms, function names and keywords in inline code (backticks).
2. Include at least one Markdown comparison table per major topic.
3. Do not wrap the whole response in a code block; return raw Markdown.

Structure:
1. Overview & Exam Strategy: which areas appear most often and how to prepare.
2. Topic Breakdown, for each of ({topics}): key concepts, a comparison table, a short code/syntax example where relevant, common pitfalls.
3. Quick Review Checklist: 5-7 high-yield facts.

Tone: encouraging, precise and data-driven. End with a motivating yet humorous one-liner."""


def _view(doc: Dict[str, Any]) -> StudyGuideView:
    return StudyGuideView(
        id=doc["_id"],
        subject=doc["subject"],
        exam=doc["exam"],
        topics=doc.get("topics") or [],
        created_at=doc["createdAt"],
        questions_count=len(doc.get("questionsUsed") or []),
        content=doc["aiResponse"],
    )


def questions_for_prompt(questions: List[Question]) -> List[Dict[str, Any]]:
    return [
        {
            "number": idx + 1,
            "topic": q.topic or question_service.DEFAULT_TOPIC,
            "question": q.question or "N/A",
            "questionType": q.question_type,
        }
        for idx, q in enumerate(questions)
    ]


def generate_study_guide(
    payload: StudyGuideRequest,
    user_id: str,
    repo: Optional[StudyGuideRepo] = None,
    subject_repo: Optional[SubjectRepo] = None,
    client: Optional[GeminiClient] = None,
    rng: Optional[random.Random] = None,
) -> StudyGuideEnvelope:
    """
    Return a study guide for (subject, exam), generating it only once.

    A guide generated for any user is cloned for later requesters; the AI is
    called only when no guide exists for the pair yet.
    """

    repo = repo or get_study_guide_repo()
    settings = get_settings()
    subject_name, exam = payload.subject, payload.exam

    existing = repo.find_any(subject_name, exam)
    if existing:
        owned = repo.find_for_user(user_id, subject_name, exam)
        if owned:
            return StudyGuideEnvelope(message="You already have this study guide", study_guide=_view(owned), cached=True)
        logger.info("Reusing existing study guide for %s - %s", subject_name, exam)
        clone = {
            "_id": f"guide_{uuid.uuid4()}",
            "userId": user_id,
            "subject": existing["subject"],
            "exam": existing["exam"],
            "topics": existing.get("topics") or [],
            "questionsUsed": existing.get("questionsUsed") or [],
            "aiResponse": existing["aiResponse"],
            "createdAt": datetime.utcnow(),
        }
        repo.insert(clone)
        return StudyGuideEnvelope(message="Study guide generated successfully", study_guide=_view(clone), cached=True)

    subject = question_service.load_subject(subject_name, repo=subject_repo)
    paper = question_service.paper_for(subject, exam)
    if not paper:
        raise NotFoundError(f"No questions found for {subject_name} - {exam}")
    allowed = [q for q in paper if q.term in settings.study_guide_terms]
    if not allowed:
        raise NotFoundError(f"No questions found for {subject_name} - {exam} with allowed terms")

    picked = question_service.round_robin_pick(allowed, settings.study_guide_question_count, rng=rng)
    topics: List[str] = []
    for question in picked:
        if question.topic and question.topic not in topics:
            topics.append(question.topic)
    used = questions_for_prompt(picked)

    logger.info("Generating new study guide for %s - %s from %d questions", subject_name, exam, len(picked))
    client = client or get_ai_client()
    prompt = GUIDE_PROMPT.format(subject=subject_name, exam=exam, topics=", ".join(topics), count=len(picked))
    content = client.generate_text(
        f"{prompt}\n\nQUESTIONS ANALYZED:\n{json.dumps(used, indent=2)}", settings.gemini_guide_model
    )

    doc = {
        "_id": f"guide_{uuid.uuid4()}",
        "userId": user_id,
        "subject": subject_name,
        "exam": exam,
        "topics": topics,
        "questionsUsed": used,
        "aiResponse": content,
        "createdAt": datetime.utcnow(),
    }
    repo.insert(doc)
    return StudyGuideEnvelope(message="Study guide generated successfully", study_guide=_view(doc), cached=False)


def list_study_guides(user_id: str, repo: Optional[StudyGuideRepo] = None) -> StudyGuideList:
    repo = repo or get_study_guide_repo()
    return StudyGuideList(
        study_guides=[
            StudyGuideSummary(
                id=doc["_id"],
                subject=doc["subject"],
                exam=doc["exam"],
                topics=doc.get("topics") or [],
                created_at=doc["createdAt"],
            )
            for doc in repo.list_for_user(user_id)
        ]
    )


def get_study_guide(guide_id: str, user_id: str, repo: Optional[StudyGuideRepo] = None) -> StudyGuideEnvelope:
    repo = repo or get_study_guide_repo()
    doc = repo.get(guide_id, user_id)
    if not doc:
        raise NotFoundError("Study guide not found")
    return StudyGuideEnvelope(study_guide=_view(doc))


def delete_study_guide(guide_id: str, user_id: str, repo: Optional[StudyGuideRepo] = None) -> None:
    repo = repo or get_study_guide_repo()
    if not repo.delete(guide_id, user_id):
        raise NotFoundError("Study guide not found")
    logger.info("Deleted study guide %s for user %s", guide_id, user_id)
