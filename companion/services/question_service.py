import logging
import random
import uuid
from typing import Any, Dict, List, Optional, Tuple

from companion.core.errors import NotFoundError, ValidationError
from companion.db.subjects_repo import SubjectRepo, get_subject_repo
from companion.schemas.question import ExamType, Question, QuestionType, TermsResponse
from companion.schemas.subject import Subject

logger = logging.getLogger(__name__)

EXAMS: Tuple[str, ...] = tuple(exam.value for exam in ExamType)
DEFAULT_TOPIC = "General"


def _topic_of(question: Question) -> str:
    return question.topic or ""


def select_questions(
    questions: List[Question],
    limit: int,
    topic: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """
    Pick up to ``limit`` questions balanced across topics.

    Each topic gets ``limit // topic_count`` questions; the remainder is
    filled with at most one extra per topic (random topic order), then from
    whatever is left of the pool. The result is shuffled.
    """

    rng = rng or random.Random()
    pool = [q for q in questions if topic is None or _topic_of(q) == topic]
    if limit <= 0 or not pool:
        return []
    if limit >= len(pool):
        selected = list(pool)
        rng.shuffle(selected)
        return selected

    groups: Dict[str, List[Question]] = {}
    for question in pool:
        groups.setdefault(_topic_of(question), []).append(question)

    per_topic = limit // len(groups)
    selected: List[Question] = []
    leftovers: Dict[str, List[Question]] = {}
    for name, group in groups.items():
        shuffled = list(group)
        rng.shuffle(shuffled)
        selected.extend(shuffled[:per_topic])
        leftovers[name] = shuffled[per_topic:]

    names = list(leftovers)
    rng.shuffle(names)
    for name in names:
        if len(selected) >= limit:
            break
        if leftovers[name]:
            selected.append(leftovers[name].pop(0))

    if len(selected) < limit:
        remaining = [q for name in names for q in leftovers[name]]
        rng.shuffle(remaining)
        selected.extend(remaining[: limit - len(selected)])

    rng.shuffle(selected)
    return selected


def round_robin_pick(questions: List[Question], total: int, rng: Optional[random.Random] = None) -> List[Question]:
    """Take one question per topic in turn until ``total`` or every topic runs dry."""

    rng = rng or random.Random()
    groups: Dict[str, List[Question]] = {}
    for question in questions:
        groups.setdefault(question.topic or DEFAULT_TOPIC, []).append(question)
    for group in groups.values():
        rng.shuffle(group)

    picked: List[Question] = []
    while len(picked) < total and any(groups.values()):
        for group in groups.values():
            if len(picked) >= total:
                break
            if group:
                picked.append(group.pop())
    return picked


def load_subject(subject_name: str, repo: Optional[SubjectRepo] = None) -> Subject:
    repo = repo or get_subject_repo()
    doc = repo.find_by_name(subject_name)
    if not doc:
        raise NotFoundError("Subject not found")
    return Subject.model_validate(doc)


def paper_for(subject: Subject, exam: str) -> List[Question]:
    if exam not in EXAMS:
        raise NotFoundError(f"Exam '{exam}' not found for {subject.subject_name}")
    return subject.papers.for_exam(exam)


def get_questions(
    subject: Optional[str],
    exam: Optional[str],
    topic: Optional[str] = None,
    limit: int = 10,
    repo: Optional[SubjectRepo] = None,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    if not subject:
        raise ValidationError("Missing subject")
    if not exam:
        raise ValidationError("Missing exam")
    doc = load_subject(subject, repo=repo)
    return select_questions(paper_for(doc, exam), limit, topic=topic, rng=rng)


def list_topics(subject: Optional[str], repo: Optional[SubjectRepo] = None) -> List[str]:
    if not subject:
        raise ValidationError("Missing subject")
    doc = load_subject(subject, repo=repo)
    topics: List[str] = []
    for question in doc.papers.all_questions():
        if question.topic and question.topic not in topics:
            topics.append(question.topic)
    return topics


def list_terms(
    subject: Optional[str],
    exam: Optional[str] = None,
    topic: Optional[str] = None,
    repo: Optional[SubjectRepo] = None,
) -> TermsResponse:
    if not subject:
        raise ValidationError("Missing subject")
    doc = load_subject(subject, repo=repo)
    exams = [ExamType(name) for name in EXAMS if doc.papers.for_exam(name)]
    questions = doc.papers.for_exam(exam) if exam in EXAMS else doc.papers.all_questions()
    if topic:
        questions = [q for q in questions if q.topic == topic]
    terms: List[str] = []
    for question in questions:
        if question.term and question.term not in terms:
            terms.append(question.term)
    return TermsResponse(terms=terms, exams=exams)


# --- question bank import -------------------------------------------------


def detect_question_type(raw: Dict[str, Any]) -> str:
    """Infer ``questionType`` for a bank entry that does not declare one."""

    if not raw.get("options"):
        return QuestionType.numerical.value
    if isinstance(raw.get("correctOption"), list):
        return QuestionType.multiple.value
    return QuestionType.single.value


def dedup_key(question: Dict[str, Any], exam: str) -> Tuple[str, str, str]:
    return (question.get("question") or "", question.get("term") or "", exam)


def group_bank_entries(entries: List[Dict[str, Any]]) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
    """Group raw bank entries into ``{subject: {exam: [question, ...]}}``."""

    grouped: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
    for raw in entries:
        entry = dict(raw)
        subject = entry.pop("subject", None)
        exam = entry.pop("exam", None)
        if not subject:
            logger.warning("Skipped question without subject: %s", entry.get("question"))
            continue
        if exam not in EXAMS:
            logger.warning("Skipped question with invalid exam type: %s", exam)
            continue
        entry.setdefault("questionType", detect_question_type(entry))
        if not entry.get("options"):
            entry["options"] = None
        papers = grouped.setdefault(subject, {name: [] for name in EXAMS})
        papers[exam].append(entry)
    return grouped


def merge_papers(
    existing: Dict[str, List[Dict[str, Any]]],
    incoming: Dict[str, List[Dict[str, Any]]],
) -> Tuple[Dict[str, List[Dict[str, Any]]], int, int]:
    """Append unseen questions per exam; returns (papers, added, skipped)."""

    merged: Dict[str, List[Dict[str, Any]]] = {}
    added = skipped = 0
    for exam in EXAMS:
        combined = list(existing.get(exam) or [])
        seen = {dedup_key(q, exam) for q in combined}
        for question in incoming.get(exam) or []:
            key = dedup_key(question, exam)
            if key in seen:
                skipped += 1
                continue
            seen.add(key)
            combined.append(question)
            added += 1
        merged[exam] = combined
    return merged, added, skipped


def import_question_bank(
    entries: List[Dict[str, Any]], repo: Optional[SubjectRepo] = None
) -> Dict[str, Dict[str, int]]:
    """Merge raw bank entries into stored subjects; returns per-subject counts."""

    repo = repo or get_subject_repo()
    report: Dict[str, Dict[str, int]] = {}
    for subject_name, papers in group_bank_entries(entries).items():
        for questions in papers.values():
            for question in questions:
                question.setdefault("_id", f"q_{uuid.uuid4()}")
        current = repo.find_by_name(subject_name) or {}
        merged, added, skipped = merge_papers(current.get("papers") or {}, papers)
        # validate before writing so a malformed entry never lands in the bank
        Subject.model_validate({"subjectName": subject_name, "papers": merged})
        repo.upsert({"subjectName": subject_name, "papers": merged})
        report[subject_name] = {"added": added, "skipped": skipped}
        logger.info("Subject %s: +%d new, %d skipped", subject_name, added, skipped)
    return report
