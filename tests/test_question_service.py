import math
import random
from collections import Counter

import pytest
from fastapi import HTTPException
from pydantic import TypeAdapter

from companion.db.subjects_repo import InMemorySubjectRepo
from companion.schemas.question import Question
from companion.services.question_service import (
    get_questions,
    import_question_bank,
    list_terms,
    list_topics,
    merge_papers,
    round_robin_pick,
    select_questions,
)

QUESTIONS = TypeAdapter(list[Question])


def _pool(sizes):
    """Build questions from ``{topic: count}``."""

    docs = []
    for topic, count in sizes.items():
        for idx in range(count):
            docs.append({"_id": f"{topic}-{idx}", "question": f"{topic} {idx}", "correctOption": "A", "topic": topic})
    return QUESTIONS.validate_python(docs)


def test_selection_returns_exactly_limit_without_duplicates():
    pool = _pool({"a": 4, "b": 4, "c": 2})
    picked = select_questions(pool, 5, rng=random.Random(1))
    assert len(picked) == 5
    assert len({q.id for q in picked}) == 5


def test_selection_returns_whole_pool_when_limit_exceeds_supply():
    pool = _pool({"a": 2, "b": 1})
    picked = select_questions(pool, 10, rng=random.Random(2))
    assert sorted(q.id for q in picked) == sorted(q.id for q in pool)


@pytest.mark.parametrize("seed", range(20))
def test_selection_topic_fairness(seed):
    pool = _pool({"a": 6, "b": 6, "c": 6})
    limit = 7
    counts = Counter(q.topic for q in select_questions(pool, limit, rng=random.Random(seed)))
    assert sum(counts.values()) == limit
    for topic in ("a", "b", "c"):
        assert limit // 3 <= counts[topic] <= math.ceil(limit / 3)


def test_thin_topic_is_compensated_from_remaining_pool():
    pool = _pool({"thin": 1, "deep": 10})
    picked = select_questions(pool, 6, rng=random.Random(3))
    counts = Counter(q.topic for q in picked)
    assert len(picked) == 6
    assert counts["thin"] == 1
    assert counts["deep"] == 5


def test_topic_filter_restricts_pool():
    pool = _pool({"a": 5, "b": 5})
    picked = select_questions(pool, 3, topic="b", rng=random.Random(4))
    assert len(picked) == 3
    assert {q.topic for q in picked} == {"b"}


def test_non_positive_limit_returns_nothing():
    assert select_questions(_pool({"a": 3}), 0) == []


def test_same_seed_gives_same_selection():
    pool = _pool({"a": 5, "b": 5, "c": 5})
    first = [q.id for q in select_questions(pool, 6, rng=random.Random(9))]
    second = [q.id for q in select_questions(pool, 6, rng=random.Random(9))]
    assert first == second


def test_round_robin_pick_balances_topics():
    pool = _pool({"a": 10, "b": 2, "c": 10})
    picked = round_robin_pick(pool, 9, rng=random.Random(5))
    counts = Counter(q.topic for q in picked)
    assert len(picked) == 9
    assert counts["b"] == 2
    assert counts["a"] >= 3 and counts["c"] >= 3


def test_round_robin_pick_stops_when_exhausted():
    pool = _pool({"a": 2, "b": 1})
    assert len(round_robin_pick(pool, 30)) == 3


def test_get_questions_validates_inputs(subject_doc):
    repo = InMemorySubjectRepo([subject_doc])
    with pytest.raises(HTTPException) as missing:
        get_questions("Python", None, repo=repo)
    assert missing.value.status_code == 400
    with pytest.raises(HTTPException) as unknown:
        get_questions("Haskell", "quiz1", repo=repo)
    assert unknown.value.status_code == 404
    with pytest.raises(HTTPException) as bad_exam:
        get_questions("Python", "midterm", repo=repo)
    assert bad_exam.value.status_code == 404


def test_get_questions_reads_requested_paper(subject_doc):
    repo = InMemorySubjectRepo([subject_doc])
    picked = get_questions("Python", "quiz1", limit=6, repo=repo, rng=random.Random(0))
    assert len(picked) == 6
    assert Counter(q.topic for q in picked) == {"Loops": 2, "Functions": 2, "Strings": 2}


def test_topics_and_terms(subject_doc):
    repo = InMemorySubjectRepo([subject_doc])
    assert list_topics("Python", repo=repo) == ["Loops", "Functions", "Strings", "Sets", "Math"]
    terms = list_terms("Python", repo=repo)
    assert terms.terms == ["Jan 2025", "May 2025"]
    assert [e.value for e in terms.exams] == ["quiz1", "quiz2"]
    assert list_terms("Python", exam="quiz2", topic="Math", repo=repo).terms == ["May 2025"]


def test_merge_papers_dedups_on_text_term_and_exam():
    existing = {"quiz1": [{"question": "Q", "term": "Jan 2025"}]}
    incoming = {
        "quiz1": [{"question": "Q", "term": "Jan 2025"}, {"question": "Q", "term": "May 2025"}],
        "quiz2": [{"question": "Q", "term": "Jan 2025"}],
    }
    merged, added, skipped = merge_papers(existing, incoming)
    assert added == 2
    assert skipped == 1
    assert len(merged["quiz1"]) == 2
    assert len(merged["quiz2"]) == 1
    assert merged["ET"] == []


def test_import_question_bank_detects_types_and_merges():
    repo = InMemorySubjectRepo()
    entries = [
        {"subject": "Stats", "exam": "quiz1", "question": "Mean?", "options": {"A": "1", "B": "2"}, "correctOption": "A", "topic": "Basics", "term": "Jan 2025"},
        {"subject": "Stats", "exam": "quiz1", "question": "Pick two", "options": {"A": "1", "B": "2"}, "correctOption": ["A", "B"], "topic": "Basics", "term": "Jan 2025"},
        {"subject": "Stats", "exam": "ET", "question": "Value?", "correctOption": {"min": 1, "max": 2}, "topic": "Calc", "term": "Jan 2025"},
        {"subject": "Stats", "exam": "final", "question": "Ignored", "correctOption": "A"},
    ]
    report = import_question_bank(entries, repo=repo)
    assert report == {"Stats": {"added": 3, "skipped": 0}}

    stored = repo.find_by_name("Stats")
    types = [q["questionType"] for q in stored["papers"]["quiz1"]] + [stored["papers"]["ET"][0]["questionType"]]
    assert types == ["single", "multiple", "numerical"]
    assert all(q["_id"].startswith("q_") for q in stored["papers"]["quiz1"])

    again = import_question_bank(entries[:1], repo=repo)
    assert again == {"Stats": {"added": 0, "skipped": 1}}
