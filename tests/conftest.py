import os

# Settings are read at import time by the app module
os.environ.setdefault("TOKEN_SALT", "test-salt")

from datetime import datetime  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from companion.core.config import get_settings  # noqa: E402
from companion.services.ai_service import GeminiClient  # noqa: E402


def _q(qid: str, topic: str, term: str = "Jan 2025", **extra: Any) -> Dict[str, Any]:
    doc = {
        "_id": qid,
        "question": f"Question {qid}",
        "options": {"A": "one", "B": "two", "C": "three", "D": "four"},
        "correctOption": "A",
        "questionType": "single",
        "topic": topic,
        "term": term,
        "explanation": f"Because {qid}",
    }
    doc.update(extra)
    return doc


def build_subject_doc() -> Dict[str, Any]:
    quiz1: List[Dict[str, Any]] = []
    for topic in ("Loops", "Functions", "Strings"):
        for idx in range(6):
            quiz1.append(_q(f"q1-{topic.lower()}-{idx}", topic))
    quiz2 = [
        _q("q2-mc", "Sets", questionType="multiple", correctOption=["A", "C"]),
        _q("q2-num", "Math", term="May 2025", options=None, questionType="numerical", correctOption={"min": 10, "max": 12}),
        _q("q2-scalar", "Math", term="May 2025", options=None, questionType="numerical", correctOption=42),
    ]
    return {"_id": "sub_python", "subjectName": "Python", "papers": {"quiz1": quiz1, "quiz2": quiz2, "ET": []}}


@pytest.fixture(autouse=True)
def reset_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def subject_doc() -> Dict[str, Any]:
    return build_subject_doc()


class FakeClock:
    """Manually advanced clock for session and token timing."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        from datetime import timedelta

        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 9, 0, 0))


ANALYSIS = {
    "summary": {"title": "Steady start", "short_description": "Solid basics", "behavioral_insight": "Paced well"},
    "weak_areas": [{"topic": "Strings", "sub_concept": "slicing", "correction": "Review slice bounds"}],
    "study_plan": [{"day": "Day 1", "tasks": ["Practice slicing"], "search_terms": ["python slice notation"]}],
}


class FakeAIClient(GeminiClient):
    """Records prompts and returns canned responses instead of calling Gemini."""

    def __init__(self, text: str = "# Guide\n\nKnow your `for` loops.", analysis: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(api_key="fake-key")
        self.text = text
        self.analysis = analysis if analysis is not None else ANALYSIS
        self.prompts: List[str] = []

    def generate_text(self, prompt: str, model: str) -> str:
        self.prompts.append(prompt)
        return self.text

    def generate_json(self, prompt: str, model: str) -> Dict[str, Any]:
        self.prompts.append(prompt)
        return self.analysis


@pytest.fixture
def ai_client() -> FakeAIClient:
    return FakeAIClient()
