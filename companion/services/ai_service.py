"""
Gemini-backed performance analysis for stored quiz results.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from pydantic import ValidationError as SchemaError

from companion.core.config import get_settings
from companion.core.errors import UpstreamError
from companion.db.results_repo import ResultRepo
from companion.db.subjects_repo import SubjectRepo
from companion.schemas.result import AIAnalysis, QuizResultDetail
from companion.services import result_service

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """You are a Senior Technical Mentor and Quiz Performance Analyst. Provide deep, actionable insights that go beyond surface-level advice.

ANALYSIS GUIDELINES:
1. Behavioral pattern: weigh speed against accuracy. A short time together with a low score (under 50%) points to rushing rather than missing knowledge.
2. Concept gaps: for each wrong answer compare the user's answer to the correct one and name the exact misconception, not just the topic.
3. Question context: use the question text to explain the logic the user failed to apply.
4. Study plan: a 3-5 day timeline with concrete tasks and exact Google search queries.

Return ONLY valid JSON with this structure:
{
  "summary": {"title": "...", "short_description": "...", "behavioral_insight": "..."},
  "weak_areas": [{"topic": "...", "sub_concept": "...", "correction": "..."}],
  "study_plan": [{"day": "Day 1", "tasks": ["..."], "search_terms": ["..."]}]
}"""


class GeminiClient:
    """Thin wrapper over google-generativeai used by analysis and study guides."""

    def __init__(self, api_key: Optional[str] = None) -> None:
        self.api_key = api_key or get_settings().gemini_api_key
        self._configured = False

    def _model(self, name: str, **kwargs: Any) -> genai.GenerativeModel:
        if not self.api_key:
            raise UpstreamError("AI service is not configured")
        if not self._configured:
            genai.configure(api_key=self.api_key)
            self._configured = True
        return genai.GenerativeModel(name, **kwargs)

    def generate_text(self, prompt: str, model: str) -> str:
        generative = self._model(model)
        try:
            response = generative.generate_content(prompt)
            return response.text
        except Exception as exc:
            logger.error("Gemini generation failed (%s): %s", model, exc)
            raise UpstreamError("AI generation failed") from exc

    def generate_json(self, prompt: str, model: str) -> Dict[str, Any]:
        generative = self._model(
            model, generation_config=genai.GenerationConfig(response_mime_type="application/json")
        )
        try:
            response = generative.generate_content(prompt)
            return json.loads(_strip_fences(response.text))
        except ValueError as exc:
            logger.error("Gemini returned malformed JSON (%s): %s", model, exc)
            raise UpstreamError("AI returned an invalid response") from exc
        except Exception as exc:
            logger.error("Gemini generation failed (%s): %s", model, exc)
            raise UpstreamError("AI generation failed") from exc


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        return text[7:-3].strip()
    if text.startswith("```"):
        return text[3:-3].strip()
    return text


def get_ai_client() -> GeminiClient:
    return GeminiClient()


def topic_performance(detail: QuizResultDetail) -> Dict[str, Dict[str, int]]:
    performance: Dict[str, Dict[str, int]] = {}
    for answered in detail.questions:
        entry = performance.setdefault(answered.topic or "General", {"correct": 0, "total": 0})
        entry["total"] += 1
        if answered.status == "correct":
            entry["correct"] += 1
    return performance


def build_analysis_prompt(detail: QuizResultDetail, time_taken: Optional[str] = None) -> str:
    total = detail.total_questions or len(detail.questions)
    percent = detail.score / total * 100 if total else 0.0
    questions: List[Dict[str, Any]] = [
        {
            "number": idx + 1,
            "topic": answered.topic,
            "questionText": answered.question or "N/A",
            "userAnswer": answered.user_answer if answered.user_answer is not None else "Not answered",
            "correctAnswer": answered.correct_option if answered.correct_option is not None else "N/A",
            "status": answered.status,
        }
        for idx, answered in enumerate(detail.questions)
    ]
    return (
        f"{ANALYSIS_PROMPT}\n\n"
        "QUIZ PERFORMANCE DATA:\n"
        f"- Subject: {detail.subject} ({detail.exam or 'practice'})\n"
        f"- Score: {detail.score}/{total} ({percent:.1f}%)\n"
        f"- Time Taken: {time_taken or f'{detail.time_taken}s'}\n"
        f"- Topic Performance: {json.dumps(topic_performance(detail), indent=2)}\n\n"
        "DETAILED QUESTIONS:\n"
        f"{json.dumps(questions, indent=2, default=str)}\n"
    )


def analyze_result(
    result_id: str,
    user_id: str,
    time_taken: Optional[str] = None,
    client: Optional[GeminiClient] = None,
    repo: Optional[ResultRepo] = None,
    subject_repo: Optional[SubjectRepo] = None,
) -> AIAnalysis:
    """Ask Gemini for an analysis of an owned result and store it on the result."""

    detail = result_service.get_result_detail(result_id, user_id, repo=repo, subject_repo=subject_repo)
    client = client or get_ai_client()
    raw = client.generate_json(build_analysis_prompt(detail, time_taken), get_settings().gemini_analysis_model)
    try:
        analysis = AIAnalysis.model_validate(raw)
    except SchemaError as exc:
        logger.error("AI analysis for result %s did not match the expected shape: %s", result_id, exc)
        raise UpstreamError("AI returned an invalid response") from exc
    result_service.attach_analysis(result_id, analysis.model_dump(), repo=repo)
    logger.info("Stored AI analysis for result %s", result_id)
    return analysis
