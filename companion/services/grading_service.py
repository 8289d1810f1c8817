from typing import Dict, List, Sequence, Tuple

from companion.schemas.question import MultipleChoiceQuestion, NumericalQuestion, NumericRange, Question
from companion.schemas.result import AnswerStatus, AnsweredQuestion, UserAnswer


def is_blank(answer: UserAnswer) -> bool:
    if answer is None:
        return True
    if isinstance(answer, list):
        return len(answer) == 0
    if isinstance(answer, str):
        return answer.strip() == ""
    return False


def _normalize(value) -> str:
    return str(value).strip().lower()


def _as_float(value) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return float(str(value).strip())


def classify(question: Question, answer: UserAnswer) -> AnswerStatus:
    """Status of ``answer`` against ``question``; pure and never partial."""

    if is_blank(answer):
        return AnswerStatus.not_attempted

    if isinstance(question, MultipleChoiceQuestion):
        submitted = answer if isinstance(answer, list) else [answer]
        if {_normalize(item) for item in submitted} == {_normalize(item) for item in question.correct_option}:
            return AnswerStatus.correct
        return AnswerStatus.incorrect

    if isinstance(question, NumericalQuestion) and isinstance(question.correct_option, NumericRange):
        try:
            value = _as_float(answer)
        except (TypeError, ValueError):
            return AnswerStatus.incorrect
        if question.correct_option.min <= value <= question.correct_option.max:
            return AnswerStatus.correct
        return AnswerStatus.incorrect

    # single choice, and numerical with a scalar key
    if isinstance(answer, list):
        return AnswerStatus.incorrect
    if _normalize(_scalar_key(answer)) == _normalize(_scalar_key(question.correct_option)):
        return AnswerStatus.correct
    return AnswerStatus.incorrect


def _scalar_key(value) -> str:
    # 12.0 and "12" must compare equal
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def marks_for(status: AnswerStatus) -> int:
    return 1 if status == AnswerStatus.correct else 0


def grade_answers(
    questions: Sequence[Question], answers: Dict[int, UserAnswer]
) -> Tuple[List[AnsweredQuestion], int]:
    """Classify every question by position; missing answers are not attempted."""

    graded: List[AnsweredQuestion] = []
    score = 0
    for index, question in enumerate(questions):
        answer = answers.get(index)
        status = classify(question, answer)
        marks = marks_for(status)
        score += marks
        graded.append(
            AnsweredQuestion(
                question_id=question.id,
                user_answer=None if is_blank(answer) else answer,
                status=status,
                marks=marks,
                topic=question.topic or "",
            )
        )
    return graded, score
