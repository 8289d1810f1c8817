import pytest
from pydantic import TypeAdapter

from companion.schemas.question import Question
from companion.schemas.result import AnswerStatus
from companion.services.grading_service import classify, grade_answers, marks_for

QUESTION = TypeAdapter(Question)


def _question(**data):
    base = {"question": "Pick", "options": {"A": "a", "B": "b", "C": "c"}, "topic": "T"}
    base.update(data)
    return QUESTION.validate_python(base)


MULTI = _question(questionType="multiple", correctOption=["A", "C"])
RANGE = _question(questionType="numerical", options=None, correctOption={"min": 10, "max": 12})
SINGLE = _question(correctOption="B")


@pytest.mark.parametrize(
    "question,answer,expected",
    [
        (MULTI, ["C", "A"], AnswerStatus.correct),
        (MULTI, ["A"], AnswerStatus.incorrect),
        (MULTI, ["A", "B", "C"], AnswerStatus.incorrect),
        (MULTI, [], AnswerStatus.not_attempted),
        (RANGE, "11", AnswerStatus.correct),
        (RANGE, "10", AnswerStatus.correct),
        (RANGE, 12, AnswerStatus.correct),
        (RANGE, "13", AnswerStatus.incorrect),
        (RANGE, "abc", AnswerStatus.incorrect),
        (RANGE, "   ", AnswerStatus.not_attempted),
        (SINGLE, " b ", AnswerStatus.correct),
        (SINGLE, "A", AnswerStatus.incorrect),
        (SINGLE, None, AnswerStatus.not_attempted),
        (SINGLE, "", AnswerStatus.not_attempted),
    ],
)
def test_classify_table(question, answer, expected):
    assert classify(question, answer) == expected


def test_classify_is_pure():
    assert {classify(MULTI, ["A", "C"]) for _ in range(5)} == {AnswerStatus.correct}


def test_numerical_scalar_uses_string_equality():
    scalar = _question(questionType="numerical", options=None, correctOption=42)
    assert classify(scalar, "42") == AnswerStatus.correct
    assert classify(scalar, 42.0) == AnswerStatus.correct
    assert classify(scalar, "42.5") == AnswerStatus.incorrect


def test_missing_question_type_defaults_to_single():
    legacy = QUESTION.validate_python({"question": "Old", "options": ["x", "y"], "correctOption": ["B"]})
    assert legacy.question_type == "single"
    assert legacy.options == {"A": "x", "B": "y"}
    assert classify(legacy, "b") == AnswerStatus.correct


def test_partially_correct_never_awarded_marks():
    assert marks_for(AnswerStatus.partially_correct) == 0
    assert marks_for(AnswerStatus.correct) == 1


def test_grade_answers_defaults_missing_to_not_attempted():
    graded, score = grade_answers([SINGLE, MULTI, RANGE], {0: "B", 2: "20"})
    assert score == 1
    assert [item.status for item in graded] == ["correct", "not_attempted", "incorrect"]
    assert [item.marks for item in graded] == [1, 0, 0]
    assert graded[1].user_answer is None
