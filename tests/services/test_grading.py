from __future__ import annotations

from uuid import uuid4

import pytest

from enrollment.models.quiz import Question, QuestionType
from enrollment.services.errors import ValidationError
from enrollment.services.grading import SubmittedAnswer, grade, is_correct
from enrollment.services.quiz_options import stringify_options

QUIZ_ID = uuid4()


def _question(
    type: QuestionType,
    correct: str,
    *,
    points: int = 10,
    position: int = 0,
    options: list[str] | None = None,
) -> Question:
    return Question.new(
        quiz_id=QUIZ_ID,
        text=f"Q{position}",
        type=type,
        correct_answer=correct,
        points=points,
        position=position,
        options=stringify_options(options),
    )


# ---- is_correct per question type ----


def test_multiple_choice_exact_after_trim() -> None:
    q = _question(QuestionType.MULTIPLE_CHOICE, "Blue", options=["Red", "Blue"])
    assert is_correct(q, " Blue ")
    assert not is_correct(q, "blue")


def test_multiple_choice_answer_must_still_be_an_option() -> None:
    q = _question(QuestionType.MULTIPLE_CHOICE, "Purple", options=["Red", "Blue"])
    assert not is_correct(q, "Purple")


def test_multiple_choice_reads_legacy_options() -> None:
    q = Question.new(
        quiz_id=QUIZ_ID,
        text="Pick",
        type=QuestionType.MULTIPLE_CHOICE,
        correct_answer="B",
        points=1,
        position=0,
        options="[A, B, C]",
    )
    assert is_correct(q, "B")


def test_true_false_ignores_case_only() -> None:
    q = _question(QuestionType.TRUE_FALSE, "True")
    assert is_correct(q, "true")
    assert is_correct(q, "TRUE")
    assert not is_correct(q, " true")


def test_short_answer_ignores_case_and_edges() -> None:
    q = _question(QuestionType.SHORT_ANSWER, "Paris")
    assert is_correct(q, "  paris ")
    assert not is_correct(q, "Pariss")


# ---- grade ----


def test_half_right_scores_fifty_percent() -> None:
    q1 = _question(QuestionType.SHORT_ANSWER, "Paris", position=0)
    q2 = _question(QuestionType.SHORT_ANSWER, "Rome", position=1)
    result = grade(
        [q1, q2],
        [SubmittedAnswer(q1.id, "paris"), SubmittedAnswer(q2.id, "Madrid")],
    )
    assert result.score == 10
    assert result.total_points == 20
    assert result.percentage == 50.0
    assert [a.is_correct for a in result.answers] == [True, False]
    assert [a.points_earned for a in result.answers] == [10, 0]


def test_unanswered_question_earns_nothing() -> None:
    q1 = _question(QuestionType.TRUE_FALSE, "False", points=3, position=0)
    q2 = _question(QuestionType.SHORT_ANSWER, "x", points=1, position=1)
    result = grade([q1, q2], [SubmittedAnswer(q1.id, "false")])
    assert result.score == 3
    assert result.total_points == 4
    assert result.answers[1].student_answer == ""
    assert result.percentage == 75.0


def test_answers_follow_question_position() -> None:
    later = _question(QuestionType.SHORT_ANSWER, "b", position=5)
    first = _question(QuestionType.SHORT_ANSWER, "a", position=1)
    result = grade([later, first], [])
    assert [a.question_id for a in result.answers] == [first.id, later.id]


def test_answer_snapshot_keeps_correct_answer() -> None:
    q = _question(QuestionType.SHORT_ANSWER, "Paris")
    result = grade([q], [SubmittedAnswer(q.id, "Lyon")])
    assert result.answers[0].correct_answer == "Paris"
    assert result.answers[0].student_answer == "Lyon"


def test_answers_for_unknown_questions_are_ignored() -> None:
    q = _question(QuestionType.SHORT_ANSWER, "a")
    result = grade([q], [SubmittedAnswer(uuid4(), "a")])
    assert result.score == 0
    assert len(result.answers) == 1


def test_no_questions_is_zero_percent() -> None:
    result = grade([], [])
    assert result.total_points == 0
    assert result.percentage == 0.0


def test_duplicate_answers_rejected() -> None:
    q = _question(QuestionType.SHORT_ANSWER, "a")
    with pytest.raises(ValidationError, match="Duplicate"):
        grade([q], [SubmittedAnswer(q.id, "a"), SubmittedAnswer(q.id, "b")])
