"""Quiz scoring.

``grade`` is a pure function of the quiz questions and the submitted
answers: no store access, no clock.  The quiz service calls it inside the
transaction that records the attempt.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from enrollment.models.quiz import Answer, Question, QuestionType
from enrollment.services.errors import ValidationError
from enrollment.services.quiz_options import options_list


@dataclass(frozen=True, slots=True)
class SubmittedAnswer:
    question_id: UUID
    answer: str


@dataclass(frozen=True, slots=True)
class GradeResult:
    score: int
    total_points: int
    percentage: float
    answers: tuple[Answer, ...]


def check_unique_questions(answers: Sequence[SubmittedAnswer]) -> None:
    seen: set[UUID] = set()
    for a in answers:
        if a.question_id in seen:
            raise ValidationError(f"Duplicate answer for question {a.question_id}")
        seen.add(a.question_id)


def is_correct(question: Question, answer: str) -> bool:
    correct = question.correct_answer
    if question.type is QuestionType.MULTIPLE_CHOICE:
        # The stored answer must still be one of the options.
        options = [o.strip() for o in options_list(question.options)]
        return answer.strip() == correct.strip() and correct.strip() in options
    if question.type is QuestionType.TRUE_FALSE:
        return answer.lower() == correct.lower()
    return answer.strip().lower() == correct.strip().lower()


def grade(
    questions: Sequence[Question], answers: Sequence[SubmittedAnswer]
) -> GradeResult:
    check_unique_questions(answers)
    by_question = {a.question_id: a.answer for a in answers}

    score = 0
    total_points = 0
    graded: list[Answer] = []
    for question in sorted(questions, key=lambda q: q.position):
        total_points += question.points
        given = by_question.get(question.id, "")
        ok = is_correct(question, given)
        earned = question.points if ok else 0
        score += earned
        graded.append(
            Answer(
                question_id=question.id,
                student_answer=given,
                correct_answer=question.correct_answer,
                is_correct=ok,
                points_earned=earned,
            )
        )

    percentage = (score / total_points) * 100 if total_points > 0 else 0.0
    return GradeResult(
        score=score,
        total_points=total_points,
        percentage=percentage,
        answers=tuple(graded),
    )
