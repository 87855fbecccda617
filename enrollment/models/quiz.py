from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"


@dataclass(frozen=True, slots=True)
class Question:
    id: UUID
    quiz_id: UUID
    text: str
    type: QuestionType
    correct_answer: str
    points: int
    position: int
    options: str | None = None  # serialized list, MULTIPLE_CHOICE only

    @staticmethod
    def new(
        *,
        quiz_id: UUID,
        text: str,
        type: QuestionType,
        correct_answer: str,
        points: int,
        position: int,
        options: str | None = None,
    ) -> Question:
        return Question(
            id=uuid4(),
            quiz_id=quiz_id,
            text=text,
            type=type,
            correct_answer=correct_answer,
            points=points,
            position=position,
            options=options,
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    position: int
    max_attempts: int = 1
    description: str = ""
    timer_minutes: int | None = None
    is_published: bool = False

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        position: int,
        max_attempts: int = 1,
        description: str = "",
        timer_minutes: int | None = None,
        is_published: bool = False,
    ) -> Quiz:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            position=position,
            max_attempts=max_attempts,
            description=description,
            timer_minutes=timer_minutes,
            is_published=is_published,
        )


@dataclass(frozen=True, slots=True)
class Answer:
    question_id: UUID
    student_answer: str
    correct_answer: str  # snapshot at grading time
    is_correct: bool
    points_earned: int


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """One graded submission.  Never modified after creation."""

    id: UUID
    student_id: UUID
    quiz_id: UUID
    attempt_number: int
    score: int
    total_points: int
    percentage: float
    created_at: int
    answers: tuple[Answer, ...] = ()
