"""Quiz attempt engine.

Per (student, quiz) the attempt count only grows: attempt N+1 may start
while N < max_attempts, and each submission is graded and stored as an
immutable attempt numbered by the server.  The ceiling is checked when
the quiz is fetched and again inside the transaction that stores the
attempt; the unique (student, quiz, attempt_number) key turns the loser
of two concurrent submissions into a CONFLICT.

Every quiz operation requires an ACTIVE purchase of the course.  Access
is checked before the quiz is looked up, so callers without access
cannot probe which quiz ids exist.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID, uuid4

from enrollment.core.metrics import QUIZ_SUBMISSIONS
from enrollment.models.principal import Capability, Principal
from enrollment.models.purchase import PurchaseStatus
from enrollment.models.quiz import Question, QuestionType, Quiz, QuizAttempt
from enrollment.repos.errors import DuplicateKeyError
from enrollment.repos.unit_of_work import Store, UnitOfWork
from enrollment.services import progress_service
from enrollment.services.errors import (
    ConflictError,
    CourseAccessRequiredError,
    EnrollmentError,
    ForbiddenError,
    MaxAttemptsReachedError,
    NotFoundError,
)
from enrollment.services.grading import SubmittedAnswer, check_unique_questions, grade
from enrollment.services.quiz_options import options_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuestionView:
    """A question as shown to the student: no correct answer."""

    id: UUID
    text: str
    type: QuestionType
    options: list[str]
    points: int
    position: int


@dataclass(frozen=True, slots=True)
class QuizView:
    quiz: Quiz
    questions: list[QuestionView]
    current_attempt: int
    max_attempts: int
    previous_attempts: int


@dataclass(frozen=True, slots=True)
class AttemptResult:
    quiz: Quiz
    attempt: QuizAttempt
    questions: list[Question]


def _view(q: Question) -> QuestionView:
    return QuestionView(
        id=q.id,
        text=q.text,
        type=q.type,
        options=options_list(q.options),
        points=q.points,
        position=q.position,
    )


async def _require_access(uow: UnitOfWork, user_id: UUID, course_id: UUID) -> None:
    purchase = await uow.purchases.get_for(user_id, course_id)
    if purchase is None or purchase.status is not PurchaseStatus.ACTIVE:
        raise CourseAccessRequiredError()


async def _course_quiz(
    uow: UnitOfWork, course_id: UUID, quiz_id: UUID, *, published: bool = True
) -> Quiz:
    quiz = await uow.content.get_quiz(quiz_id)
    if quiz is None or quiz.course_id != course_id:
        raise NotFoundError("Quiz not found")
    if published and not quiz.is_published:
        raise NotFoundError("Quiz not found")
    return quiz


async def fetch_for_attempt(
    store: Store, principal: Principal, course_id: UUID, quiz_id: UUID
) -> QuizView:
    async with store.transaction() as uow:
        await _require_access(uow, principal.user_id, course_id)
        quiz = await _course_quiz(uow, course_id, quiz_id)
        previous = await uow.attempts.count(principal.user_id, quiz_id)
        if previous >= quiz.max_attempts:
            raise MaxAttemptsReachedError()
        questions = await uow.content.list_questions(quiz_id)
    return QuizView(
        quiz=quiz,
        questions=[_view(q) for q in questions],
        current_attempt=previous + 1,
        max_attempts=quiz.max_attempts,
        previous_attempts=previous,
    )


async def submit(
    store: Store,
    principal: Principal,
    course_id: UUID,
    quiz_id: UUID,
    answers: Sequence[SubmittedAnswer],
) -> QuizAttempt:
    try:
        check_unique_questions(answers)
        async with store.transaction() as uow:
            await _require_access(uow, principal.user_id, course_id)
            quiz = await _course_quiz(uow, course_id, quiz_id)
            previous = await uow.attempts.count(principal.user_id, quiz_id)
            if previous >= quiz.max_attempts:
                raise MaxAttemptsReachedError()

            result = grade(await uow.content.list_questions(quiz_id), answers)
            attempt = QuizAttempt(
                id=uuid4(),
                student_id=principal.user_id,
                quiz_id=quiz_id,
                attempt_number=previous + 1,
                score=result.score,
                total_points=result.total_points,
                percentage=result.percentage,
                created_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
                answers=result.answers,
            )
            try:
                await uow.attempts.add(attempt)
            except DuplicateKeyError:
                raise ConflictError("Attempt already submitted") from None
    except EnrollmentError as e:
        QUIZ_SUBMISSIONS.labels(outcome=e.code).inc()
        logger.warning(
            "Submission rejected user=%s quiz=%s code=%s",
            principal.user_id,
            quiz_id,
            e.code,
        )
        raise

    QUIZ_SUBMISSIONS.labels(outcome="graded").inc()
    await progress_service.invalidate(principal.user_id, course_id)
    logger.info(
        "Quiz graded user=%s quiz=%s attempt=%d score=%d/%d",
        principal.user_id,
        quiz_id,
        attempt.attempt_number,
        attempt.score,
        attempt.total_points,
        extra={"course_id": str(course_id), "quiz_id": str(quiz_id)},
    )
    return attempt


async def latest_result(
    store: Store, principal: Principal, course_id: UUID, quiz_id: UUID
) -> AttemptResult:
    async with store.transaction() as uow:
        await _require_access(uow, principal.user_id, course_id)
        quiz = await _course_quiz(uow, course_id, quiz_id, published=False)
        attempt = await uow.attempts.latest(principal.user_id, quiz_id)
        if attempt is None:
            raise NotFoundError("No attempts for this quiz")
        questions = await uow.content.list_questions(quiz_id)
    return AttemptResult(quiz=quiz, attempt=attempt, questions=questions)


async def list_attempts(
    store: Store, principal: Principal, course_id: UUID, quiz_id: UUID
) -> list[QuizAttempt]:
    """All attempts at a quiz, newest first.  TEACHER and ADMIN only."""
    if not principal.can(Capability.VIEW_RESULTS):
        raise ForbiddenError()
    async with store.transaction() as uow:
        await _course_quiz(uow, course_id, quiz_id, published=False)
        return await uow.attempts.list_for_quiz(quiz_id)
