"""Quiz attempt endpoints."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from enrollment.api.dependencies import get_store, require_capability, require_user
from enrollment.api.errors import to_http_exception
from enrollment.models.principal import Capability, Principal
from enrollment.models.quiz import QuestionType, QuizAttempt
from enrollment.repos.unit_of_work import Store
from enrollment.services import quiz_service
from enrollment.services.errors import EnrollmentError
from enrollment.services.grading import SubmittedAnswer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses/{course_id}/quizzes", tags=["quizzes"])


class QuestionOut(BaseModel):
    id: UUID
    text: str
    type: QuestionType
    options: list[str]
    points: int
    position: int


class QuizForAttemptOut(BaseModel):
    id: UUID
    title: str
    description: str
    timer_minutes: int | None
    questions: list[QuestionOut]
    current_attempt: int
    max_attempts: int
    previous_attempts: int


class AnswerIn(BaseModel):
    question_id: UUID
    answer: str = ""


class SubmitIn(BaseModel):
    answers: list[AnswerIn]


class GradedAnswerOut(BaseModel):
    question_id: UUID
    question_text: str | None = None
    student_answer: str
    correct_answer: str
    is_correct: bool
    points_earned: int


class AttemptOut(BaseModel):
    id: UUID
    student_id: UUID
    quiz_id: UUID
    attempt_number: int
    score: int
    total_points: int
    percentage: float
    created_at: int
    answers: list[GradedAnswerOut]


def _attempt_out(a: QuizAttempt, texts: dict[UUID, str] | None = None) -> AttemptOut:
    texts = texts or {}
    return AttemptOut(
        id=a.id,
        student_id=a.student_id,
        quiz_id=a.quiz_id,
        attempt_number=a.attempt_number,
        score=a.score,
        total_points=a.total_points,
        percentage=a.percentage,
        created_at=a.created_at,
        answers=[
            GradedAnswerOut(
                question_id=ans.question_id,
                question_text=texts.get(ans.question_id),
                student_answer=ans.student_answer,
                correct_answer=ans.correct_answer,
                is_correct=ans.is_correct,
                points_earned=ans.points_earned,
            )
            for ans in a.answers
        ],
    )


@router.get("/{quiz_id}", response_model=QuizForAttemptOut)
async def get_quiz(
    course_id: UUID,
    quiz_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> QuizForAttemptOut:
    try:
        view = await quiz_service.fetch_for_attempt(store, principal, course_id, quiz_id)
    except EnrollmentError as e:
        logger.warning(
            "Quiz fetch rejected user=%s quiz=%s code=%s",
            principal.user_id,
            quiz_id,
            e.code,
        )
        raise to_http_exception(e) from None
    return QuizForAttemptOut(
        id=view.quiz.id,
        title=view.quiz.title,
        description=view.quiz.description,
        timer_minutes=view.quiz.timer_minutes,
        questions=[
            QuestionOut(
                id=q.id,
                text=q.text,
                type=q.type,
                options=q.options,
                points=q.points,
                position=q.position,
            )
            for q in view.questions
        ],
        current_attempt=view.current_attempt,
        max_attempts=view.max_attempts,
        previous_attempts=view.previous_attempts,
    )


@router.post(
    "/{quiz_id}/submit", response_model=AttemptOut, status_code=status.HTTP_201_CREATED
)
async def submit_quiz(
    course_id: UUID,
    quiz_id: UUID,
    payload: SubmitIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> AttemptOut:
    answers = [SubmittedAnswer(a.question_id, a.answer) for a in payload.answers]
    try:
        attempt = await quiz_service.submit(store, principal, course_id, quiz_id, answers)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return _attempt_out(attempt)


@router.get("/{quiz_id}/result", response_model=AttemptOut)
async def get_result(
    course_id: UUID,
    quiz_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> AttemptOut:
    try:
        result = await quiz_service.latest_result(store, principal, course_id, quiz_id)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return _attempt_out(result.attempt, {q.id: q.text for q in result.questions})


@router.get("/{quiz_id}/attempts", response_model=list[AttemptOut])
async def list_attempts(
    course_id: UUID,
    quiz_id: UUID,
    principal: Annotated[Principal, Depends(require_capability(Capability.VIEW_RESULTS))],
    store: Annotated[Store, Depends(get_store)],
) -> list[AttemptOut]:
    try:
        attempts = await quiz_service.list_attempts(store, principal, course_id, quiz_id)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return [_attempt_out(a) for a in attempts]
