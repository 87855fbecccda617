"""Content authoring endpoints: create a course, add lessons and quizzes."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from enrollment.api.balance import as_money
from enrollment.api.dependencies import get_store, require_capability
from enrollment.api.errors import to_http_exception
from enrollment.models.principal import Capability, Principal
from enrollment.models.quiz import QuestionType
from enrollment.repos.unit_of_work import Store
from enrollment.services import content_service
from enrollment.services.content_service import QuestionDraft
from enrollment.services.errors import EnrollmentError
from enrollment.services.quiz_options import options_list

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])

_Author = Annotated[Principal, Depends(require_capability(Capability.AUTHOR_CONTENT))]


class CourseIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    price: Decimal = Decimal("0")
    is_published: bool = False


class CourseOut(BaseModel):
    id: UUID
    title: str
    price: Decimal
    is_published: bool
    owner_id: UUID | None


class LessonIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    position: int
    is_published: bool = False


class LessonOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    position: int
    is_published: bool


class QuestionIn(BaseModel):
    text: str
    type: QuestionType
    correct_answer: str
    points: int = 1
    options: list[str] | None = None


class QuizIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    position: int
    description: str = ""
    max_attempts: int = 1
    timer_minutes: int | None = None
    is_published: bool = False
    questions: list[QuestionIn]


class AuthoredQuestionOut(BaseModel):
    id: UUID
    text: str
    type: QuestionType
    options: list[str]
    correct_answer: str
    points: int
    position: int


class QuizOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    position: int
    max_attempts: int
    timer_minutes: int | None
    is_published: bool
    questions: list[AuthoredQuestionOut]


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseIn,
    principal: _Author,
    store: Annotated[Store, Depends(get_store)],
) -> CourseOut:
    try:
        course = await content_service.create_course(
            store,
            principal,
            title=payload.title,
            price=payload.price,
            is_published=payload.is_published,
        )
    except EnrollmentError as e:
        logger.warning("Course creation rejected user=%s: %s", principal.user_id, e.message)
        raise to_http_exception(e) from None
    return CourseOut(
        id=course.id,
        title=course.title,
        price=as_money(course.price),
        is_published=course.is_published,
        owner_id=course.owner_id,
    )


@router.post(
    "/{course_id}/lessons", response_model=LessonOut, status_code=status.HTTP_201_CREATED
)
async def add_lesson(
    course_id: UUID,
    payload: LessonIn,
    principal: _Author,
    store: Annotated[Store, Depends(get_store)],
) -> LessonOut:
    try:
        lesson = await content_service.add_lesson(
            store,
            principal,
            course_id,
            title=payload.title,
            position=payload.position,
            is_published=payload.is_published,
        )
    except EnrollmentError as e:
        logger.warning(
            "Lesson rejected user=%s course=%s: %s",
            principal.user_id,
            course_id,
            e.message,
        )
        raise to_http_exception(e) from None
    return LessonOut(
        id=lesson.id,
        course_id=lesson.course_id,
        title=lesson.title,
        position=lesson.position,
        is_published=lesson.is_published,
    )


@router.post(
    "/{course_id}/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED
)
async def add_quiz(
    course_id: UUID,
    payload: QuizIn,
    principal: _Author,
    store: Annotated[Store, Depends(get_store)],
) -> QuizOut:
    drafts = [
        QuestionDraft(
            text=q.text,
            type=q.type,
            correct_answer=q.correct_answer,
            points=q.points,
            options=q.options,
        )
        for q in payload.questions
    ]
    try:
        quiz, questions = await content_service.add_quiz(
            store,
            principal,
            course_id,
            title=payload.title,
            position=payload.position,
            questions=drafts,
            max_attempts=payload.max_attempts,
            description=payload.description,
            timer_minutes=payload.timer_minutes,
            is_published=payload.is_published,
        )
    except EnrollmentError as e:
        logger.warning(
            "Quiz rejected user=%s course=%s: %s",
            principal.user_id,
            course_id,
            e.message,
        )
        raise to_http_exception(e) from None
    return QuizOut(
        id=quiz.id,
        course_id=quiz.course_id,
        title=quiz.title,
        position=quiz.position,
        max_attempts=quiz.max_attempts,
        timer_minutes=quiz.timer_minutes,
        is_published=quiz.is_published,
        questions=[
            AuthoredQuestionOut(
                id=q.id,
                text=q.text,
                type=q.type,
                options=options_list(q.options),
                correct_answer=q.correct_answer,
                points=q.points,
                position=q.position,
            )
            for q in questions
        ],
    )
