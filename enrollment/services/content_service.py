"""Minimal content authoring: courses, lessons and quizzes with questions.

Just enough to populate a course end to end.  Editing, deleting and
publishing workflows live in the platform's content tools.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from enrollment.models.course import Course, Lesson
from enrollment.models.principal import Capability, Principal
from enrollment.models.quiz import Question, QuestionType, Quiz
from enrollment.repos.unit_of_work import Store, UnitOfWork
from enrollment.services import progress_service
from enrollment.services.errors import ForbiddenError, NotFoundError, ValidationError
from enrollment.services.quiz_options import stringify_options, validate_options

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuestionDraft:
    text: str
    type: QuestionType
    correct_answer: str
    points: int = 1
    options: list[str] | None = None


def can_manage(principal: Principal, course: Course) -> bool:
    if principal.can(Capability.MANAGE_ANY_COURSE):
        return True
    return principal.can(Capability.AUTHOR_CONTENT) and course.owner_id == principal.user_id


async def get_managed_course(
    uow: UnitOfWork, principal: Principal, course_id: UUID
) -> Course:
    course = await uow.content.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if not can_manage(principal, course):
        logger.warning(
            "Course management denied user=%s course=%s", principal.user_id, course_id
        )
        raise ForbiddenError()
    return course


def _require_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise ValidationError("Title must not be blank")
    return title


async def create_course(
    store: Store,
    principal: Principal,
    *,
    title: str,
    price: Decimal = Decimal("0"),
    is_published: bool = False,
) -> Course:
    if not principal.can(Capability.AUTHOR_CONTENT):
        raise ForbiddenError()
    if not price.is_finite() or price < 0:
        raise ValidationError("Price must be zero or positive")
    course = Course.new(
        title=_require_title(title),
        price=price,
        is_published=is_published,
        owner_id=principal.user_id,
    )
    async with store.transaction() as uow:
        await uow.content.add_course(course)
    logger.info("Course created user=%s course=%s", principal.user_id, course.id)
    return course


async def add_lesson(
    store: Store,
    principal: Principal,
    course_id: UUID,
    *,
    title: str,
    position: int,
    is_published: bool = False,
) -> Lesson:
    title = _require_title(title)
    async with store.transaction() as uow:
        await get_managed_course(uow, principal, course_id)
        lesson = Lesson.new(
            course_id=course_id,
            title=title,
            position=position,
            is_published=is_published,
        )
        await uow.content.add_lesson(lesson)
    if is_published:
        await progress_service.invalidate_course(course_id)
    logger.info("Lesson added course=%s lesson=%s", course_id, lesson.id)
    return lesson


def _build_questions(quiz_id: UUID, drafts: list[QuestionDraft]) -> list[Question]:
    questions = []
    for position, d in enumerate(drafts):
        if not d.text.strip():
            raise ValidationError(f"Question {position + 1} text must not be blank")
        if d.points < 1:
            raise ValidationError(f"Question {position + 1} points must be positive")
        options = None
        if d.type is QuestionType.MULTIPLE_CHOICE:
            options = stringify_options(validate_options(d.options))
            if d.correct_answer.strip() not in [o.strip() for o in d.options or []]:
                raise ValidationError(
                    f"Question {position + 1} correct answer must be one of the options"
                )
        questions.append(
            Question.new(
                quiz_id=quiz_id,
                text=d.text,
                type=d.type,
                correct_answer=d.correct_answer,
                points=d.points,
                position=position,
                options=options,
            )
        )
    return questions


async def add_quiz(
    store: Store,
    principal: Principal,
    course_id: UUID,
    *,
    title: str,
    position: int,
    questions: list[QuestionDraft],
    max_attempts: int = 1,
    description: str = "",
    timer_minutes: int | None = None,
    is_published: bool = False,
) -> tuple[Quiz, list[Question]]:
    """Create a quiz and its questions; question order is the list order."""
    title = _require_title(title)
    if max_attempts < 1:
        raise ValidationError("max_attempts must be >= 1")
    if timer_minutes is not None and timer_minutes < 1:
        raise ValidationError("timer_minutes must be positive")
    if not questions:
        raise ValidationError("A quiz needs at least one question")

    async with store.transaction() as uow:
        await get_managed_course(uow, principal, course_id)
        quiz = Quiz.new(
            course_id=course_id,
            title=title,
            position=position,
            max_attempts=max_attempts,
            description=description,
            timer_minutes=timer_minutes,
            is_published=is_published,
        )
        built = _build_questions(quiz.id, questions)
        await uow.content.add_quiz(quiz, built)
    if is_published:
        await progress_service.invalidate_course(course_id)
    logger.info(
        "Quiz added course=%s quiz=%s questions=%d", course_id, quiz.id, len(built)
    )
    return quiz, built
