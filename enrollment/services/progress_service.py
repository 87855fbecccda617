"""Course completion percentage and lesson completion records.

progress = round(100 * completed / total), rounded half up, where total
counts the published lessons and quizzes of the course and completed
counts the published lessons the user marked complete plus the distinct
published quizzes the user attempted at least once.  An empty course is
0% complete.

Results are cached per (user, course) for PROGRESS_TTL_SECONDS.  Lesson
completion changes and quiz submissions invalidate one user's entry;
new published content invalidates the whole course.
"""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from enrollment.models.course import Course, Lesson, LessonCompletion
from enrollment.models.principal import Principal
from enrollment.models.purchase import PurchaseStatus
from enrollment.repos.errors import DuplicateKeyError
from enrollment.repos.unit_of_work import Store, UnitOfWork
from enrollment.services.cache import cache_service
from enrollment.services.errors import (
    ConflictError,
    CourseAccessRequiredError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

PROGRESS_TTL_SECONDS = 300


def progress_key(user_id: UUID, course_id: UUID) -> str:
    return f"progress:{course_id}:{user_id}"


def percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # Integer form of floor(100 * completed / total + 0.5).
    return (200 * completed + total) // (2 * total)


async def invalidate(user_id: UUID, course_id: UUID) -> None:
    await cache_service.delete(progress_key(user_id, course_id))


async def invalidate_course(course_id: UUID) -> None:
    """Drop every cached progress value for a course (its total changed)."""
    await cache_service.delete_pattern(f"progress:{course_id}:*")


async def _course(uow: UnitOfWork, course_id: UUID) -> Course:
    course = await uow.content.get_course(course_id)
    if course is None or not course.is_published:
        raise NotFoundError("Course not found")
    return course


async def compute_progress(store: Store, principal: Principal, course_id: UUID) -> int:
    key = progress_key(principal.user_id, course_id)
    cached = await cache_service.get(key)
    if cached is not None:
        return int(cached)

    async with store.transaction() as uow:
        await _course(uow, course_id)
        lessons = await uow.content.list_lessons(course_id)
        quizzes = await uow.content.list_quizzes(course_id)
        done_lessons = await uow.content.completed_lessons(
            principal.user_id, [lesson.id for lesson in lessons]
        )
        done_quizzes = await uow.attempts.attempted_among(
            principal.user_id, [q.id for q in quizzes]
        )

    value = percentage(len(done_lessons) + len(done_quizzes), len(lessons) + len(quizzes))
    await cache_service.set(key, str(value), PROGRESS_TTL_SECONDS)
    return value


async def _completable_lesson(
    uow: UnitOfWork, principal: Principal, course_id: UUID, lesson_id: UUID
) -> Lesson:
    course = await _course(uow, course_id)
    if not course.is_free:
        purchase = await uow.purchases.get_for(principal.user_id, course_id)
        if purchase is None or purchase.status is not PurchaseStatus.ACTIVE:
            raise CourseAccessRequiredError()
    lesson = await uow.content.get_lesson(lesson_id)
    if lesson is None or lesson.course_id != course_id or not lesson.is_published:
        raise NotFoundError("Lesson not found")
    return lesson


async def mark_lesson_complete(
    store: Store, principal: Principal, course_id: UUID, lesson_id: UUID
) -> LessonCompletion:
    """Record completion.  Marking an already completed lesson is a no-op."""
    async with store.transaction() as uow:
        await _completable_lesson(uow, principal, course_id, lesson_id)
        existing = await uow.content.get_completion(principal.user_id, lesson_id)
        if existing is not None:
            return existing
        completion = LessonCompletion(
            user_id=principal.user_id,
            lesson_id=lesson_id,
            completed_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )
        try:
            await uow.content.add_completion(completion)
        except DuplicateKeyError:
            raise ConflictError("Lesson completion already being recorded") from None
    await invalidate(principal.user_id, course_id)
    logger.info("Lesson completed user=%s lesson=%s", principal.user_id, lesson_id)
    return completion


async def unmark_lesson_complete(
    store: Store, principal: Principal, course_id: UUID, lesson_id: UUID
) -> None:
    async with store.transaction() as uow:
        await _completable_lesson(uow, principal, course_id, lesson_id)
        if not await uow.content.delete_completion(principal.user_id, lesson_id):
            raise NotFoundError("Lesson is not marked complete")
    await invalidate(principal.user_id, course_id)
    logger.info("Lesson completion cleared user=%s lesson=%s", principal.user_id, lesson_id)
