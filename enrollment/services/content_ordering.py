"""The course sequence: lessons and quizzes merged by position.

Lessons and quizzes keep independent position numbers.  The sequence a
student walks through is the merge of both lists by position, with a
lesson placed before a quiz that shares its position.  Positions are
never renumbered by the merge, so gaps and duplicates are preserved.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from enrollment.models.course import ContentItem, ContentKind, Course, Lesson
from enrollment.models.principal import Principal
from enrollment.models.quiz import Quiz
from enrollment.repos.unit_of_work import Store, UnitOfWork
from enrollment.services.content_service import can_manage, get_managed_course
from enrollment.services.errors import EnrollmentError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ReorderMode(str, Enum):
    ATOMIC = "atomic"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True, slots=True)
class Navigation:
    current: ContentItem
    previous: ContentItem | None
    next: ContentItem | None


@dataclass(frozen=True, slots=True)
class ReorderEntry:
    kind: ContentKind
    id: UUID
    position: int


@dataclass(frozen=True, slots=True)
class ReorderFailure:
    entry: ReorderEntry
    code: str


@dataclass(slots=True)
class ReorderResult:
    applied: list[ReorderEntry] = field(default_factory=list)
    failed: list[ReorderFailure] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def merge_content(
    lessons: Sequence[Lesson], quizzes: Sequence[Quiz]
) -> list[ContentItem]:
    lesson_items = [
        ContentItem(ContentKind.LESSON, lesson.id, lesson.position, lesson.title)
        for lesson in sorted(lessons, key=lambda x: (x.position, x.id))
    ]
    quiz_items = [
        ContentItem(ContentKind.QUIZ, quiz.id, quiz.position, quiz.title)
        for quiz in sorted(quizzes, key=lambda x: (x.position, x.id))
    ]
    # sorted() is stable: lessons come first in the input, so they win ties.
    return sorted(lesson_items + quiz_items, key=lambda item: item.position)


def locate(items: Sequence[ContentItem], kind: ContentKind, item_id: UUID) -> Navigation:
    for i, item in enumerate(items):
        if item.kind is kind and item.id == item_id:
            return Navigation(
                current=item,
                previous=items[i - 1] if i > 0 else None,
                next=items[i + 1] if i + 1 < len(items) else None,
            )
    raise NotFoundError("Content item not found")


# ---------------------------------------------------------------------------
# Store-backed operations
# ---------------------------------------------------------------------------


async def _visible_course(
    uow: UnitOfWork, principal: Principal, course_id: UUID
) -> Course:
    course = await uow.content.get_course(course_id)
    if course is None or not (course.is_published or can_manage(principal, course)):
        raise NotFoundError("Course not found")
    return course


async def ordered_content(
    store: Store, principal: Principal, course_id: UUID
) -> list[ContentItem]:
    """Published lessons and quizzes of a course in walking order."""
    async with store.transaction() as uow:
        await _visible_course(uow, principal, course_id)
        lessons = await uow.content.list_lessons(course_id)
        quizzes = await uow.content.list_quizzes(course_id)
    return merge_content(lessons, quizzes)


async def navigation(
    store: Store,
    principal: Principal,
    course_id: UUID,
    kind: ContentKind,
    item_id: UUID,
) -> Navigation:
    items = await ordered_content(store, principal, course_id)
    return locate(items, kind, item_id)


def _validate_entries(entries: Sequence[ReorderEntry]) -> None:
    if not entries:
        raise ValidationError("Nothing to reorder")
    seen: set[tuple[ContentKind, UUID]] = set()
    for e in entries:
        if e.position < 0:
            raise ValidationError("Positions must not be negative")
        key = (e.kind, e.id)
        if key in seen:
            raise ValidationError(f"{e.kind.value} {e.id} listed more than once")
        seen.add(key)


async def reorder(
    store: Store,
    principal: Principal,
    course_id: UUID,
    entries: Sequence[ReorderEntry],
    mode: ReorderMode = ReorderMode.ATOMIC,
) -> ReorderResult:
    """Assign new positions to lessons and quizzes of one course.

    ATOMIC applies every entry in one transaction; an entry naming an
    unknown item, or an item of another course, aborts the batch with
    NOT_FOUND and nothing changes.  BEST_EFFORT applies each entry in its
    own transaction and reports which entries failed.
    """
    _validate_entries(entries)
    result = ReorderResult()

    if mode is ReorderMode.ATOMIC:
        async with store.transaction() as uow:
            await get_managed_course(uow, principal, course_id)
            for e in entries:
                if not await uow.content.set_position(e.kind, e.id, course_id, e.position):
                    logger.warning(
                        "Reorder aborted course=%s unknown %s=%s",
                        course_id,
                        e.kind.value,
                        e.id,
                    )
                    raise NotFoundError(f"{e.kind.value.capitalize()} not found")
                result.applied.append(e)
        logger.info("Reordered course=%s items=%d", course_id, len(result.applied))
        return result

    async with store.transaction() as uow:
        await get_managed_course(uow, principal, course_id)
    for e in entries:
        try:
            async with store.transaction() as uow:
                if not await uow.content.set_position(
                    e.kind, e.id, course_id, e.position
                ):
                    raise NotFoundError(f"{e.kind.value.capitalize()} not found")
        except EnrollmentError as exc:
            result.failed.append(ReorderFailure(entry=e, code=exc.code))
            continue
        result.applied.append(e)

    logger.info(
        "Reordered course=%s applied=%d failed=%d",
        course_id,
        len(result.applied),
        len(result.failed),
    )
    return result
