from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from enrollment.models.course import Lesson
from enrollment.models.principal import Principal, Role
from enrollment.repos.memory_store import InMemoryStore
from enrollment.services import content_service, progress_service, quiz_service
from enrollment.services.cache import cache_service
from enrollment.services.errors import CourseAccessRequiredError, NotFoundError
from tests.conftest import (
    principal_for,
    seed_account,
    seed_course,
    seed_lesson,
    seed_purchase,
    seed_quiz,
)


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 0, 0), (0, 4, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 200, 1), (3, 3, 100)],
)
def test_percentage_rounds_half_up(completed: int, total: int, expected: int) -> None:
    assert progress_service.percentage(completed, total) == expected


def test_empty_course_is_zero() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store)
        return await progress_service.compute_progress(
            store, principal_for(student), course.id
        )

    assert asyncio.run(scenario()) == 0


def test_lessons_and_quizzes_count_toward_progress() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store, price="0")
        await seed_purchase(store, student.id, course.id)
        l1 = await seed_lesson(store, course.id, 1)
        await seed_lesson(store, course.id, 2)
        await seed_lesson(store, course.id, 3, is_published=False)
        quiz, _ = await seed_quiz(store, course.id, 4, max_attempts=2)
        p = principal_for(student)

        seen = [await progress_service.compute_progress(store, p, course.id)]
        await progress_service.mark_lesson_complete(store, p, course.id, l1.id)
        seen.append(await progress_service.compute_progress(store, p, course.id))
        await quiz_service.submit(store, p, course.id, quiz.id, [])
        seen.append(await progress_service.compute_progress(store, p, course.id))
        # A second attempt at the same quiz adds nothing.
        await quiz_service.submit(store, p, course.id, quiz.id, [])
        seen.append(await progress_service.compute_progress(store, p, course.id))
        await progress_service.unmark_lesson_complete(store, p, course.id, l1.id)
        seen.append(await progress_service.compute_progress(store, p, course.id))
        return seen

    assert asyncio.run(scenario()) == [0, 33, 67, 67, 33]


def test_result_is_cached_until_invalidated() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store)
        lesson = await seed_lesson(store, course.id, 1)
        p = principal_for(student)
        first = await progress_service.compute_progress(store, p, course.id)
        key = progress_service.progress_key(student.id, course.id)
        cached = await cache_service.get(key)

        # Written behind the service's back: the cache still answers.
        async with store.transaction() as uow:
            await uow.content.add_lesson(
                Lesson.new(course_id=course.id, title="extra", position=2, is_published=True)
            )
        stale = await progress_service.compute_progress(store, p, course.id)
        await progress_service.mark_lesson_complete(store, p, course.id, lesson.id)
        fresh = await progress_service.compute_progress(store, p, course.id)
        return first, cached, stale, fresh

    first, cached, stale, fresh = asyncio.run(scenario())
    assert first == 0
    assert cached == "0"
    assert stale == 0
    assert fresh == 50


def test_new_published_content_refreshes_every_learner() -> None:
    async def scenario():
        store = InMemoryStore()
        teacher = Principal(user_id=uuid4(), role=Role.TEACHER)
        course = await seed_course(store, owner_id=teacher.user_id)
        lesson = await seed_lesson(store, course.id, 1)
        learners = [principal_for(await seed_account(store)) for _ in range(2)]
        for p in learners:
            await progress_service.mark_lesson_complete(store, p, course.id, lesson.id)
        before = [
            await progress_service.compute_progress(store, p, course.id) for p in learners
        ]

        await content_service.add_lesson(
            store, teacher, course.id, title="Draft", position=2, is_published=False
        )
        draft = [
            await progress_service.compute_progress(store, p, course.id) for p in learners
        ]
        await content_service.add_lesson(
            store, teacher, course.id, title="Next", position=3, is_published=True
        )
        after = [
            await progress_service.compute_progress(store, p, course.id) for p in learners
        ]
        return before, draft, after

    before, draft, after = asyncio.run(scenario())
    assert before == [100, 100]
    assert draft == [100, 100]
    assert after == [50, 50]


def test_mark_is_idempotent() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store)
        lesson = await seed_lesson(store, course.id, 1)
        p = principal_for(student)
        a = await progress_service.mark_lesson_complete(store, p, course.id, lesson.id)
        b = await progress_service.mark_lesson_complete(store, p, course.id, lesson.id)
        return a, b

    a, b = asyncio.run(scenario())
    assert a == b


def test_paid_course_needs_purchase_to_mark() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store, price="25")
        lesson = await seed_lesson(store, course.id, 1)
        with pytest.raises(CourseAccessRequiredError):
            await progress_service.mark_lesson_complete(
                store, principal_for(student), course.id, lesson.id
            )

    asyncio.run(scenario())


def test_mark_rejects_hidden_or_foreign_lessons() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store)
        other = await seed_course(store)
        hidden = await seed_lesson(store, course.id, 1, is_published=False)
        foreign = await seed_lesson(store, other.id, 1)
        p = principal_for(student)
        for lesson in (hidden, foreign):
            with pytest.raises(NotFoundError):
                await progress_service.mark_lesson_complete(store, p, course.id, lesson.id)

    asyncio.run(scenario())


def test_unmark_without_mark_is_not_found() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store)
        lesson = await seed_lesson(store, course.id, 1)
        with pytest.raises(NotFoundError):
            await progress_service.unmark_lesson_complete(
                store, principal_for(student), course.id, lesson.id
            )

    asyncio.run(scenario())


def test_unpublished_course_has_no_progress() -> None:
    async def scenario():
        store = InMemoryStore()
        student = await seed_account(store)
        course = await seed_course(store, is_published=False)
        with pytest.raises(NotFoundError):
            await progress_service.compute_progress(
                store, principal_for(student), course.id
            )

    asyncio.run(scenario())
