from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from enrollment.models.principal import Principal, Role
from enrollment.models.quiz import QuestionType
from enrollment.repos.memory_store import InMemoryStore
from enrollment.services import content_service
from enrollment.services.content_service import QuestionDraft
from enrollment.services.errors import ForbiddenError, NotFoundError, ValidationError
from enrollment.services.quiz_options import options_list

TEACHER = Principal(user_id=uuid4(), role=Role.TEACHER)
MC = QuestionDraft(
    text="Pick the prime",
    type=QuestionType.MULTIPLE_CHOICE,
    correct_answer="7",
    points=5,
    options=["4", "7", "9"],
)
TF = QuestionDraft(text="Water is wet", type=QuestionType.TRUE_FALSE, correct_answer="True")


def test_course_lesson_quiz_authoring() -> None:
    async def scenario():
        store = InMemoryStore()
        course = await content_service.create_course(
            store, TEACHER, title=" Number Theory ", price=Decimal("19.99")
        )
        lesson = await content_service.add_lesson(
            store, TEACHER, course.id, title="Primes", position=1, is_published=True
        )
        quiz, questions = await content_service.add_quiz(
            store,
            TEACHER,
            course.id,
            title="Check",
            position=2,
            questions=[MC, TF],
            max_attempts=2,
            timer_minutes=10,
        )
        async with store.transaction() as uow:
            stored = await uow.content.list_questions(quiz.id)
        return course, lesson, quiz, questions, stored

    course, lesson, quiz, questions, stored = asyncio.run(scenario())
    assert course.title == "Number Theory"
    assert course.owner_id == TEACHER.user_id
    assert course.is_published is False
    assert lesson.course_id == course.id
    assert quiz.max_attempts == 2
    assert [q.position for q in questions] == [0, 1]
    assert options_list(stored[0].options) == ["4", "7", "9"]
    assert stored[1].options is None


def test_students_cannot_author() -> None:
    student = Principal(user_id=uuid4(), role=Role.STUDENT)
    with pytest.raises(ForbiddenError):
        asyncio.run(content_service.create_course(InMemoryStore(), student, title="x"))


def test_other_teacher_cannot_add_content() -> None:
    async def scenario():
        store = InMemoryStore()
        course = await content_service.create_course(store, TEACHER, title="Mine")
        intruder = Principal(user_id=uuid4(), role=Role.TEACHER)
        with pytest.raises(ForbiddenError):
            await content_service.add_lesson(
                store, intruder, course.id, title="Theirs", position=1
            )
        admin = Principal(user_id=uuid4(), role=Role.ADMIN)
        return await content_service.add_lesson(
            store, admin, course.id, title="Admin lesson", position=1
        )

    assert asyncio.run(scenario()).title == "Admin lesson"


def test_lesson_for_unknown_course() -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(
            content_service.add_lesson(
                InMemoryStore(), TEACHER, uuid4(), title="x", position=1
            )
        )


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"questions": []}, "at least one question"),
        ({"max_attempts": 0}, "max_attempts"),
        ({"timer_minutes": 0}, "timer_minutes"),
        (
            {
                "questions": [
                    QuestionDraft(
                        text="q", type=QuestionType.SHORT_ANSWER, correct_answer="a", points=0
                    )
                ]
            },
            "points",
        ),
        (
            {
                "questions": [
                    QuestionDraft(
                        text="q",
                        type=QuestionType.MULTIPLE_CHOICE,
                        correct_answer="z",
                        options=["a", "b"],
                    )
                ]
            },
            "one of the options",
        ),
        (
            {
                "questions": [
                    QuestionDraft(
                        text="q", type=QuestionType.MULTIPLE_CHOICE, correct_answer="a"
                    )
                ]
            },
            "non-empty list",
        ),
    ],
)
def test_quiz_validation(kwargs: dict, message: str) -> None:
    async def scenario():
        store = InMemoryStore()
        course = await content_service.create_course(store, TEACHER, title="C")
        params = {"title": "Quiz", "position": 1, "questions": [TF], **kwargs}
        with pytest.raises(ValidationError, match=message):
            await content_service.add_quiz(store, TEACHER, course.id, **params)
        async with store.transaction() as uow:
            return await uow.content.list_quizzes(course.id, published_only=False)

    assert asyncio.run(scenario()) == []


def test_negative_price_rejected() -> None:
    with pytest.raises(ValidationError):
        asyncio.run(
            content_service.create_course(
                InMemoryStore(), TEACHER, title="x", price=Decimal("-1")
            )
        )
