from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Protocol
from uuid import UUID

from enrollment.models.course import (
    ContentKind,
    Course,
    Lesson,
    LessonCompletion,
)
from enrollment.models.quiz import Question, Quiz
from enrollment.repos.errors import DuplicateKeyError


class ContentRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def add_course(self, course: Course) -> None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    # Listings are ordered by position, then id.
    async def list_lessons(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Lesson]: ...
    async def get_quiz(self, quiz_id: UUID) -> Quiz | None: ...
    async def add_quiz(self, quiz: Quiz, questions: Iterable[Question]) -> None: ...
    async def list_quizzes(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]: ...
    async def list_questions(self, quiz_id: UUID) -> list[Question]: ...
    async def set_position(
        self, kind: ContentKind, item_id: UUID, course_id: UUID, position: int
    ) -> bool: ...
    async def get_completion(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None: ...
    async def add_completion(self, completion: LessonCompletion) -> None: ...
    async def delete_completion(self, user_id: UUID, lesson_id: UUID) -> bool: ...
    async def completed_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> set[UUID]: ...


class InMemoryContentRepo:
    """Content tables kept in plain dicts shared with the owning store."""

    def __init__(
        self,
        courses: dict[UUID, Course],
        lessons: dict[UUID, Lesson],
        quizzes: dict[UUID, Quiz],
        questions: dict[UUID, Question],
        completions: dict[tuple[UUID, UUID], LessonCompletion],
    ) -> None:
        self._courses = courses
        self._lessons = lessons
        self._quizzes = quizzes
        self._questions = questions
        self._completions = completions

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def add_course(self, course: Course) -> None:
        if course.id in self._courses:
            raise DuplicateKeyError("course already exists")
        self._courses[course.id] = course

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def add_lesson(self, lesson: Lesson) -> None:
        if lesson.id in self._lessons:
            raise DuplicateKeyError("lesson already exists")
        self._lessons[lesson.id] = lesson

    async def list_lessons(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Lesson]:
        rows = [
            lesson
            for lesson in self._lessons.values()
            if lesson.course_id == course_id
            and (lesson.is_published or not published_only)
        ]
        return sorted(rows, key=lambda x: (x.position, x.id))

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def add_quiz(self, quiz: Quiz, questions: Iterable[Question]) -> None:
        if quiz.id in self._quizzes:
            raise DuplicateKeyError("quiz already exists")
        self._quizzes[quiz.id] = quiz
        for q in questions:
            self._questions[q.id] = q

    async def list_quizzes(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]:
        rows = [
            quiz
            for quiz in self._quizzes.values()
            if quiz.course_id == course_id and (quiz.is_published or not published_only)
        ]
        return sorted(rows, key=lambda x: (x.position, x.id))

    async def list_questions(self, quiz_id: UUID) -> list[Question]:
        rows = [q for q in self._questions.values() if q.quiz_id == quiz_id]
        return sorted(rows, key=lambda q: q.position)

    async def set_position(
        self, kind: ContentKind, item_id: UUID, course_id: UUID, position: int
    ) -> bool:
        """Move one item.  False when the item is unknown or in another course."""
        table: dict = self._lessons if kind is ContentKind.LESSON else self._quizzes
        item = table.get(item_id)
        if item is None or item.course_id != course_id:
            return False
        table[item_id] = replace(item, position=position)
        return True

    async def get_completion(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None:
        return self._completions.get((user_id, lesson_id))

    async def add_completion(self, completion: LessonCompletion) -> None:
        key = (completion.user_id, completion.lesson_id)
        if key in self._completions:
            raise DuplicateKeyError("lesson already completed")
        self._completions[key] = completion

    async def delete_completion(self, user_id: UUID, lesson_id: UUID) -> bool:
        return self._completions.pop((user_id, lesson_id), None) is not None

    async def completed_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> set[UUID]:
        return {
            lid for lid in lesson_ids if (user_id, lid) in self._completions
        }
