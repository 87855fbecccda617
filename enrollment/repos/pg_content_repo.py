"""PostgreSQL implementation of ContentRepo."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.db.tables import (
    CourseRow,
    LessonCompletionRow,
    LessonRow,
    QuestionRow,
    QuizRow,
)
from enrollment.models.course import ContentKind, Course, Lesson, LessonCompletion
from enrollment.models.quiz import Question, QuestionType, Quiz
from enrollment.repos.errors import flush_or_duplicate


class PgContentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- courses ---

    async def get_course(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Course(
            id=row.id,
            title=row.title,
            price=Decimal(row.price),
            is_published=row.is_published,
            owner_id=row.owner_id,
        )

    async def add_course(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                price=course.price,
                is_published=course.is_published,
                owner_id=course.owner_id,
            )
        )
        await flush_or_duplicate(self._session, "course already exists")

    # --- lessons ---

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        stmt = (
            select(LessonRow)
            .where(LessonRow.id == lesson_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson(row)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                course_id=lesson.course_id,
                title=lesson.title,
                position=lesson.position,
                is_published=lesson.is_published,
            )
        )
        await flush_or_duplicate(self._session, "lesson already exists")

    async def list_lessons(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id == course_id)
            .order_by(LessonRow.position, LessonRow.id)
            .execution_options(populate_existing=True)
        )
        if published_only:
            stmt = stmt.where(LessonRow.is_published.is_(True))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    # --- quizzes ---

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        stmt = (
            select(QuizRow)
            .where(QuizRow.id == quiz_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_quiz(row)

    async def add_quiz(self, quiz: Quiz, questions: Iterable[Question]) -> None:
        self._session.add(
            QuizRow(
                id=quiz.id,
                course_id=quiz.course_id,
                title=quiz.title,
                description=quiz.description,
                position=quiz.position,
                max_attempts=quiz.max_attempts,
                timer_minutes=quiz.timer_minutes,
                is_published=quiz.is_published,
            )
        )
        await flush_or_duplicate(self._session, "quiz already exists")
        for q in questions:
            self._session.add(
                QuestionRow(
                    id=q.id,
                    quiz_id=q.quiz_id,
                    text=q.text,
                    type=q.type.value,
                    options=q.options,
                    correct_answer=q.correct_answer,
                    points=q.points,
                    position=q.position,
                )
            )
        await flush_or_duplicate(self._session, "question already exists")

    async def list_quizzes(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]:
        stmt = (
            select(QuizRow)
            .where(QuizRow.course_id == course_id)
            .order_by(QuizRow.position, QuizRow.id)
            .execution_options(populate_existing=True)
        )
        if published_only:
            stmt = stmt.where(QuizRow.is_published.is_(True))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_quiz(r) for r in rows]

    async def list_questions(self, quiz_id: UUID) -> list[Question]:
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.quiz_id == quiz_id)
            .order_by(QuestionRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Question(
                id=r.id,
                quiz_id=r.quiz_id,
                text=r.text,
                type=QuestionType(r.type),
                correct_answer=r.correct_answer,
                points=r.points,
                position=r.position,
                options=r.options,
            )
            for r in rows
        ]

    async def set_position(
        self, kind: ContentKind, item_id: UUID, course_id: UUID, position: int
    ) -> bool:
        table = LessonRow if kind is ContentKind.LESSON else QuizRow
        stmt = (
            update(table)
            .where(table.id == item_id)
            .where(table.course_id == course_id)
            .values(position=position)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    # --- lesson completion ---

    async def get_completion(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None:
        stmt = (
            select(LessonCompletionRow)
            .where(LessonCompletionRow.user_id == user_id)
            .where(LessonCompletionRow.lesson_id == lesson_id)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return LessonCompletion(
            user_id=row.user_id, lesson_id=row.lesson_id, completed_at=row.completed_at
        )

    async def add_completion(self, completion: LessonCompletion) -> None:
        self._session.add(
            LessonCompletionRow(
                user_id=completion.user_id,
                lesson_id=completion.lesson_id,
                completed_at=completion.completed_at,
            )
        )
        await flush_or_duplicate(self._session, "lesson already completed")

    async def delete_completion(self, user_id: UUID, lesson_id: UUID) -> bool:
        stmt = (
            delete(LessonCompletionRow)
            .where(LessonCompletionRow.user_id == user_id)
            .where(LessonCompletionRow.lesson_id == lesson_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def completed_lessons(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(lesson_ids)
        if not ids:
            return set()
        stmt = (
            select(LessonCompletionRow.lesson_id)
            .where(LessonCompletionRow.user_id == user_id)
            .where(LessonCompletionRow.lesson_id.in_(ids))
        )
        return set((await self._session.execute(stmt)).scalars().all())


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        position=row.position,
        is_published=row.is_published,
    )


def _row_to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        position=row.position,
        max_attempts=row.max_attempts,
        description=row.description or "",
        timer_minutes=row.timer_minutes,
        is_published=row.is_published,
    )
