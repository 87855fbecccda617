"""PostgreSQL implementation of AttemptRepo."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.db.tables import AttemptAnswerRow, QuizAttemptRow
from enrollment.models.quiz import Answer, QuizAttempt
from enrollment.repos.errors import flush_or_duplicate


class PgAttemptRepo:
    """Attempts are written once with their answers and never updated."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def count(self, student_id: UUID, quiz_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(QuizAttemptRow)
            .where(QuizAttemptRow.student_id == student_id)
            .where(QuizAttemptRow.quiz_id == quiz_id)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add(self, attempt: QuizAttempt) -> None:
        self._session.add(
            QuizAttemptRow(
                id=attempt.id,
                student_id=attempt.student_id,
                quiz_id=attempt.quiz_id,
                attempt_number=attempt.attempt_number,
                score=attempt.score,
                total_points=attempt.total_points,
                percentage=attempt.percentage,
                created_at=attempt.created_at,
            )
        )
        # Flush the attempt first: a concurrent submitter fails here on
        # uq_attempts_number before any answer row is written.
        await flush_or_duplicate(self._session, "attempt number already recorded")
        for position, a in enumerate(attempt.answers):
            self._session.add(
                AttemptAnswerRow(
                    attempt_id=attempt.id,
                    question_id=a.question_id,
                    position=position,
                    student_answer=a.student_answer,
                    correct_answer=a.correct_answer,
                    is_correct=a.is_correct,
                    points_earned=a.points_earned,
                )
            )
        await flush_or_duplicate(self._session, "answer already recorded")

    async def latest(self, student_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        stmt = (
            select(QuizAttemptRow)
            .where(QuizAttemptRow.student_id == student_id)
            .where(QuizAttemptRow.quiz_id == quiz_id)
            .order_by(QuizAttemptRow.attempt_number.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        answers = await self._answers_for([row.id])
        return _row_to_attempt(row, answers.get(row.id, ()))

    async def list_for_quiz(self, quiz_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(QuizAttemptRow.quiz_id == quiz_id)
            .order_by(
                QuizAttemptRow.created_at.desc(), QuizAttemptRow.attempt_number.desc()
            )
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        answers = await self._answers_for([r.id for r in rows])
        return [_row_to_attempt(r, answers.get(r.id, ())) for r in rows]

    async def attempted_among(
        self, student_id: UUID, quiz_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(quiz_ids)
        if not ids:
            return set()
        stmt = (
            select(QuizAttemptRow.quiz_id)
            .where(QuizAttemptRow.student_id == student_id)
            .where(QuizAttemptRow.quiz_id.in_(ids))
            .distinct()
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def _answers_for(self, attempt_ids: list[UUID]) -> dict[UUID, list[Answer]]:
        if not attempt_ids:
            return {}
        stmt = (
            select(AttemptAnswerRow)
            .where(AttemptAnswerRow.attempt_id.in_(attempt_ids))
            .order_by(AttemptAnswerRow.attempt_id, AttemptAnswerRow.position)
        )
        grouped: dict[UUID, list[Answer]] = defaultdict(list)
        for r in (await self._session.execute(stmt)).scalars().all():
            grouped[r.attempt_id].append(
                Answer(
                    question_id=r.question_id,
                    student_answer=r.student_answer,
                    correct_answer=r.correct_answer,
                    is_correct=r.is_correct,
                    points_earned=r.points_earned,
                )
            )
        return grouped


def _row_to_attempt(row: QuizAttemptRow, answers) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        student_id=row.student_id,
        quiz_id=row.quiz_id,
        attempt_number=row.attempt_number,
        score=row.score,
        total_points=row.total_points,
        percentage=float(row.percentage),
        created_at=row.created_at,
        answers=tuple(answers),
    )
