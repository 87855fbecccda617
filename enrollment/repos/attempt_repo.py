from __future__ import annotations

from typing import Iterable, Protocol
from uuid import UUID

from enrollment.models.quiz import QuizAttempt
from enrollment.repos.errors import DuplicateKeyError


class AttemptRepo(Protocol):
    async def count(self, student_id: UUID, quiz_id: UUID) -> int: ...
    async def add(self, attempt: QuizAttempt) -> None: ...
    async def latest(self, student_id: UUID, quiz_id: UUID) -> QuizAttempt | None: ...
    async def list_for_quiz(self, quiz_id: UUID) -> list[QuizAttempt]: ...
    async def attempted_among(
        self, student_id: UUID, quiz_ids: Iterable[UUID]
    ) -> set[UUID]: ...


class InMemoryAttemptRepo:
    def __init__(self, attempts: dict[UUID, QuizAttempt]) -> None:
        self._attempts = attempts

    def _for(self, student_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        return [
            a
            for a in self._attempts.values()
            if a.student_id == student_id and a.quiz_id == quiz_id
        ]

    async def count(self, student_id: UUID, quiz_id: UUID) -> int:
        return len(self._for(student_id, quiz_id))

    async def add(self, attempt: QuizAttempt) -> None:
        # (student_id, quiz_id, attempt_number) is unique
        for a in self._for(attempt.student_id, attempt.quiz_id):
            if a.attempt_number == attempt.attempt_number:
                raise DuplicateKeyError("attempt number already recorded")
        self._attempts[attempt.id] = attempt

    async def latest(self, student_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        rows = self._for(student_id, quiz_id)
        if not rows:
            return None
        return max(rows, key=lambda a: a.attempt_number)

    async def list_for_quiz(self, quiz_id: UUID) -> list[QuizAttempt]:
        rows = [a for a in self._attempts.values() if a.quiz_id == quiz_id]
        return sorted(rows, key=lambda a: (a.created_at, a.attempt_number), reverse=True)

    async def attempted_among(
        self, student_id: UUID, quiz_ids: Iterable[UUID]
    ) -> set[UUID]:
        wanted = set(quiz_ids)
        return {
            a.quiz_id
            for a in self._attempts.values()
            if a.student_id == student_id and a.quiz_id in wanted
        }
