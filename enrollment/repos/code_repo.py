from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from enrollment.models.purchase import RedemptionCode
from enrollment.repos.errors import DuplicateKeyError


class CodeRepo(Protocol):
    async def get_by_code(self, code: str) -> RedemptionCode | None: ...
    async def exists(self, code: str) -> bool: ...
    async def add(self, code: RedemptionCode) -> None: ...
    async def mark_used(
        self, code_id: UUID, user_id: UUID, used_at: int
    ) -> RedemptionCode | None: ...
    async def list(self, course_id: UUID | None = None) -> list[RedemptionCode]: ...


class InMemoryCodeRepo:
    def __init__(self, codes: dict[str, RedemptionCode]) -> None:
        self._by_code = codes

    async def get_by_code(self, code: str) -> RedemptionCode | None:
        return self._by_code.get(code)

    async def exists(self, code: str) -> bool:
        return code in self._by_code

    async def add(self, code: RedemptionCode) -> None:
        if code.code in self._by_code:
            raise DuplicateKeyError("code already exists")
        self._by_code[code.code] = code

    async def mark_used(
        self, code_id: UUID, user_id: UUID, used_at: int
    ) -> RedemptionCode | None:
        """Flip is_used false→true.  Returns None if already used or unknown."""
        for key, c in self._by_code.items():
            if c.id != code_id:
                continue
            if c.is_used:
                return None
            updated = replace(c, is_used=True, used_by=user_id, used_at=used_at)
            self._by_code[key] = updated
            return updated
        return None

    async def list(self, course_id: UUID | None = None) -> list[RedemptionCode]:
        rows = [
            c
            for c in self._by_code.values()
            if course_id is None or c.course_id == course_id
        ]
        rows.reverse()
        return rows
