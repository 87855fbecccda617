"""PostgreSQL implementation of CodeRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.db.tables import RedemptionCodeRow
from enrollment.models.purchase import RedemptionCode
from enrollment.repos.errors import flush_or_duplicate


class PgCodeRepo:
    """Satisfies the CodeRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_code(self, code: str) -> RedemptionCode | None:
        stmt = select(RedemptionCodeRow).where(RedemptionCodeRow.code == code)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_code(row)

    async def exists(self, code: str) -> bool:
        stmt = select(RedemptionCodeRow.id).where(RedemptionCodeRow.code == code)
        return (await self._session.execute(stmt)).first() is not None

    async def add(self, code: RedemptionCode) -> None:
        row = RedemptionCodeRow(
            id=code.id,
            code=code.code,
            course_id=code.course_id,
            created_by=code.created_by,
            created_at=code.created_at,
            is_used=code.is_used,
            used_by=code.used_by,
            used_at=code.used_at,
        )
        self._session.add(row)
        await flush_or_duplicate(self._session, "code already exists")

    async def mark_used(
        self, code_id: UUID, user_id: UUID, used_at: int
    ) -> RedemptionCode | None:
        """Atomically mark a code as used. Returns the updated record, or None
        if the code doesn't exist or was already consumed."""
        stmt = (
            update(RedemptionCodeRow)
            .where(RedemptionCodeRow.id == code_id)
            .where(RedemptionCodeRow.is_used.is_(False))
            .values(is_used=True, used_by=user_id, used_at=used_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None  # concurrent redemption won the race

        row = (
            await self._session.execute(
                select(RedemptionCodeRow)
                .where(RedemptionCodeRow.id == code_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        return _row_to_code(row)

    async def list(self, course_id: UUID | None = None) -> list[RedemptionCode]:
        stmt = select(RedemptionCodeRow).order_by(RedemptionCodeRow.created_at.desc())
        if course_id is not None:
            stmt = stmt.where(RedemptionCodeRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_code(r) for r in rows]


def _row_to_code(row: RedemptionCodeRow) -> RedemptionCode:
    return RedemptionCode(
        id=row.id,
        code=row.code,
        course_id=row.course_id,
        created_by=row.created_by,
        created_at=row.created_at,
        is_used=row.is_used,
        used_by=row.used_by,
        used_at=row.used_at,
    )
