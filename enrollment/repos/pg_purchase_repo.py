"""PostgreSQL implementation of PurchaseRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.db.tables import PurchaseRow
from enrollment.models.purchase import Purchase, PurchaseStatus
from enrollment.repos.errors import flush_or_duplicate


class PgPurchaseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, purchase_id: UUID) -> Purchase | None:
        stmt = (
            select(PurchaseRow)
            .where(PurchaseRow.id == purchase_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_purchase(row)

    async def get_for(self, user_id: UUID, course_id: UUID) -> Purchase | None:
        stmt = (
            select(PurchaseRow)
            .where(PurchaseRow.user_id == user_id)
            .where(PurchaseRow.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_purchase(row)

    async def add(self, purchase: Purchase) -> None:
        row = PurchaseRow(
            id=purchase.id,
            user_id=purchase.user_id,
            course_id=purchase.course_id,
            status=purchase.status.value,
            code_id=purchase.code_id,
            created_at=purchase.created_at,
        )
        self._session.add(row)
        await flush_or_duplicate(
            self._session, "purchase already exists for user and course"
        )

    async def delete(self, purchase_id: UUID) -> bool:
        stmt = (
            delete(PurchaseRow)
            .where(PurchaseRow.id == purchase_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def set_status(
        self,
        purchase_id: UUID,
        status: PurchaseStatus,
        *,
        expected: PurchaseStatus | None = None,
    ) -> Purchase | None:
        stmt = update(PurchaseRow).where(PurchaseRow.id == purchase_id)
        if expected is not None:
            stmt = stmt.where(PurchaseRow.status == expected.value)
        stmt = stmt.values(status=status.value).execution_options(
            synchronize_session=False
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None  # unknown, or another writer moved it first
        return await self.get(purchase_id)


def _row_to_purchase(row: PurchaseRow) -> Purchase:
    return Purchase(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        status=PurchaseStatus(row.status),
        created_at=row.created_at,
        code_id=row.code_id,
    )
