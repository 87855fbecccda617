from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from enrollment.models.purchase import Purchase, PurchaseStatus
from enrollment.repos.errors import DuplicateKeyError


class PurchaseRepo(Protocol):
    async def get(self, purchase_id: UUID) -> Purchase | None: ...
    async def get_for(self, user_id: UUID, course_id: UUID) -> Purchase | None: ...
    async def add(self, purchase: Purchase) -> None: ...
    async def delete(self, purchase_id: UUID) -> bool: ...
    async def set_status(
        self,
        purchase_id: UUID,
        status: PurchaseStatus,
        *,
        expected: PurchaseStatus | None = None,
    ) -> Purchase | None: ...


class InMemoryPurchaseRepo:
    def __init__(self, purchases: dict[UUID, Purchase]) -> None:
        self._purchases = purchases

    async def get(self, purchase_id: UUID) -> Purchase | None:
        return self._purchases.get(purchase_id)

    async def get_for(self, user_id: UUID, course_id: UUID) -> Purchase | None:
        for p in self._purchases.values():
            if p.user_id == user_id and p.course_id == course_id:
                return p
        return None

    async def add(self, purchase: Purchase) -> None:
        # Mirrors the (user_id, course_id) unique constraint of the SQL table.
        if await self.get_for(purchase.user_id, purchase.course_id) is not None:
            raise DuplicateKeyError("purchase already exists for user and course")
        self._purchases[purchase.id] = purchase

    async def delete(self, purchase_id: UUID) -> bool:
        return self._purchases.pop(purchase_id, None) is not None

    async def set_status(
        self,
        purchase_id: UUID,
        status: PurchaseStatus,
        *,
        expected: PurchaseStatus | None = None,
    ) -> Purchase | None:
        """Update the status; with ``expected`` set this is a compare-and-swap."""
        p = self._purchases.get(purchase_id)
        if p is None:
            return None
        if expected is not None and p.status != expected:
            return None
        updated = replace(p, status=status)
        self._purchases[purchase_id] = updated
        return updated
