from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4


class PurchaseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"
    PENDING = "PENDING"
    CANCELED = "CANCELED"


# A row in one of these states may be deleted to free the (user, course) slot.
RETRYABLE_STATUSES = frozenset({PurchaseStatus.FAILED, PurchaseStatus.CANCELED})


@dataclass(frozen=True, slots=True)
class Purchase:
    id: UUID
    user_id: UUID
    course_id: UUID
    status: PurchaseStatus
    created_at: int
    code_id: UUID | None = None

    @staticmethod
    def new(
        *,
        user_id: UUID,
        course_id: UUID,
        status: PurchaseStatus,
        created_at: int,
        code_id: UUID | None = None,
    ) -> Purchase:
        return Purchase(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            status=status,
            created_at=created_at,
            code_id=code_id,
        )


@dataclass(frozen=True, slots=True)
class RedemptionCode:
    id: UUID
    code: str  # stored upper-case
    course_id: UUID
    created_by: UUID
    created_at: int
    is_used: bool = False
    used_by: UUID | None = None
    used_at: int | None = None

    @staticmethod
    def new(
        *, code: str, course_id: UUID, created_by: UUID, created_at: int
    ) -> RedemptionCode:
        return RedemptionCode(
            id=uuid4(),
            code=code,
            course_id=course_id,
            created_by=created_by,
            created_at=created_at,
        )
