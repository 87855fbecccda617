from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from enrollment.models.principal import Role


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    PURCHASE = "PURCHASE"


@dataclass(frozen=True, slots=True)
class Account:
    id: UUID
    role: Role
    balance: Decimal = Decimal("0")
    name: str = ""

    @staticmethod
    def new(
        *,
        role: Role,
        name: str = "",
        balance: Decimal = Decimal("0"),
        account_id: UUID | None = None,
    ) -> Account:
        if balance < 0:
            raise ValueError("balance must be non-negative")
        return Account(
            id=account_id or uuid4(), role=role, balance=balance, name=name
        )


@dataclass(frozen=True, slots=True)
class BalanceTransaction:
    """Append-only ledger entry; the sign of ``amount`` is the direction."""

    id: UUID
    account_id: UUID
    amount: Decimal
    type: TransactionType
    description: str
    created_at: int

    @staticmethod
    def new(
        *,
        account_id: UUID,
        amount: Decimal,
        type: TransactionType,
        description: str,
        created_at: int,
    ) -> BalanceTransaction:
        return BalanceTransaction(
            id=uuid4(),
            account_id=account_id,
            amount=amount,
            type=type,
            description=description,
            created_at=created_at,
        )
