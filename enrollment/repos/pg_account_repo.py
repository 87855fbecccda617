"""PostgreSQL implementation of AccountRepo."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment.db.tables import AccountRow, BalanceTransactionRow
from enrollment.models.account import Account, BalanceTransaction, TransactionType
from enrollment.models.principal import Role
from enrollment.repos.errors import flush_or_duplicate


class PgAccountRepo:
    """Satisfies the AccountRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, account_id: UUID) -> Account | None:
        stmt = (
            select(AccountRow)
            .where(AccountRow.id == account_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_account(row)

    async def add(self, account: Account) -> None:
        row = AccountRow(
            id=account.id,
            role=account.role.value,
            name=account.name,
            balance=account.balance,
        )
        self._session.add(row)
        await flush_or_duplicate(self._session, "account already exists")

    async def debit(self, account_id: UUID, amount: Decimal) -> Account | None:
        """Conditional decrement: only applies while balance >= amount.

        Returns the updated account, or None when the balance did not cover
        the amount at the moment of the UPDATE.
        """
        stmt = (
            update(AccountRow)
            .where(AccountRow.id == account_id)
            .where(AccountRow.balance >= amount)
            .values(balance=AccountRow.balance - amount)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(account_id)

    async def credit(self, account_id: UUID, amount: Decimal) -> Account | None:
        stmt = (
            update(AccountRow)
            .where(AccountRow.id == account_id)
            .values(balance=AccountRow.balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(account_id)

    async def append_transaction(self, txn: BalanceTransaction) -> None:
        row = BalanceTransactionRow(
            id=txn.id,
            account_id=txn.account_id,
            amount=txn.amount,
            type=txn.type.value,
            description=txn.description,
            created_at=txn.created_at,
        )
        self._session.add(row)
        await flush_or_duplicate(self._session, "transaction already recorded")

    async def list_transactions(
        self, account_id: UUID, limit: int = 50
    ) -> list[BalanceTransaction]:
        stmt = (
            select(BalanceTransactionRow)
            .where(BalanceTransactionRow.account_id == account_id)
            .order_by(BalanceTransactionRow.created_at.desc())
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_transaction(r) for r in rows]


def _row_to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        role=Role(row.role),
        balance=Decimal(row.balance),
        name=row.name or "",
    )


def _row_to_transaction(row: BalanceTransactionRow) -> BalanceTransaction:
    return BalanceTransaction(
        id=row.id,
        account_id=row.account_id,
        amount=Decimal(row.amount),
        type=TransactionType(row.type),
        description=row.description,
        created_at=row.created_at,
    )
