from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from enrollment.models.account import Account, BalanceTransaction
from enrollment.repos.errors import DuplicateKeyError


class AccountRepo(Protocol):
    async def get(self, account_id: UUID) -> Account | None: ...
    async def add(self, account: Account) -> None: ...
    async def debit(self, account_id: UUID, amount: Decimal) -> Account | None: ...
    async def credit(self, account_id: UUID, amount: Decimal) -> Account | None: ...
    async def append_transaction(self, txn: BalanceTransaction) -> None: ...
    async def list_transactions(
        self, account_id: UUID, limit: int = 50
    ) -> list[BalanceTransaction]: ...


class InMemoryAccountRepo:
    def __init__(
        self,
        accounts: dict[UUID, Account],
        transactions: dict[UUID, BalanceTransaction],
    ) -> None:
        self._accounts = accounts
        self._transactions = transactions

    async def get(self, account_id: UUID) -> Account | None:
        return self._accounts.get(account_id)

    async def add(self, account: Account) -> None:
        if account.id in self._accounts:
            raise DuplicateKeyError("account already exists")
        self._accounts[account.id] = account

    async def debit(self, account_id: UUID, amount: Decimal) -> Account | None:
        """Decrease the balance only if it covers ``amount``; None otherwise."""
        a = self._accounts.get(account_id)
        if a is None or a.balance < amount:
            return None
        updated = replace(a, balance=a.balance - amount)
        self._accounts[account_id] = updated
        return updated

    async def credit(self, account_id: UUID, amount: Decimal) -> Account | None:
        a = self._accounts.get(account_id)
        if a is None:
            return None
        updated = replace(a, balance=a.balance + amount)
        self._accounts[account_id] = updated
        return updated

    async def append_transaction(self, txn: BalanceTransaction) -> None:
        if txn.id in self._transactions:
            raise DuplicateKeyError("transaction already recorded")
        self._transactions[txn.id] = txn

    async def list_transactions(
        self, account_id: UUID, limit: int = 50
    ) -> list[BalanceTransaction]:
        # dict preserves insertion order, newest last
        rows = [t for t in self._transactions.values() if t.account_id == account_id]
        rows.reverse()
        return rows[:limit]
