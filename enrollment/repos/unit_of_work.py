"""Unit of work: the repos a service sees inside one store transaction.

A service opens ``store.transaction()`` once per operation and performs
its whole read-check-write sequence through the yielded UnitOfWork.
Leaving the block normally commits; leaving it with an exception rolls
back every write made through any of the repos.

Two stores satisfy the Store protocol: InMemoryStore (dev/test) and
PgStore (SQLAlchemy async).  Repos raise DuplicateKeyError when a write
would violate a uniqueness rule; services translate it into a domain
error and let it propagate so the transaction aborts.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Protocol

from enrollment.repos.account_repo import AccountRepo
from enrollment.repos.attempt_repo import AttemptRepo
from enrollment.repos.code_repo import CodeRepo
from enrollment.repos.content_repo import ContentRepo
from enrollment.repos.purchase_repo import PurchaseRepo


@dataclass(frozen=True, slots=True)
class UnitOfWork:
    accounts: AccountRepo
    purchases: PurchaseRepo
    codes: CodeRepo
    content: ContentRepo
    attempts: AttemptRepo


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[UnitOfWork]: ...
