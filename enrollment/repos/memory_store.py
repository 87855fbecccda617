"""In-memory Store for dev and tests.

Transactions are serialized by one asyncio.Lock.  On entry every table
is copied; if the block raises, the copies are written back in place so
that repos holding references to the dicts see the restored contents.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from enrollment.repos.account_repo import InMemoryAccountRepo
from enrollment.repos.attempt_repo import InMemoryAttemptRepo
from enrollment.repos.code_repo import InMemoryCodeRepo
from enrollment.repos.content_repo import InMemoryContentRepo
from enrollment.repos.purchase_repo import InMemoryPurchaseRepo
from enrollment.repos.unit_of_work import UnitOfWork


class InMemoryStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._tables: dict[str, dict[Any, Any]] = {
            name: {}
            for name in (
                "accounts",
                "transactions",
                "purchases",
                "codes",
                "courses",
                "lessons",
                "quizzes",
                "questions",
                "completions",
                "attempts",
            )
        }
        t = self._tables
        self._uow = UnitOfWork(
            accounts=InMemoryAccountRepo(t["accounts"], t["transactions"]),
            purchases=InMemoryPurchaseRepo(t["purchases"]),
            codes=InMemoryCodeRepo(t["codes"]),
            content=InMemoryContentRepo(
                t["courses"], t["lessons"], t["quizzes"], t["questions"], t["completions"]
            ),
            attempts=InMemoryAttemptRepo(t["attempts"]),
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UnitOfWork]:
        async with self._lock:
            snapshot = {name: dict(rows) for name, rows in self._tables.items()}
            try:
                yield self._uow
            except BaseException:
                for name, rows in self._tables.items():
                    rows.clear()
                    rows.update(snapshot[name])
                raise

    def reset(self) -> None:
        """Drop every row.  Used by tests between cases."""
        for rows in self._tables.values():
            rows.clear()
        self._lock = asyncio.Lock()
