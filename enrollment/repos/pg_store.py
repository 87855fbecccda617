"""SQLAlchemy-backed Store: one AsyncSession and one transaction per block."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import (
    IntegrityError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from enrollment.repos.pg_account_repo import PgAccountRepo
from enrollment.repos.pg_attempt_repo import PgAttemptRepo
from enrollment.repos.pg_code_repo import PgCodeRepo
from enrollment.repos.pg_content_repo import PgContentRepo
from enrollment.repos.pg_purchase_repo import PgPurchaseRepo
from enrollment.repos.unit_of_work import UnitOfWork
from enrollment.services.errors import ConflictError, SchemaMismatchError, StoreError

logger = logging.getLogger(__name__)

# Driver messages that mean the code expects a table or column the database
# does not have (migration not applied).
_SCHEMA_MARKERS = (
    "does not exist",
    "no such table",
    "no such column",
    "unknown column",
    "undefined column",
    "has no column named",
)


def is_schema_mismatch(exc: BaseException) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _SCHEMA_MARKERS)


class PgStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UnitOfWork]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield UnitOfWork(
                        accounts=PgAccountRepo(session),
                        purchases=PgPurchaseRepo(session),
                        codes=PgCodeRepo(session),
                        content=PgContentRepo(session),
                        attempts=PgAttemptRepo(session),
                    )
        except IntegrityError as exc:
            # A unique violation surfacing at commit rather than at flush.
            logger.warning("Transaction rejected by a constraint at commit")
            raise ConflictError() from exc
        except (ProgrammingError, OperationalError) as exc:
            if is_schema_mismatch(exc):
                logger.error("Database schema mismatch: %s", exc.orig or exc)
                raise SchemaMismatchError() from exc
            logger.exception("Store transaction failed")
            raise StoreError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Store transaction failed")
            raise StoreError() from exc
