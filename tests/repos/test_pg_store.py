"""PgStore against a real SQL engine (SQLite through aiosqlite).

Exercises the SQLAlchemy repos, the conditional UPDATEs that guard the
ledger, unique-key translation, rollback and schema-mismatch reporting.
Each test builds its own database file and engine inside one event loop.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

import enrollment.db.tables  # noqa: F401
from enrollment.db.engine import Base, make_session_factory
from enrollment.models.course import ContentKind
from enrollment.models.principal import Principal, Role
from enrollment.models.purchase import Purchase, PurchaseStatus
from enrollment.repos.errors import DuplicateKeyError
from enrollment.repos.pg_store import PgStore
from enrollment.services import progress_service, purchase_service, quiz_service
from enrollment.services.content_ordering import ReorderEntry, ordered_content, reorder
from enrollment.services.errors import (
    AlreadyUsedError,
    InsufficientFundsError,
    NotFoundError,
    SchemaMismatchError,
)
from enrollment.services.grading import SubmittedAnswer
from tests.conftest import (
    principal_for,
    seed_account,
    seed_code,
    seed_course,
    seed_lesson,
    seed_purchase,
    seed_quiz,
)


@pytest.fixture
def run_sql(tmp_path: Path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'enrollment.db'}"

    def run(body):
        async def main():
            engine = create_async_engine(url, poolclass=NullPool)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            try:
                return await body(PgStore(make_session_factory(engine)), engine)
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return run


def test_debit_only_when_balance_covers(run_sql) -> None:
    async def body(store, _engine):
        account = await seed_account(store, balance="40")
        async with store.transaction() as uow:
            refused = await uow.accounts.debit(account.id, Decimal("100"))
            charged = await uow.accounts.debit(account.id, Decimal("30"))
        async with store.transaction() as uow:
            stored = await uow.accounts.get(account.id)
        return refused, charged, stored

    refused, charged, stored = run_sql(body)
    assert refused is None
    assert charged.balance == Decimal("10")
    assert stored.balance == Decimal("10")


def test_purchase_flow_and_insufficient_funds(run_sql) -> None:
    async def body(store, _engine):
        student = await seed_account(store, balance="40")
        cheap = await seed_course(store, price="25")
        pricey = await seed_course(store, price="100")
        p = principal_for(student)
        receipt = await purchase_service.purchase_course(store, p, cheap.id)
        with pytest.raises(InsufficientFundsError):
            await purchase_service.purchase_course(store, p, pricey.id)
        async with store.transaction() as uow:
            account = await uow.accounts.get(student.id)
            txns = await uow.accounts.list_transactions(student.id)
            missing = await uow.purchases.get_for(student.id, pricey.id)
        return receipt, account, txns, missing

    receipt, account, txns, missing = run_sql(body)
    assert receipt.balance == Decimal("15")
    assert account.balance == Decimal("15")
    assert [t.amount for t in txns] == [Decimal("-25")]
    assert missing is None


def test_duplicate_purchase_pair_is_a_duplicate_key(run_sql) -> None:
    async def body(store, _engine):
        student = await seed_account(store)
        course = await seed_course(store)
        await seed_purchase(store, student.id, course.id, PurchaseStatus.FAILED)
        with pytest.raises(DuplicateKeyError):
            async with store.transaction() as uow:
                await uow.purchases.add(
                    Purchase.new(
                        user_id=student.id,
                        course_id=course.id,
                        status=PurchaseStatus.ACTIVE,
                        created_at=1,
                    )
                )
        # The stale row is replaced through the service path.
        return await purchase_service.purchase_course(
            store, principal_for(student), course.id
        )

    assert run_sql(body).purchase.status is PurchaseStatus.ACTIVE


def test_failed_block_rolls_back(run_sql) -> None:
    async def body(store, _engine):
        account = await seed_account(store, balance="5")
        with pytest.raises(RuntimeError):
            async with store.transaction() as uow:
                await uow.accounts.credit(account.id, Decimal("100"))
                raise RuntimeError("abort")
        async with store.transaction() as uow:
            return await uow.accounts.get(account.id)

    assert run_sql(body).balance == Decimal("5")


def test_code_can_be_used_once(run_sql) -> None:
    async def body(store, _engine):
        first = await seed_account(store)
        second = await seed_account(store)
        course = await seed_course(store, price="90")
        code = await seed_code(store, course.id, uuid4())
        purchase = await purchase_service.redeem_code(
            store, principal_for(first), code.code.lower()
        )
        with pytest.raises(AlreadyUsedError):
            await purchase_service.redeem_code(store, principal_for(second), code.code)
        async with store.transaction() as uow:
            again = await uow.codes.mark_used(code.id, second.id, 2)
            stored = await uow.codes.get_by_code(code.code)
        return purchase, again, stored, first

    purchase, again, stored, first = run_sql(body)
    assert purchase.code_id == stored.id
    assert again is None
    assert stored.is_used and stored.used_by == first.id


def test_status_compare_and_swap(run_sql) -> None:
    async def body(store, _engine):
        student = await seed_account(store)
        course = await seed_course(store, price="10")
        purchase = await seed_purchase(store, student.id, course.id, PurchaseStatus.PENDING)
        async with store.transaction() as uow:
            moved = await uow.purchases.set_status(
                purchase.id, PurchaseStatus.ACTIVE, expected=PurchaseStatus.PENDING
            )
            blocked = await uow.purchases.set_status(
                purchase.id, PurchaseStatus.FAILED, expected=PurchaseStatus.PENDING
            )
        return moved, blocked

    moved, blocked = run_sql(body)
    assert moved.status is PurchaseStatus.ACTIVE
    assert blocked is None


def test_attempt_answers_persist_in_order(run_sql) -> None:
    async def body(store, _engine):
        student = await seed_account(store)
        course = await seed_course(store, price="10")
        await seed_purchase(store, student.id, course.id)
        quiz, (mc, sa) = await seed_quiz(store, course.id, 1, max_attempts=2)
        p = principal_for(student)
        await quiz_service.submit(
            store, p, course.id, quiz.id, [SubmittedAnswer(sa.id, "paris")]
        )
        second = await quiz_service.submit(
            store, p, course.id, quiz.id, [SubmittedAnswer(mc.id, "4")]
        )
        latest = await quiz_service.latest_result(store, p, course.id, quiz.id)
        progress = await progress_service.compute_progress(store, p, course.id)
        return second, latest, progress, mc, sa

    second, latest, progress, mc, sa = run_sql(body)
    assert latest.attempt.id == second.id
    assert latest.attempt.attempt_number == 2
    assert latest.attempt.percentage == 50.0
    assert [a.question_id for a in latest.attempt.answers] == [mc.id, sa.id]
    assert [a.is_correct for a in latest.attempt.answers] == [True, False]
    assert progress == 100


def test_atomic_reorder_rolls_back_in_sql(run_sql) -> None:
    async def body(store, _engine):
        teacher = Principal(user_id=uuid4(), role=Role.TEACHER)
        course = await seed_course(store, owner_id=teacher.user_id)
        l1 = await seed_lesson(store, course.id, 1)
        q2, _ = await seed_quiz(store, course.id, 2)
        with pytest.raises(NotFoundError):
            await reorder(
                store,
                teacher,
                course.id,
                [
                    ReorderEntry(ContentKind.LESSON, l1.id, 9),
                    ReorderEntry(ContentKind.QUIZ, uuid4(), 0),
                ],
            )
        return await ordered_content(store, teacher, course.id), l1, q2

    items, l1, q2 = run_sql(body)
    assert [(i.id, i.position) for i in items] == [(l1.id, 1), (q2.id, 2)]


def test_shared_positions_list_in_a_stable_order(run_sql) -> None:
    async def body(store, _engine):
        teacher = Principal(user_id=uuid4(), role=Role.TEACHER)
        course = await seed_course(store, owner_id=teacher.user_id)
        lessons = [await seed_lesson(store, course.id, 3) for _ in range(3)]
        quizzes = [(await seed_quiz(store, course.id, 3))[0] for _ in range(2)]
        first = await ordered_content(store, teacher, course.id)
        second = await ordered_content(store, teacher, course.id)
        return lessons, quizzes, first, second

    lessons, quizzes, first, second = run_sql(body)
    assert [i.id for i in first] == [i.id for i in second]
    assert [i.id for i in first] == sorted(x.id for x in lessons) + sorted(
        x.id for x in quizzes
    )


def test_missing_table_reports_schema_mismatch(run_sql) -> None:
    async def body(store, engine):
        async with engine.begin() as conn:
            await conn.execute(text("DROP TABLE purchases"))
        with pytest.raises(SchemaMismatchError):
            async with store.transaction() as uow:
                await uow.purchases.get(uuid4())

    run_sql(body)
