from __future__ import annotations

import sys
import time
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from enrollment.db.store import store
from enrollment.main import app
from enrollment.models.account import Account
from enrollment.models.course import Course, Lesson
from enrollment.models.principal import Principal, Role
from enrollment.models.purchase import Purchase, PurchaseStatus, RedemptionCode
from enrollment.models.quiz import Question, QuestionType, Quiz
from enrollment.repos.unit_of_work import Store
from enrollment.services import payment_service, token_service
from enrollment.services.cache import cache_service
from enrollment.services.quiz_options import stringify_options
from enrollment.services.rate_limiter import rate_limiter
from enrollment.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import enrollment` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Drop every row from the shared in-memory store between tests."""
    store.reset()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "clear"):
        cache_service.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit windows between tests so limits don't bleed."""
    if hasattr(rate_limiter, "clear"):
        rate_limiter.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "clear"):
        task_queue.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_payment_gateway() -> None:
    if hasattr(payment_service.payment_gateway, "clear"):
        payment_service.payment_gateway.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(user_id: UUID | str | None = None, role: str = "STUDENT") -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id or uuid4()), role=role)


def auth(user_id: UUID, role: Role | str = Role.STUDENT) -> dict[str, str]:
    role_name = role.value if isinstance(role, Role) else role
    return {"Authorization": f"Bearer {mint_token(user_id, role_name)}"}


def principal_for(account: Account) -> Principal:
    return Principal(user_id=account.id, role=account.role)


# ---------------------------------------------------------------------------
# Seed helpers: write directly through the store, bypassing permission checks
# ---------------------------------------------------------------------------


async def seed_account(
    st: Store,
    *,
    role: Role = Role.STUDENT,
    balance: str | Decimal = "0",
    name: str = "",
) -> Account:
    account = Account.new(role=role, name=name, balance=Decimal(balance))
    async with st.transaction() as uow:
        await uow.accounts.add(account)
    return account


async def seed_course(
    st: Store,
    *,
    price: str | Decimal = "0",
    is_published: bool = True,
    owner_id: UUID | None = None,
    title: str = "Intro to Testing",
) -> Course:
    course = Course.new(
        title=title,
        price=Decimal(price),
        is_published=is_published,
        owner_id=owner_id,
    )
    async with st.transaction() as uow:
        await uow.content.add_course(course)
    return course


async def seed_lesson(
    st: Store,
    course_id: UUID,
    position: int,
    *,
    is_published: bool = True,
    title: str | None = None,
) -> Lesson:
    lesson = Lesson.new(
        course_id=course_id,
        title=title or f"Lesson {position}",
        position=position,
        is_published=is_published,
    )
    async with st.transaction() as uow:
        await uow.content.add_lesson(lesson)
    return lesson


async def seed_quiz(
    st: Store,
    course_id: UUID,
    position: int,
    *,
    max_attempts: int = 1,
    is_published: bool = True,
    title: str | None = None,
) -> tuple[Quiz, list[Question]]:
    """A quiz with two 10-point questions: one multiple choice, one short answer."""
    quiz = Quiz.new(
        course_id=course_id,
        title=title or f"Quiz {position}",
        position=position,
        max_attempts=max_attempts,
        is_published=is_published,
    )
    questions = [
        Question.new(
            quiz_id=quiz.id,
            text="What is 2 + 2?",
            type=QuestionType.MULTIPLE_CHOICE,
            correct_answer="4",
            points=10,
            position=0,
            options=stringify_options(["3", "4", "5"]),
        ),
        Question.new(
            quiz_id=quiz.id,
            text="Capital of France?",
            type=QuestionType.SHORT_ANSWER,
            correct_answer="Paris",
            points=10,
            position=1,
        ),
    ]
    async with st.transaction() as uow:
        await uow.content.add_quiz(quiz, questions)
    return quiz, questions


async def seed_purchase(
    st: Store,
    user_id: UUID,
    course_id: UUID,
    status: PurchaseStatus = PurchaseStatus.ACTIVE,
    *,
    created_at: int | None = None,
) -> Purchase:
    if created_at is None:
        created_at = int(time.time())
    purchase = Purchase.new(
        user_id=user_id, course_id=course_id, status=status, created_at=created_at
    )
    async with st.transaction() as uow:
        await uow.purchases.add(purchase)
    return purchase


async def seed_code(
    st: Store, course_id: UUID, created_by: UUID, code: str = "ABCD1234EF567890"
) -> RedemptionCode:
    record = RedemptionCode.new(
        code=code, course_id=course_id, created_by=created_by, created_at=1_700_000_000
    )
    async with st.transaction() as uow:
        await uow.codes.add(record)
    return record
