"""Course purchases: balance debit, code redemption and privileged grants.

Every operation runs in exactly one store transaction.  All checks run
before the first write, so a rejected request leaves no trace; a failure
after the first write (a lost race on the balance or the code) raises and
the transaction rolls back whatever was written.

A (user, course) pair has at most one purchase row.  An ACTIVE row means
the user owns the course; a PENDING row means a gateway checkout is in
flight.  Both block another purchase, except a PENDING row whose
confirmation window has long passed.  FAILED, CANCELED and expired
PENDING rows are deleted so the slot can be reused.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from enrollment.core.config import SETTINGS
from enrollment.core.metrics import PURCHASES
from enrollment.models.account import BalanceTransaction, TransactionType
from enrollment.models.course import Course
from enrollment.models.principal import Capability, Principal, Role
from enrollment.models.purchase import (
    RETRYABLE_STATUSES,
    Purchase,
    PurchaseStatus,
)
from enrollment.repos.errors import DuplicateKeyError
from enrollment.repos.unit_of_work import Store, UnitOfWork
from enrollment.services.errors import (
    AlreadyUsedError,
    ConflictError,
    EnrollmentError,
    ForbiddenError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Queue wait allowed on top of the confirmation polling window.
PENDING_GRACE_SECONDS = 300


@dataclass(frozen=True, slots=True)
class PurchaseReceipt:
    purchase: Purchase
    balance: Decimal


@dataclass(frozen=True, slots=True)
class CourseAccess:
    course_id: UUID
    has_access: bool
    is_free: bool
    status: PurchaseStatus | None


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def mask_code(code: str) -> str:
    """Keep only the first four characters of a redemption code for logs."""
    return code[:4] + "*" * max(0, len(code) - 4)


def normalize_code(raw: str) -> str:
    return raw.strip().upper()


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------


async def get_published_course(uow: UnitOfWork, course_id: UUID) -> Course:
    course = await uow.content.get_course(course_id)
    if course is None or not course.is_published:
        raise NotFoundError("Course not found")
    return course


def pending_expired(purchase: Purchase, now: int | None = None) -> bool:
    """True once a PENDING row has outlived every confirmation attempt.

    A checkout whose confirmation task was lost would otherwise hold the
    slot forever.
    """
    if purchase.status is not PurchaseStatus.PENDING:
        return False
    horizon = (
        SETTINGS.payment_max_checks * SETTINGS.payment_check_interval
        + PENDING_GRACE_SECONDS
    )
    return (now if now is not None else _now()) - purchase.created_at > horizon


async def check_slot(
    uow: UnitOfWork, user_id: UUID, course_id: UUID
) -> Purchase | None:
    """Reject when the pair is taken.  Returns a stale row the caller must clear."""
    existing = await uow.purchases.get_for(user_id, course_id)
    if existing is None or existing.status in RETRYABLE_STATUSES:
        return existing
    if pending_expired(existing):
        logger.warning(
            "Releasing expired pending purchase=%s user=%s course=%s",
            existing.id,
            user_id,
            course_id,
        )
        return existing
    if existing.status is PurchaseStatus.PENDING:
        raise ConflictError("A payment for this course is already pending")
    raise ConflictError("Course already purchased")


async def claim_slot(
    uow: UnitOfWork, stale: Purchase | None, purchase: Purchase
) -> None:
    if stale is not None:
        await uow.purchases.delete(stale.id)
    try:
        await uow.purchases.add(purchase)
    except DuplicateKeyError:
        # Another request for the same pair committed first.
        raise ConflictError("Course already purchased") from None


def _record(path: str, outcome: str) -> None:
    PURCHASES.labels(path=path, outcome=outcome).inc()


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def purchase_course(
    store: Store, principal: Principal, course_id: UUID
) -> PurchaseReceipt:
    """Buy a course with the caller's balance.

    Steps: course must be published, the pair must be free, the balance
    must cover the price.  Then, atomically: clear a FAILED/CANCELED row,
    insert an ACTIVE purchase, debit the balance and append a PURCHASE
    transaction of -price.  Free courses go through the same path with a
    zero debit.
    """
    try:
        if not principal.can(Capability.SPEND_BALANCE):
            raise ForbiddenError()
        async with store.transaction() as uow:
            course = await get_published_course(uow, course_id)
            stale = await check_slot(uow, principal.user_id, course_id)
            account = await uow.accounts.get(principal.user_id)
            if account is None:
                raise NotFoundError("Account not found")
            price = course.price
            if account.balance < price:
                raise InsufficientFundsError()

            purchase = Purchase.new(
                user_id=principal.user_id,
                course_id=course_id,
                status=PurchaseStatus.ACTIVE,
                created_at=_now(),
            )
            await claim_slot(uow, stale, purchase)
            updated = await uow.accounts.debit(principal.user_id, price)
            if updated is None:
                # Balance was spent by a concurrent purchase.
                raise InsufficientFundsError()
            await uow.accounts.append_transaction(
                BalanceTransaction.new(
                    account_id=principal.user_id,
                    amount=-price,
                    type=TransactionType.PURCHASE,
                    description=f"Purchase of course {course.title}",
                    created_at=purchase.created_at,
                )
            )
    except EnrollmentError as e:
        _record("direct", e.code)
        logger.warning(
            "Purchase rejected user=%s course=%s code=%s",
            principal.user_id,
            course_id,
            e.code,
        )
        raise

    _record("direct", "ok")
    logger.info(
        "Course purchased user=%s course=%s purchase=%s price=%s",
        principal.user_id,
        course_id,
        purchase.id,
        price,
        extra={"course_id": str(course_id), "purchase_id": str(purchase.id)},
    )
    return PurchaseReceipt(purchase=purchase, balance=updated.balance)


async def redeem_code(store: Store, principal: Principal, raw_code: str) -> Purchase:
    """Exchange a one-time code for an ACTIVE purchase of its course.

    The code's is_used flag moves false -> true by compare-and-swap; of
    two concurrent redemptions exactly one wins and the other gets
    ALREADY_USED.  No balance change.
    """
    code = normalize_code(raw_code)
    masked = mask_code(code)
    try:
        if not principal.can(Capability.REDEEM_CODE):
            raise ForbiddenError()
        if not code:
            raise ValidationError("Code must not be blank")
        async with store.transaction() as uow:
            record = await uow.codes.get_by_code(code)
            if record is None:
                raise NotFoundError("Code not found")
            if record.is_used:
                raise AlreadyUsedError()
            stale = await check_slot(uow, principal.user_id, record.course_id)

            now = _now()
            if await uow.codes.mark_used(record.id, principal.user_id, now) is None:
                raise AlreadyUsedError()
            purchase = Purchase.new(
                user_id=principal.user_id,
                course_id=record.course_id,
                status=PurchaseStatus.ACTIVE,
                created_at=now,
                code_id=record.id,
            )
            await claim_slot(uow, stale, purchase)
    except EnrollmentError as e:
        _record("code", e.code)
        logger.warning(
            "Redemption rejected user=%s code=%s reason=%s",
            principal.user_id,
            masked,
            e.code,
        )
        raise

    _record("code", "ok")
    logger.info(
        "Code redeemed user=%s code=%s course=%s purchase=%s",
        principal.user_id,
        masked,
        purchase.course_id,
        purchase.id,
        extra={
            "course_id": str(purchase.course_id),
            "purchase_id": str(purchase.id),
        },
    )
    return purchase


async def grant_course(
    store: Store, principal: Principal, account_id: UUID, course_id: UUID
) -> Purchase:
    """Give a student account an ACTIVE purchase without touching its balance."""
    try:
        if not principal.can(Capability.GRANT_COURSE):
            raise ForbiddenError()
        async with store.transaction() as uow:
            target = await uow.accounts.get(account_id)
            if target is None:
                raise NotFoundError("Account not found")
            if target.role is not Role.STUDENT:
                raise ValidationError("Courses can only be granted to student accounts")
            if await uow.content.get_course(course_id) is None:
                raise NotFoundError("Course not found")
            stale = await check_slot(uow, account_id, course_id)
            purchase = Purchase.new(
                user_id=account_id,
                course_id=course_id,
                status=PurchaseStatus.ACTIVE,
                created_at=_now(),
            )
            await claim_slot(uow, stale, purchase)
    except EnrollmentError as e:
        _record("grant", e.code)
        logger.warning(
            "Grant rejected admin=%s account=%s course=%s code=%s",
            principal.user_id,
            account_id,
            course_id,
            e.code,
        )
        raise

    _record("grant", "ok")
    logger.info(
        "Course granted admin=%s account=%s course=%s purchase=%s",
        principal.user_id,
        account_id,
        course_id,
        purchase.id,
        extra={"course_id": str(course_id), "purchase_id": str(purchase.id)},
    )
    return purchase


async def course_access(
    store: Store, principal: Principal, course_id: UUID
) -> CourseAccess:
    async with store.transaction() as uow:
        course = await get_published_course(uow, course_id)
        purchase = await uow.purchases.get_for(principal.user_id, course_id)
    status = purchase.status if purchase else None
    return CourseAccess(
        course_id=course_id,
        has_access=course.is_free or status is PurchaseStatus.ACTIVE,
        is_free=course.is_free,
        status=status,
    )


async def get_purchase(
    store: Store, principal: Principal, purchase_id: UUID
) -> Purchase:
    """A caller sees their own purchases; ADMIN sees any."""
    async with store.transaction() as uow:
        purchase = await uow.purchases.get(purchase_id)
    if purchase is None or (
        purchase.user_id != principal.user_id and principal.role is not Role.ADMIN
    ):
        raise NotFoundError("Purchase not found")
    return purchase
