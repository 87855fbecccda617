"""Gateway checkout and payment confirmation.

``open_checkout`` reserves the (user, course) slot with a PENDING purchase
and queues a confirmation task.  The worker runs ``confirm_payment``,
which polls the gateway a bounded number of times and moves the purchase
out of PENDING exactly once:

    gateway COMPLETED           -> ACTIVE
    gateway FAILED              -> FAILED
    gateway CANCELED            -> CANCELED
    unknown status / not found  -> FAILED
    still PENDING after polling -> CANCELED

Transient gateway errors count as a check and polling continues.  The
transition is a compare-and-swap on PENDING, so a purchase resolved by
someone else is left alone.

When the confirmation task cannot be queued the purchase is marked FAILED
before the error propagates.  A PENDING row whose task was lost later
stops blocking the slot once its confirmation window has passed.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

import httpx

from enrollment.core.config import SETTINGS
from enrollment.core.metrics import PAYMENT_CONFIRMATIONS, PURCHASES
from enrollment.models.principal import Capability, Principal
from enrollment.models.purchase import Purchase, PurchaseStatus
from enrollment.repos.unit_of_work import Store
from enrollment.services.errors import (
    EnrollmentError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from enrollment.services.purchase_service import (
    check_slot,
    claim_slot,
    get_published_course,
)
from enrollment.services.task_queue import PAYMENT_CONFIRMATION_QUEUE, TaskQueue

logger = logging.getLogger(__name__)


class GatewayStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class GatewayNotFoundError(Exception):
    """The gateway has no record of the payment."""


class GatewayUnavailableError(Exception):
    """A transient failure talking to the gateway; the check may be retried."""


@runtime_checkable
class PaymentGateway(Protocol):
    async def fetch_status(self, purchase_id: UUID) -> str: ...


class InMemoryPaymentGateway:
    """Gateway double for dev and tests.  Unknown payments stay PENDING."""

    def __init__(self) -> None:
        self._statuses: dict[UUID, list[str]] = {}
        self._missing: set[UUID] = set()
        self.calls = 0

    def set_statuses(self, purchase_id: UUID, *statuses: str) -> None:
        """Queue the answers for successive checks; the last one repeats."""
        self._statuses[purchase_id] = list(statuses)

    def forget(self, purchase_id: UUID) -> None:
        self._missing.add(purchase_id)

    def clear(self) -> None:
        self._statuses.clear()
        self._missing.clear()
        self.calls = 0

    async def fetch_status(self, purchase_id: UUID) -> str:
        self.calls += 1
        if purchase_id in self._missing:
            raise GatewayNotFoundError(str(purchase_id))
        queued = self._statuses.get(purchase_id)
        if not queued:
            return GatewayStatus.PENDING.value
        status = queued.pop(0) if len(queued) > 1 else queued[0]
        if status == "UNAVAILABLE":
            raise GatewayUnavailableError("simulated outage")
        return status


class HttpPaymentGateway:
    """GET {base_url}/{purchase_id} -> {"status": "..."}."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch_status(self, purchase_id: UUID) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.get(f"{self._base_url}/{purchase_id}")
        except httpx.HTTPError as e:
            raise GatewayUnavailableError(str(e)) from e

        if resp.status_code == 404:
            raise GatewayNotFoundError(str(purchase_id))
        if resp.status_code >= 400:
            raise GatewayUnavailableError(f"gateway returned {resp.status_code}")
        try:
            return str(resp.json().get("status", "")).upper()
        except ValueError as e:
            raise GatewayUnavailableError("gateway returned invalid JSON") from e


if SETTINGS.payment_status_url:
    payment_gateway: PaymentGateway = HttpPaymentGateway(SETTINGS.payment_status_url)
else:
    payment_gateway = InMemoryPaymentGateway()


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


async def _fail_unqueued(store: Store, purchase: Purchase) -> None:
    async with store.transaction() as uow:
        await uow.purchases.set_status(
            purchase.id, PurchaseStatus.FAILED, expected=PurchaseStatus.PENDING
        )
    logger.error(
        "Confirmation could not be queued; purchase=%s marked FAILED",
        purchase.id,
        extra={"course_id": str(purchase.course_id), "purchase_id": str(purchase.id)},
    )


async def open_checkout(
    store: Store, principal: Principal, course_id: UUID, queue: TaskQueue
) -> Purchase:
    try:
        if not principal.can(Capability.SPEND_BALANCE):
            raise ForbiddenError()
        async with store.transaction() as uow:
            course = await get_published_course(uow, course_id)
            if course.is_free:
                raise ValidationError("Free courses do not need a checkout")
            stale = await check_slot(uow, principal.user_id, course_id)
            purchase = Purchase.new(
                user_id=principal.user_id,
                course_id=course_id,
                status=PurchaseStatus.PENDING,
                created_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
            )
            await claim_slot(uow, stale, purchase)
    except EnrollmentError as e:
        PURCHASES.labels(path="checkout", outcome=e.code).inc()
        logger.warning(
            "Checkout rejected user=%s course=%s code=%s",
            principal.user_id,
            course_id,
            e.code,
        )
        raise

    try:
        await queue.enqueue(
            PAYMENT_CONFIRMATION_QUEUE, {"purchase_id": str(purchase.id)}
        )
    except Exception:
        # Nothing will ever confirm this purchase: release the slot.
        await _fail_unqueued(store, purchase)
        PURCHASES.labels(path="checkout", outcome="QUEUE_UNAVAILABLE").inc()
        raise
    PURCHASES.labels(path="checkout", outcome="ok").inc()
    logger.info(
        "Checkout opened user=%s course=%s purchase=%s",
        principal.user_id,
        course_id,
        purchase.id,
        extra={"course_id": str(course_id), "purchase_id": str(purchase.id)},
    )
    return purchase


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------

_TERMINAL = {
    GatewayStatus.COMPLETED.value: PurchaseStatus.ACTIVE,
    GatewayStatus.FAILED.value: PurchaseStatus.FAILED,
    GatewayStatus.CANCELED.value: PurchaseStatus.CANCELED,
    "CANCELLED": PurchaseStatus.CANCELED,
}


def map_gateway_status(raw: str) -> PurchaseStatus | None:
    """None means keep polling."""
    status = raw.strip().upper()
    if status == GatewayStatus.PENDING.value:
        return None
    return _TERMINAL.get(status, PurchaseStatus.FAILED)


async def confirm_payment(
    store: Store,
    gateway: PaymentGateway,
    purchase_id: UUID,
    *,
    max_checks: int = SETTINGS.payment_max_checks,
    interval: float = SETTINGS.payment_check_interval,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PurchaseStatus:
    """Resolve a PENDING purchase.  Returns the purchase's final status."""
    async with store.transaction() as uow:
        purchase = await uow.purchases.get(purchase_id)
    if purchase is None:
        raise NotFoundError("Purchase not found")
    if purchase.status is not PurchaseStatus.PENDING:
        return purchase.status

    target: PurchaseStatus | None = None
    for check in range(1, max_checks + 1):
        try:
            target = map_gateway_status(await gateway.fetch_status(purchase_id))
        except GatewayNotFoundError:
            logger.warning("Gateway has no payment purchase=%s", purchase_id)
            target = PurchaseStatus.FAILED
        except GatewayUnavailableError as e:
            logger.warning(
                "Gateway check %d/%d failed purchase=%s: %s",
                check,
                max_checks,
                purchase_id,
                e,
            )
        if target is not None:
            break
        if check < max_checks:
            await sleep(interval)

    if target is None:
        target = PurchaseStatus.CANCELED

    async with store.transaction() as uow:
        updated = await uow.purchases.set_status(
            purchase_id, target, expected=PurchaseStatus.PENDING
        )
        if updated is None:
            current = await uow.purchases.get(purchase_id)
            logger.info(
                "Purchase resolved elsewhere purchase=%s status=%s",
                purchase_id,
                current.status.value if current else "deleted",
            )
            if current is None:
                raise NotFoundError("Purchase not found")
            return current.status

    PAYMENT_CONFIRMATIONS.labels(status=target.value).inc()
    logger.info(
        "Payment confirmed purchase=%s status=%s",
        purchase_id,
        target.value,
        extra={"purchase_id": str(purchase_id)},
    )
    return target
