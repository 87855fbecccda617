"""Purchase endpoints: direct purchase, checkout, code redemption, access."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from enrollment.api.balance import as_money
from enrollment.api.dependencies import get_store, require_user
from enrollment.api.errors import to_http_exception
from enrollment.api.ratelimit import require_rate_limit
from enrollment.models.principal import Principal
from enrollment.models.purchase import Purchase
from enrollment.repos.unit_of_work import Store
from enrollment.services import payment_service, purchase_service
from enrollment.services import task_queue as task_queue_module
from enrollment.services.errors import EnrollmentError
from enrollment.services.rate_limiter import REDEEM_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["purchases"])


class PurchaseOut(BaseModel):
    id: UUID
    course_id: UUID
    status: str
    created_at: int
    code_id: UUID | None = None


class PurchaseReceiptOut(BaseModel):
    purchase: PurchaseOut
    balance: Decimal


class AccessOut(BaseModel):
    course_id: UUID
    has_access: bool
    is_free: bool
    status: str | None


class RedeemIn(BaseModel):
    code: str = Field(min_length=1, max_length=64)


def purchase_out(p: Purchase) -> PurchaseOut:
    return PurchaseOut(
        id=p.id,
        course_id=p.course_id,
        status=p.status.value,
        created_at=p.created_at,
        code_id=p.code_id,
    )


@router.post(
    "/courses/{course_id}/purchase",
    response_model=PurchaseReceiptOut,
    status_code=status.HTTP_201_CREATED,
)
async def purchase_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> PurchaseReceiptOut:
    try:
        receipt = await purchase_service.purchase_course(store, principal, course_id)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return PurchaseReceiptOut(
        purchase=purchase_out(receipt.purchase), balance=as_money(receipt.balance)
    )


@router.get("/courses/{course_id}/access", response_model=AccessOut)
async def course_access(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> AccessOut:
    try:
        access = await purchase_service.course_access(store, principal, course_id)
    except EnrollmentError as e:
        logger.warning(
            "Access check failed user=%s course=%s code=%s",
            principal.user_id,
            course_id,
            e.code,
        )
        raise to_http_exception(e) from None
    return AccessOut(
        course_id=access.course_id,
        has_access=access.has_access,
        is_free=access.is_free,
        status=access.status.value if access.status else None,
    )


@router.post(
    "/courses/{course_id}/checkout",
    response_model=PurchaseOut,
    status_code=status.HTTP_202_ACCEPTED,
)
async def open_checkout(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> PurchaseOut:
    """Reserve the course with a PENDING purchase; the worker confirms it."""
    try:
        purchase = await payment_service.open_checkout(
            store, principal, course_id, task_queue_module.task_queue
        )
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return purchase_out(purchase)


@router.get("/purchases/{purchase_id}", response_model=PurchaseOut)
async def get_purchase(
    purchase_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> PurchaseOut:
    try:
        purchase = await purchase_service.get_purchase(store, principal, purchase_id)
    except EnrollmentError as e:
        logger.warning(
            "Purchase lookup failed user=%s purchase=%s", principal.user_id, purchase_id
        )
        raise to_http_exception(e) from None
    return purchase_out(purchase)


@router.post(
    "/codes/redeem",
    response_model=PurchaseOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit("redeem", REDEEM_LIMIT))],
)
async def redeem_code(
    payload: RedeemIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> PurchaseOut:
    try:
        purchase = await purchase_service.redeem_code(store, principal, payload.code)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return purchase_out(purchase)
